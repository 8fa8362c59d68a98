import pytest
from flask_jwt_extended import create_access_token

from panelops.database_setup import create_operator


def login(client, password='secret123'):
    return client.post('/api/auth/login', json={'email': 'ops@example.com', 'password': password})


def test_login_returns_tokens(client, operator):
    res = login(client)

    body = res.get_json()
    assert res.status_code == 200
    assert body['access_token']
    assert body['refresh_token']
    assert body['operator'] == {'id': operator.id, 'email': 'ops@example.com', 'name': 'Operator'}


def test_login_with_wrong_password(client, operator):
    assert login(client, 'nope').status_code == 401


def test_login_validates_payload(client):
    res = client.post('/api/auth/login', json={'email': 'not-an-email'})
    assert res.status_code == 400
    assert set(res.get_json()['errors']) == {'email', 'password'}


def test_profile(client, auth_headers):
    res = client.get('/api/auth/profile', headers=auth_headers)
    assert res.status_code == 200
    assert res.get_json()['email'] == 'ops@example.com'


def test_refresh_issues_new_access_token(client, operator):
    refresh = login(client).get_json()['refresh_token']

    res = client.post('/api/auth/refresh', headers={'Authorization': f'Bearer {refresh}'})

    assert res.status_code == 200
    token = res.get_json()['access_token']
    profile = client.get('/api/auth/profile', headers={'Authorization': f'Bearer {token}'})
    assert profile.status_code == 200


def test_token_of_unknown_operator(client, app):
    token = create_access_token(identity='gone')
    res = client.get('/api/dashboard/', headers={'Authorization': f'Bearer {token}'})
    assert res.status_code == 401


def test_duplicate_operator(operator):
    with pytest.raises(ValueError):
        create_operator('Other', 'ops@example.com', 'secret456')
