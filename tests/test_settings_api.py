from panelops.models import Setting
from panelops.utils.settings import seed_default_settings


def test_defaults_are_seeded(client, auth_headers):
    body = client.get('/api/settings/', headers=auth_headers).get_json()

    assert body['business_name'] == 'Nexus'
    assert body['cut_commission_pct'] == 5
    assert body['exchange_rates'] == {'MXN': 17.5, 'COP': 4200}
    assert body['team'] == []
    assert Setting.query.count() == len(body)


def test_seeding_twice_adds_nothing(app):
    assert seed_default_settings() == 0


def test_partial_update(client, auth_headers):
    res = client.patch('/api/settings/', json={
        'cut_commission_pct': 3,
        'team': [{'name': 'Luis', 'role': 'ventas'}],
    }, headers=auth_headers)

    body = res.get_json()
    assert res.status_code == 200
    assert body['cut_commission_pct'] == 3.0
    assert body['team'] == [{'name': 'Luis', 'role': 'ventas', 'whatsapp': ''}]
    assert body['business_name'] == 'Nexus'


def test_commission_setting_feeds_cut_preview(client, auth_headers):
    client.put('/api/settings/', json={'cut_commission_pct': 3}, headers=auth_headers)

    preview = client.get('/api/cuts/eligible?country=Mexico', headers=auth_headers).get_json()

    assert preview['commission_pct'] == 3.0


def test_invalid_settings(client, auth_headers):
    res = client.put('/api/settings/', json={
        'cut_commission_pct': 150,
        'exchange_rates': {'EUR': 1.1},
    }, headers=auth_headers)
    assert res.status_code == 400
    assert set(res.get_json()['errors']) == {'cut_commission_pct', 'exchange_rates'}


def test_exchange_rate_patch_keeps_other_rates(client, auth_headers):
    res = client.patch('/api/settings/', json={'exchange_rates': {'MXN': 18}}, headers=auth_headers)

    assert res.status_code == 200
    assert res.get_json()['exchange_rates'] == {'MXN': 18.0, 'COP': 4200}
    stored = client.get('/api/settings/', headers=auth_headers).get_json()
    assert stored['exchange_rates'] == {'MXN': 18.0, 'COP': 4200}
