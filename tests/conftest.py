from datetime import date

import pytest
from flask_jwt_extended import create_access_token

from panelops import create_app, db
from panelops.database_setup import create_operator

# Thursday; its Monday..Sunday week is 2026-01-12..2026-01-18
TODAY = date(2026, 1, 15)


@pytest.fixture
def app():
    app = create_app('panelops.config.TestingConfig')
    app.config['CLOCK'] = lambda: TODAY
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def operator(app):
    return create_operator('Operator', 'ops@example.com', 'secret123')


@pytest.fixture
def auth_headers(operator):
    token = create_access_token(identity=operator.id)
    return {'Authorization': f'Bearer {token}'}
