import os
import sys
import pytest

# Ensure the project root (containing the `stackgame` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from config import Config
from stackgame import create_app, db


class TestConfig(Config):
    TESTING = True
    FLASK_ENV = 'testing'
    SECRET_KEY = 'test-secret'
    JWT_SECRET_KEY = 'test-jwt-secret-key-with-enough-length'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    GOOGLE_CLIENT_ID = 'google-client'
    GOOGLE_CLIENT_SECRET = 'google-secret'
    LINKEDIN_CLIENT_ID = None
    LINKEDIN_CLIENT_SECRET = None
    LOG_FILE = None


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def login(client, monkeypatch):
    """Log in through the Google endpoint with a stubbed userinfo call."""
    from stackgame.services import providers

    def _login(provider_id='g-1', name='Alice', email=None, picture=None):
        class FakeResponse:
            status_code = 200

            def json(self):
                return {'sub': provider_id, 'name': name,
                        'email': email, 'picture': picture}

        monkeypatch.setattr(providers.requests, 'get',
                            lambda *args, **kwargs: FakeResponse())
        res = client.post('/auth/google/login', json={'accessToken': 'token'})
        assert res.status_code == 200
        body = res.get_json()
        return {'Authorization': f"Bearer {body['access_token']}"}, body

    return _login
