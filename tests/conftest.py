"""
Shared fixtures: an app on in-memory SQLite, a service-level request
context, a Flask test client and an httpx client mounted on the WSGI app.
"""

import httpx
import pytest

from app import create_app
from models import db
from rpc import RequestContext

TEST_CONFIG = {
    "TESTING": True,
    "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
    "POSITION_RETRIES": 3,
}


@pytest.fixture
def app():
    app = create_app(TEST_CONFIG)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def ctx(app):
    """Context for user U1, inside an app context."""
    with app.app_context():
        yield RequestContext(user_id="U1", db=db.session, position_retries=3)


@pytest.fixture
def api(app):
    return app.test_client()


@pytest.fixture
def sent_requests():
    return []


@pytest.fixture
def http(app, sent_requests):
    with httpx.Client(
        transport=httpx.WSGITransport(app=app),
        base_url="http://testserver",
        event_hooks={"request": [sent_requests.append]},
    ) as client:
        yield client
