"""
Pytest fixtures for Lendtrack backend tests.

Provides the test database, a recording notifier, seeded users and items,
and the test client.
"""

from datetime import datetime, timedelta

import pytest

from lendtrack import create_app
from lendtrack.extensions import db
from lendtrack.models.auth import ROLE_ADMIN, ROLE_BORROWER, ROLE_EDITOR
from lendtrack.services import auth_service, inventory_service
from lendtrack.services.notification_service import Notifier, NotificationError, init_notifier

PASSWORD = "Password123!"


class RecordingNotifier(Notifier):
    """Keeps every message instead of sending it; can be told to fail."""

    def __init__(self):
        self.sent = []
        self.fail = False

    def send(self, to, kind, payload):
        if self.fail:
            raise NotificationError("gateway down")
        self.sent.append((to, kind, dict(payload)))

    def kinds(self):
        return [kind for _, kind, _ in self.sent]


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
        'NOTIFIER': 'log',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function', autouse=True)
def db_session(app):
    """Fresh data and default policy for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        app.config.update({
            'RESTOCK_ON_REJECT': True,
            'ALLOW_PENDING_RETURN': True,
            'DEFAULT_LOAN_DAYS': 7,
            'MAX_LOAN_DAYS': 14,
        })

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def notifier(app):
    recorder = RecordingNotifier()
    init_notifier(app, recorder)
    yield recorder
    init_notifier(app)


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def admin(db_session):
    return auth_service.create_user("admin", "admin@lendtrack.local", PASSWORD, "081111111111", role=ROLE_ADMIN)


@pytest.fixture(scope='function')
def editor(db_session):
    return auth_service.create_user("editor", "editor@lendtrack.local", PASSWORD, "082222222222", role=ROLE_EDITOR)


@pytest.fixture(scope='function')
def borrower(db_session):
    return auth_service.create_user("budi", "budi@lendtrack.local", PASSWORD, "083333333333", role=ROLE_BORROWER)


@pytest.fixture(scope='function')
def other_borrower(db_session):
    return auth_service.create_user("sari", "sari@lendtrack.local", PASSWORD, "6284444444444", role=ROLE_BORROWER)


@pytest.fixture(scope='function')
def projector(db_session):
    return inventory_service.create_inventory("Projector", "PRJ-01", 5)


@pytest.fixture(scope='function')
def camera(db_session):
    return inventory_service.create_inventory("Camera", "CAM-01", 2)


@pytest.fixture(scope='function')
def loan_dates():
    start = datetime(2030, 1, 10, 9, 0)
    return start, start + timedelta(days=5)


def get_auth_token(client, username: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json['data']['token']
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
