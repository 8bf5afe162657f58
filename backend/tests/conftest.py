"""
Pytest fixtures for POS backend tests.

Provides test database setup, users, products, and an authenticated client.
"""

import pytest

from pos_backend import create_app
from pos_backend.extensions import db
from pos_backend.models.auth import ROLE_ADMIN, ROLE_CASHIER
from pos_backend.services import auth_service, catalog_service, session_service

TEST_PASSWORD = "Password123!"

# bcrypt's minimum cost keeps fixtures fast
TEST_BCRYPT_ROUNDS = 4


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'QRIS_WEBHOOK_SECRET': '',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def registry(app):
    return app.extensions["payment_registry"]


@pytest.fixture(scope='function')
def cashier(db_session):
    return auth_service.create_user(
        db_session, "Cashier One", "cashier@pos.test", TEST_PASSWORD,
        role=ROLE_CASHIER, rounds=TEST_BCRYPT_ROUNDS,
    )


@pytest.fixture(scope='function')
def admin(db_session):
    return auth_service.create_user(
        db_session, "Admin One", "admin@pos.test", TEST_PASSWORD,
        role=ROLE_ADMIN, rounds=TEST_BCRYPT_ROUNDS,
    )


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory: make_product(name, price, stock) with opening stock via the ledger."""
    def _make(name="Product", price="10000.00", stock=10, sku=None):
        return catalog_service.create_product(db_session, name, price, initial_stock=stock, sku=sku)
    return _make


@pytest.fixture(scope='function')
def cashier_headers(db_session, cashier):
    _, token = session_service.create_session(db_session, cashier.id)
    return auth_headers(token)


@pytest.fixture(scope='function')
def admin_headers(db_session, admin):
    _, token = session_service.create_session(db_session, admin.id)
    return auth_headers(token)


def get_auth_token(client, email: str, password: str) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json['data']['token']
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
