"""
Pytest fixtures for StockSimple backend tests.

Provides test database setup, a signed-in user, a product factory, and the
test client.
"""

from decimal import Decimal

import pytest

from stocksimple import create_app
from stocksimple.config import TestConfig
from stocksimple.extensions import db
from stocksimple.services import auth_service, products_service


USER_EMAIL = "owner@example.com"
USER_PASSWORD = "secret123"


def config_from(obj, **overrides) -> dict:
    """Uppercase attributes of a config class as a dict, plus overrides."""
    config = {key: getattr(obj, key) for key in dir(obj) if key.isupper()}
    config.update(overrides)
    return config


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(config_from(TestConfig))

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
def user(db_session):
    """Create a registered user with a bcrypt password."""
    return auth_service.register_user(email=USER_EMAIL, password=USER_PASSWORD, name="Owner")


@pytest.fixture(scope='function')
def auth_headers(client, user):
    """Authorization headers for the registered user."""
    token = get_auth_token(client, USER_EMAIL, USER_PASSWORD)
    assert token, "login failed in fixture"
    return bearer(token)


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory: create an active product through the catalog service."""
    def _make(sku="A1", name=None, cost=Decimal("4.50"), current_stock=0, reorder_point=10):
        return products_service.create_product(patch={
            "sku": sku,
            "name": name or f"Product {sku}",
            "cost": cost,
            "current_stock": current_stock,
            "reorder_point": reorder_point,
        })
    return _make


def get_auth_token(client, email: str, password: str) -> str:
    """Helper to get an access token for a user."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def bearer(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
