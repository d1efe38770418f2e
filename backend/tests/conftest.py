"""
Pytest fixtures for BarFlow backend tests.

Provides test database setup, staff users, a small catalog, a credit
customer and the test client.
"""

from functools import lru_cache

import pytest
from barflow import create_app
from barflow.config import TestConfig
from barflow.extensions import db
from barflow.models import User, Product, CreditCustomer
from barflow.models.auth import ROLE_ADMIN, ROLE_EMPLOYEE
from barflow.services.auth_service import hash_password

PASSWORD = "Password123!"


@lru_cache(maxsize=1)
def _password_hash() -> str:
    # bcrypt at cost 12 is slow; hash once per run
    return hash_password(PASSWORD)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TestConfig)

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


def _make_user(session, username: str, name: str, role: str) -> User:
    user = User(
        username=username,
        name=name,
        role=role,
        password_hash=_password_hash(),
        is_active=True,
    )
    session.add(user)
    session.commit()
    return user


@pytest.fixture(scope='function')
def admin(db_session):
    return _make_user(db_session, "admin", "Admin", ROLE_ADMIN)


@pytest.fixture(scope='function')
def employee(db_session):
    return _make_user(db_session, "maria", "Maria", ROLE_EMPLOYEE)


@pytest.fixture(scope='function')
def other_employee(db_session):
    return _make_user(db_session, "pedro", "Pedro", ROLE_EMPLOYEE)


@pytest.fixture(scope='function')
def beer_a(db_session):
    """Sale price 5000, cost 2000 (minor units)."""
    product = Product(name="BeerA", category="Beer", cost_price_cents=2000, sale_price_cents=5000, is_active=True)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def beer_b(db_session):
    product = Product(name="BeerB", category="Beer", cost_price_cents=800, sale_price_cents=2000, is_active=True)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def customer(db_session):
    """Credit customer with a 100000 limit and no balance."""
    c = CreditCustomer(name="Juan", max_limit_cents=100000, current_used_cents=0, is_active=True)
    db_session.add(c)
    db_session.commit()
    return c


def get_auth_token(client, username: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(client, admin):
    return auth_headers(get_auth_token(client, admin.username))


@pytest.fixture(scope='function')
def employee_headers(client, employee):
    return auth_headers(get_auth_token(client, employee.username))
