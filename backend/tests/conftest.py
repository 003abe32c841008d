"""
Pytest fixtures for bar ledger backend tests.

Provides test database setup, an explicit service context, entity factories
and an authenticated test client.
"""

from decimal import Decimal

import pytest

from barledger import create_app
from barledger.config import TestConfig
from barledger.context import BarContext, Settings
from barledger.extensions import db
from barledger.models import Customer, Product, Supplier, User
from barledger.models.auth import ROLE_ADMIN, ROLE_CASHIER, ROLE_WAITER
from barledger.services.auth_service import hash_password
from barledger.services.subscriptions import SubscriptionHub

PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TestConfig)

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Fresh data for each test, same schema."""
    with app.app_context():
        db.session.rollback()
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        db.session.expunge_all()

        yield db.session

        db.session.rollback()


@pytest.fixture(scope='function')
def ctx(app, db_session):
    """A service context of its own, independent of the app's hub."""
    return BarContext(
        session=db_session,
        settings=Settings.from_mapping(app.config),
        hub=SubscriptionHub(),
        insights=None,
    )


# =============================================================================
# FACTORIES
# =============================================================================

@pytest.fixture(scope='function')
def make_product(db_session):
    def _make(name="Cerveja Lata", unit_price_cents=500, cost_price_cents=200, stock=10, **kw):
        product = Product(
            name=name,
            category=kw.pop("category", "Bebidas"),
            unit_price_cents=unit_price_cents,
            cost_price_cents=cost_price_cents,
            stock=Decimal(str(stock)),
            **kw,
        )
        db_session.add(product)
        db_session.commit()
        return product
    return _make


@pytest.fixture(scope='function')
def make_customer(db_session):
    def _make(name="Joao", balance_cents=0, credit_limit_cents=None, contact=None):
        customer = Customer(
            name=name,
            contact=contact,
            balance_cents=balance_cents,
            credit_limit_cents=credit_limit_cents,
        )
        db_session.add(customer)
        db_session.commit()
        return customer
    return _make


@pytest.fixture(scope='function')
def make_supplier(db_session):
    def _make(name="Distribuidora Central", **kw):
        supplier = Supplier(name=name, **kw)
        db_session.add(supplier)
        db_session.commit()
        return supplier
    return _make


# =============================================================================
# AUTH
# =============================================================================

@pytest.fixture(scope='session')
def password_hash():
    """bcrypt is slow on purpose; hash once per run."""
    return hash_password(PASSWORD)


def _user(db_session, password_hash, username, role):
    user = User(username=username, name=username.title(), password_hash=password_hash, role=role, is_active=True)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def admin_user(db_session, password_hash):
    return _user(db_session, password_hash, "admin", ROLE_ADMIN)


@pytest.fixture(scope='function')
def cashier_user(db_session, password_hash):
    return _user(db_session, password_hash, "cashier", ROLE_CASHIER)


@pytest.fixture(scope='function')
def waiter_user(db_session, password_hash):
    return _user(db_session, password_hash, "waiter", ROLE_WAITER)


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
def login(client):
    """Log in and return Authorization headers, or None on failure."""
    def _login(username: str, password: str = PASSWORD):
        token = get_auth_token(client, username, password)
        return auth_headers(token) if token else None
    return _login


@pytest.fixture(scope='function')
def admin_headers(client, admin_user):
    return auth_headers(get_auth_token(client, "admin"))


@pytest.fixture(scope='function')
def cashier_headers(client, cashier_user):
    return auth_headers(get_auth_token(client, "cashier"))


@pytest.fixture(scope='function')
def waiter_headers(client, waiter_user):
    return auth_headers(get_auth_token(client, "waiter"))
