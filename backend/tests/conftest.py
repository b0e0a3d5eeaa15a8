"""
Pytest fixtures for shopledger backend tests.

Provides test database setup, users per role with session tokens, and
product/lender factories.
"""

import pytest

from shopledger import create_app
from shopledger.extensions import db
from shopledger.models import Lender, Product, User
from shopledger.services import session_service
from shopledger.services.auth_service import hash_password


TEST_PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
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


@pytest.fixture(scope='session')
def password_hash():
    """bcrypt is slow on purpose; hash the shared test password once."""
    return hash_password(TEST_PASSWORD)


def _make_user(session, password_hash, username: str, role: str) -> User:
    user = User(
        username=username,
        email=f"{username}@shop.test",
        password_hash=password_hash,
        role=role,
        is_active=True,
    )
    session.add(user)
    session.commit()
    return user


@pytest.fixture(scope='function')
def admin_user(db_session, password_hash):
    return _make_user(db_session, password_hash, "admin", "ADMIN")


@pytest.fixture(scope='function')
def manager_user(db_session, password_hash):
    return _make_user(db_session, password_hash, "manager", "MANAGER")


@pytest.fixture(scope='function')
def sales_user(db_session, password_hash):
    return _make_user(db_session, password_hash, "seller", "SALES")


def token_for(user: User) -> str:
    _, token = session_service.create_session(user_id=user.id)
    return token


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(admin_user):
    return auth_headers(token_for(admin_user))


@pytest.fixture(scope='function')
def manager_headers(manager_user):
    return auth_headers(token_for(manager_user))


@pytest.fixture(scope='function')
def sales_headers(sales_user):
    return auth_headers(token_for(sales_user))


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory: product seeded with initial stock (no movement, like create_product)."""
    counter = {"n": 0}

    def _make(stock: int = 10, *, cost: int = 1000, price: int = 1500, reorder_level: int = 0, **kw) -> Product:
        counter["n"] += 1
        product = Product(
            name=kw.pop("name", f"Product {counter['n']}"),
            cost_price_cents=cost,
            selling_price_cents=price,
            initial_stock=stock,
            current_stock=stock,
            reorder_level=reorder_level,
            **kw,
        )
        db_session.add(product)
        db_session.commit()
        return product

    return _make


@pytest.fixture(scope='function')
def product(make_product):
    return make_product(10)


@pytest.fixture(scope='function')
def make_lender(db_session):
    counter = {"n": 0}

    def _make(name: str | None = None, **kw) -> Lender:
        counter["n"] += 1
        lender = Lender(
            customer_code=f"CUST-T{counter['n']:04d}",
            name=name or f"Lender {counter['n']}",
            credit_limit_cents=kw.pop("credit_limit_cents", 0),
            status=kw.pop("status", "ACTIVE"),
            current_debt_cents=kw.pop("current_debt_cents", 0),
            total_paid_cents=0,
            total_purchased_cents=0,
            **kw,
        )
        db_session.add(lender)
        db_session.commit()
        return lender

    return _make


@pytest.fixture(scope='function')
def lender(make_lender):
    return make_lender("Jo Lender")


def reload(obj):
    """Re-read a row after another unit of work changed it."""
    db.session.expire_all()
    return db.session.get(type(obj), obj.id)
