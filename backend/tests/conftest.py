"""
Pytest fixtures for the milk delivery backend tests.

Provides the application on an in-memory database, a per-test table wipe,
users of both roles, a seeded catalog entry and bearer-header helpers.
"""

from decimal import Decimal

import bcrypt
import pytest

from milk_delivery import create_app
from milk_delivery.extensions import db
from milk_delivery.models import MilkRate, User, UserRole
from milk_delivery.services import session_service

TEST_PASSWORD = "milk2024a"

# Low-cost hash so fixtures stay fast; verify_password accepts any bcrypt cost
TEST_PASSWORD_HASH = bcrypt.hashpw(TEST_PASSWORD.encode("utf-8"), bcrypt.gensalt(rounds=4)).decode("utf-8")


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test-secret-key',
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


@pytest.fixture(scope='function', autouse=True)
def db_session(app):
    """Fresh data for each test."""
    with app.app_context():
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        db.session.rollback()


def make_user(email: str, role: UserRole = UserRole.SUBSCRIBER, name: str = "Test User") -> User:
    user = User(
        name=name,
        email=email,
        address="12 Lake Road, Pune" if role == UserRole.SUBSCRIBER else None,
        password_hash=TEST_PASSWORD_HASH,
        role=role,
    )
    db.session.add(user)
    db.session.commit()
    return user


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def headers_for(user: User) -> dict:
    _, token = session_service.create_session(user_id=user.id)
    return auth_headers(token)


@pytest.fixture
def subscriber(db_session):
    return make_user("asha@example.com", name="Asha Rao")


@pytest.fixture
def other_subscriber(db_session):
    return make_user("ravi@example.com", name="Ravi Kumar")


@pytest.fixture
def admin(db_session):
    return make_user("admin@milkdelivery.com", role=UserRole.ADMIN, name="Admin User")


@pytest.fixture
def subscriber_headers(subscriber):
    return headers_for(subscriber)


@pytest.fixture
def other_headers(other_subscriber):
    return headers_for(other_subscriber)


@pytest.fixture
def admin_headers(admin):
    return headers_for(admin)


@pytest.fixture
def rate_500(db_session):
    rate = MilkRate(quantity=500, price=Decimal("25.00"), notes="500ml milk")
    db_session.add(rate)
    db_session.commit()
    return rate


@pytest.fixture
def rate_1000(db_session):
    rate = MilkRate(quantity=1000, price=Decimal("50.00"), notes="1L milk")
    db_session.add(rate)
    db_session.commit()
    return rate
