"""pytest configuration and shared fixtures."""
from __future__ import annotations

import sys
from datetime import date, time
from pathlib import Path

import pytest

# Ensure the project root is available on sys.path so tests can import the package.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from salonbook import create_app  # noqa: E402
from salonbook.extensions import db  # noqa: E402
from salonbook.identity import Identity, issue_token  # noqa: E402
from salonbook.models import Service, Stylist, User  # noqa: E402

TEST_SETTINGS = {
    "TESTING": True,
    "SECRET_KEY": "test-secret",
    "SQLALCHEMY_DATABASE_URI": "sqlite://",
}

# A Monday; 2030-01-06 is the Sunday before it.
MONDAY = date(2030, 1, 7)
SUNDAY = date(2030, 1, 6)

CUSTOMER_ID = 1
SECOND_CUSTOMER_ID = 2
STYLIST_USER_ID = 3
ADMIN_ID = 4
STYLIST_ID = 1
SERVICE_ID = 1  # 45 minutes, $50.00
LONG_SERVICE_ID = 2  # 90 minutes, $120.00


def seed_catalog(app, customer_points: int = 0, second_customer_points: int = 0) -> None:
    with app.app_context():
        customer = User(user_id=CUSTOMER_ID, name="Casey Customer", email="casey@example.com",
                        role="customer", point_balance=customer_points)
        second = User(user_id=SECOND_CUSTOMER_ID, name="Robin Customer", email="robin@example.com",
                      role="customer", point_balance=second_customer_points)
        stylist_user = User(user_id=STYLIST_USER_ID, name="Sam Stylist", email="sam@example.com", role="stylist")
        admin = User(user_id=ADMIN_ID, name="Alex Admin", email="alex@example.com", role="admin")
        stylist = Stylist(stylist_id=STYLIST_ID, user_id=STYLIST_USER_ID, title="Senior Stylist",
                          work_start=time(9, 0), work_end=time(18, 0), days_off=[])
        cut = Service(service_id=SERVICE_ID, name="Signature Cut", price_cents=5000, duration_minutes=45)
        colour = Service(service_id=LONG_SERVICE_ID, name="Full Colour", price_cents=12000, duration_minutes=90)

        db.session.add_all([customer, second, stylist_user, admin, stylist, cut, colour])
        db.session.commit()


@pytest.fixture
def app():
    flask_app = create_app(TEST_SETTINGS)
    with flask_app.app_context():
        db.create_all()

    yield flask_app

    with flask_app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def catalog(app):
    seed_catalog(app)
    return app


@pytest.fixture
def customer() -> Identity:
    return Identity(user_id=CUSTOMER_ID, role="customer")


@pytest.fixture
def stylist() -> Identity:
    return Identity(user_id=STYLIST_USER_ID, role="stylist")


@pytest.fixture
def admin() -> Identity:
    return Identity(user_id=ADMIN_ID, role="admin")


@pytest.fixture
def auth_headers(app):
    def _headers(identity: Identity) -> dict[str, str]:
        with app.app_context():
            return {"Authorization": f"Bearer {issue_token(identity)}"}

    return _headers


@pytest.fixture
def file_app(tmp_path):
    """App backed by an on-disk SQLite file so several threads can share it."""
    settings = dict(TEST_SETTINGS)
    settings["SQLALCHEMY_DATABASE_URI"] = f"sqlite:///{tmp_path / 'salonbook.db'}"
    settings["SQLALCHEMY_ENGINE_OPTIONS"] = {"connect_args": {"timeout": 30, "check_same_thread": False}}
    flask_app = create_app(settings)
    with flask_app.app_context():
        db.create_all()

    yield flask_app

    with flask_app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()
