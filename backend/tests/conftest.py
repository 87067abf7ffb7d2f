"""
Pytest fixtures for linesync backend tests.

Provides test database setup, seeded roster/menu/staff, station sessions,
and test client.
"""

from datetime import date
from decimal import Decimal

import pytest
from linesync import create_app
from linesync.extensions import db
from linesync.models import Family, Student, StudentStatus, MenuItem
from linesync.services.auth_service import create_user
from linesync.services import session_service, station_service


LINE_DATE = "2024-09-03"
CASH_LCS_ID = 999999999
CASH_CLOUD_ID = 900000001

TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'SQLALCHEMY_TRACK_MODIFICATIONS': False,
}


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TEST_CONFIG)

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
def roster(db_session):
    """
    Two roster accounts and one catalog per item type.

    - 100234: family 501, free status with approval provenance
    - 100235: family 502, no status
    """
    free = StudentStatus(status="F", approval_method="DC", approval_code="DC-2024")
    db_session.add(free)
    db_session.add_all([
        Family(fam_perm_id=501, first_name="Ada", last_name="Lovelace"),
        Family(fam_perm_id=502, first_name="Alan", last_name="Turing"),
    ])
    db_session.flush()
    db_session.add_all([
        Student(cloud_id=100234, lcs_id=4321, fam_perm_id=501, first_name="Byron",
                last_name="Lovelace", grade="05", school_code="ELM", status_id=free.id),
        Student(cloud_id=100235, lcs_id=4322, fam_perm_id=502, first_name="Ethel",
                last_name="Turing", grade="07", school_code="MID"),
    ])
    db_session.add_all([
        MenuItem(item_id=501, description="Lunch Plate", item_type="L", price=Decimal("3.25")),
        MenuItem(item_id=601, description="Cookie", item_type="C", price=Decimal("0.75")),
        MenuItem(item_id=701, description="Milk", item_type="M", price=Decimal("0.50")),
    ])
    db_session.commit()


@pytest.fixture(scope='function')
def cash_account(db_session):
    """The placeholder account that anonymous cash sales are billed to."""
    family = Family(fam_perm_id=CASH_LCS_ID, first_name="Cash", last_name="Sales")
    db_session.add(family)
    db_session.flush()
    account = Student(cloud_id=CASH_CLOUD_ID, lcs_id=CASH_LCS_ID, fam_perm_id=CASH_LCS_ID,
                      first_name="Cash", last_name="Student")
    db_session.add(account)
    db_session.commit()
    return account


@pytest.fixture(scope='function')
def cashier(db_session):
    """Line staff with lunch line 10 only."""
    return create_user("cashier", "Password123!", line_access=["L10"], rounds=4)


@pytest.fixture(scope='function')
def closer(db_session):
    """Line staff who may close lunch line 10."""
    return create_user("closer", "Password123!", line_access=["L10"], line_closer=True, rounds=4)


@pytest.fixture(scope='function')
def admin(db_session):
    """Administrator with every line."""
    return create_user("admin", "Password123!", line_access_all=True, line_closer=True,
                       is_admin=True, rounds=4)


def open_station_session(user, device_id: str = "device-1"):
    """Create a station and a live session for user. Returns (session, token)."""
    station = station_service.find_or_create_station(device_id=device_id, browser="chrome")
    return session_service.create_session(user, station)


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def cashier_session(cashier):
    return open_station_session(cashier)


@pytest.fixture(scope='function')
def cashier_headers(cashier_session):
    _, token = cashier_session
    return auth_headers(token)


@pytest.fixture(scope='function')
def admin_session(admin):
    return open_station_session(admin, device_id="device-admin")


@pytest.fixture(scope='function')
def admin_headers(admin_session):
    _, token = admin_session
    return auth_headers(token)


def sale(local_id: int, student_id="100234", item_id=501, price="3.25", session_id=1, **extra) -> dict:
    """A transaction item as a station uploads it."""
    item = {
        "syncKey": f"7-{session_id}-{local_id}",
        "localId": local_id,
        "studentId": student_id,
        "itemId": item_id,
        "price": price,
        "lineDate": LINE_DATE,
        "lineLogId": 7,
        "stationSessionId": session_id,
        "mealType": "L",
        "lineNum": 10,
    }
    item.update(extra)
    return item


def payment(local_id: int, student_id="100234", payment_type="CASH", amount="20.00", session_id=1, **extra) -> dict:
    """A payment item as a station uploads it."""
    item = {
        "syncKey": f"7-{session_id}-p{local_id}",
        "localId": local_id,
        "studentId": student_id,
        "paymentType": payment_type,
        "amount": amount,
        "lineDate": LINE_DATE,
        "lineLogId": 7,
        "stationSessionId": session_id,
        "mealType": "L",
        "lineNum": 10,
    }
    item.update(extra)
    return item


def line_date() -> date:
    return date.fromisoformat(LINE_DATE)
