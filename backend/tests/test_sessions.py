"""
Station sessions, abilities and login/logout.

Verifies:
- Abilities match verbatim or through a prefix wildcard
- Only active, unclosed, recently used sessions resolve
- A new login supersedes the user's previous session
- Logout with buffered records leaves the session syncing
- Every authentication failure gets the same 401 body
"""

from datetime import timedelta

import pytest

from linesync.models import SecurityEvent, StationSession, Station
from linesync.models.stations import (
    SESSION_STATUS_ABANDONED,
    SESSION_STATUS_ACTIVE,
    SESSION_STATUS_SYNCED,
    SESSION_STATUS_SYNCING,
)
from linesync.services import session_service
from conftest import auth_headers, open_station_session


class TestAbilities:

    @pytest.mark.parametrize(
        "granted,requested,allowed",
        [
            (["line:L10"], "line:L10", True),
            (["line:L10"], "line:L1", False),
            (["line:L10"], "line:B10", False),
            (["line:*"], "line:B5", True),
            (["report:*"], "line:L10", False),
            ([], "line:L10", False),
            (None, "line:L10", False),
        ],
    )
    def test_has_ability(self, granted, requested, allowed):
        assert session_service.has_ability(granted, requested) is allowed

    def test_abilities_from_line_access(self, cashier, admin):
        assert session_service.abilities_for_user(cashier) == ["line:L10"]
        assert session_service.abilities_for_user(admin) == ["line:*"]


class TestResolve:

    def test_resolves_live_token(self, cashier_session):
        session, token = cashier_session
        assert session_service.resolve(token).id == session.id

    @pytest.mark.parametrize("token", [None, "", "not-a-token"])
    def test_unknown_token(self, cashier_session, token):
        assert session_service.resolve(token) is None

    def test_idle_session_is_abandoned(self, db_session, cashier_session):
        session, token = cashier_session
        session.last_activity_at = session.last_activity_at - timedelta(minutes=241)
        db_session.commit()

        assert session_service.resolve(token) is None
        db_session.refresh(session)
        assert session.sync_status == SESSION_STATUS_ABANDONED
        assert session.closed_reason == "Idle timeout"

    def test_deactivated_user(self, db_session, cashier, cashier_session):
        _, token = cashier_session
        cashier.is_active = False
        db_session.commit()
        assert session_service.resolve(token) is None

    def test_new_login_supersedes_previous(self, db_session, cashier):
        first, first_token = open_station_session(cashier, device_id="device-1")
        second, second_token = open_station_session(cashier, device_id="device-2")

        assert session_service.resolve(first_token) is None
        assert session_service.resolve(second_token).id == second.id
        db_session.refresh(first)
        assert first.sync_status == SESSION_STATUS_ABANDONED

    def test_sweep_abandons_idle_syncing_sessions(self, db_session, cashier_session):
        session, _ = cashier_session
        session_service.logout(session, pending_count=3)
        session.last_activity_at = session.last_activity_at - timedelta(hours=5)
        db_session.commit()

        assert session_service.sweep_idle_sessions() == 1
        db_session.refresh(session)
        assert session.sync_status == SESSION_STATUS_ABANDONED


class TestLoginRoute:

    def test_login_creates_session_and_station(self, client, db_session, cashier):
        resp = client.post("/api/pos/login", json={
            "username": "cashier",
            "password": "Password123!",
            "deviceId": "tablet-7",
            "browser": "safari",
            "macAddress": "AA:BB:CC:DD:EE:FF",
        })
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["success"] is True
        assert body["session"]["abilities"] == ["line:L10"]
        assert body["session"]["sync_status"] == SESSION_STATUS_ACTIVE

        station = db_session.query(Station).filter_by(device_id="tablet-7").one()
        assert station.mac_address == "AA:BB:CC:DD:EE:FF"
        assert session_service.resolve(body["token"]).station_id == station.id

    def test_same_device_reuses_station(self, client, db_session, cashier):
        creds = {"username": "cashier", "password": "Password123!", "deviceId": "tablet-7", "browser": "safari"}
        client.post("/api/pos/login", json=creds)
        client.post("/api/pos/login", json=creds)
        assert db_session.query(Station).count() == 1
        assert db_session.query(StationSession).count() == 2

    def test_bad_password_is_logged(self, client, db_session, cashier):
        resp = client.post("/api/pos/login", json={
            "username": "cashier", "password": "wrong", "deviceId": "tablet-7",
        })
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "INVALID_CREDENTIALS"

        event = db_session.query(SecurityEvent).filter_by(event_type="LOGIN_FAILED").one()
        assert event.success is False

    def test_missing_fields(self, client, db_session):
        resp = client.post("/api/pos/login", json={"username": "cashier"})
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "VALIDATION_FAILED"


class TestLogoutRoute:

    def test_logout_without_pending_records(self, client, db_session, cashier_session, cashier_headers):
        session, token = cashier_session
        resp = client.post("/api/pos/logout", json={"pendingCount": 0}, headers=cashier_headers)
        assert resp.status_code == 200

        db_session.refresh(session)
        assert session.sync_status == SESSION_STATUS_SYNCED
        assert session.closed_at is not None
        assert session_service.resolve(token) is None

    def test_logout_with_pending_records(self, client, db_session, cashier_session, cashier_headers):
        session, token = cashier_session
        resp = client.post("/api/pos/logout", json={"pendingCount": 4}, headers=cashier_headers)
        assert resp.status_code == 200

        db_session.refresh(session)
        assert session.sync_status == SESSION_STATUS_SYNCING
        assert session.closed_at is None
        assert session_service.resolve(token) is None


class TestUnauthenticated:

    @pytest.mark.parametrize(
        "method,path",
        [
            ("POST", "/api/pos/transactions"),
            ("POST", "/api/pos/payments"),
            ("POST", "/api/pos/deletions"),
            ("POST", "/api/pos/sync/validate"),
            ("POST", "/api/pos/logout"),
            ("GET", "/api/pos/accounts/100234/transactions"),
            ("POST", "/api/pos/lines/L/10/open"),
        ],
    )
    def test_requires_session(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path, json={})
        assert resp.status_code == 401
        assert resp.get_json() == {
            "success": False,
            "error": "UNAUTHENTICATED",
            "message": "Invalid or expired session",
        }

    def test_ended_session_gets_same_body(self, client, db_session, cashier_session):
        session, token = cashier_session
        session_service.logout(session)
        resp = client.post("/api/pos/transactions", json={"transactions": []}, headers=auth_headers(token))
        assert resp.status_code == 401
        assert resp.get_json()["message"] == "Invalid or expired session"
