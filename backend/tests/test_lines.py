"""
Line open / status / close.

Verifies:
- opening stamps the log once and binds the caller's session
- a closed line never reopens
- close readiness ignores the caller and waits for other live sessions
- closing requires the closer privilege
"""

from linesync.models import LineLog, SecurityEvent
from linesync.services import session_service
from conftest import LINE_DATE, auth_headers, open_station_session


OPEN_URL = "/api/pos/lines/L/10/open"
STATUS_URL = f"/api/pos/lines/L/10/status?lineDate={LINE_DATE}"
CLOSE_URL = "/api/pos/lines/L/10/close"


def open_line(client, headers, **body):
    return client.post(OPEN_URL, json={"lineDate": LINE_DATE, **body}, headers=headers)


def close_line(client, headers, **body):
    return client.post(CLOSE_URL, json={"lineDate": LINE_DATE, **body}, headers=headers)


class TestOpen:

    def test_open_stamps_and_binds_session(self, client, db_session, cashier, cashier_session, cashier_headers):
        resp = open_line(client, cashier_headers, startCash={"20": 2, "5": 4})
        assert resp.status_code == 200
        log = resp.get_json()["lineLog"]
        assert log["status"] == "open"
        assert log["line_date"] == LINE_DATE
        assert log["open_user_id"] == cashier.id
        assert log["start_cash"] == {"20": 2, "5": 4}

        session, _ = cashier_session
        assert session.line_log_id == log["id"]

    def test_second_open_keeps_first_stamp(self, client, db_session, cashier, closer, cashier_headers):
        first = open_line(client, cashier_headers, startCash={"20": 1}).get_json()["lineLog"]

        _, token = open_station_session(closer, device_id="device-2")
        second = open_line(client, auth_headers(token), startCash={"20": 9}).get_json()["lineLog"]

        assert second["id"] == first["id"]
        assert second["open_user_id"] == cashier.id
        assert second["start_cash"] == {"20": 1}
        assert db_session.query(LineLog).count() == 1

    def test_line_without_ability_is_denied(self, client, db_session, cashier, cashier_headers):
        resp = client.post("/api/pos/lines/B/5/open", json={"lineDate": LINE_DATE}, headers=cashier_headers)
        assert resp.status_code == 403
        assert resp.get_json()["error"] == "LINE_ACCESS_DENIED"
        event = db_session.query(SecurityEvent).filter_by(event_type="LINE_ACCESS_DENIED").one()
        assert event.user_id == cashier.id

    def test_bad_line_date(self, client, db_session, cashier_headers):
        resp = client.post(OPEN_URL, json={"lineDate": "09/03/2024"}, headers=cashier_headers)
        assert resp.status_code == 400
        assert resp.get_json()["field"] == "lineDate"


class TestStatus:

    def test_unopened_line(self, client, db_session, cashier_headers):
        body = client.get(STATUS_URL, headers=cashier_headers).get_json()
        assert body["lineLog"]["status"] == "not_opened"
        assert body["syncInfo"]["readyToClose"] is False

    def test_counts_sessions_by_state(self, client, db_session, cashier, closer, cashier_headers):
        open_line(client, cashier_headers)
        closer_session, token = open_station_session(closer, device_id="device-2")
        open_line(client, auth_headers(token))
        session_service.logout(closer_session, pending_count=3)

        info = client.get(STATUS_URL, headers=cashier_headers).get_json()["syncInfo"]
        assert info == {
            "totalStations": 2,
            "syncedStations": 0,
            "activeStations": 1,
            "syncingStations": 1,
            "abandonedStations": 0,
            "readyToClose": False,
        }


class TestClose:

    def test_close_requires_closer(self, client, db_session, cashier_headers):
        open_line(client, cashier_headers)
        resp = close_line(client, cashier_headers)
        assert resp.status_code == 403
        assert resp.get_json()["error"] == "CLOSER_REQUIRED"

    def test_close_unopened_line(self, client, db_session, closer):
        _, token = open_station_session(closer)
        resp = close_line(client, auth_headers(token))
        assert resp.status_code == 409
        assert resp.get_json()["error"] == "LINE_NOT_OPEN"

    def test_close_waits_for_other_stations(self, client, db_session, cashier_headers, closer):
        open_line(client, cashier_headers)
        _, token = open_station_session(closer, device_id="device-2")
        headers = auth_headers(token)
        open_line(client, headers)

        resp = close_line(client, headers)
        assert resp.status_code == 409
        assert resp.get_json()["error"] == "LINE_NOT_READY"

    def test_close_after_others_synced(self, client, db_session, cashier_session, cashier_headers, closer):
        open_line(client, cashier_headers)
        client.post("/api/pos/logout", json={"pendingCount": 0}, headers=cashier_headers)

        _, token = open_station_session(closer, device_id="device-2")
        headers = auth_headers(token)
        open_line(client, headers)

        resp = close_line(client, headers, endCash={"20": 3})
        assert resp.status_code == 200
        log = resp.get_json()["lineLog"]
        assert log["status"] == "closed"
        assert log["close_user_id"] == closer.id
        assert log["end_cash"] == {"20": 3}

    def test_closed_line_never_reopens(self, client, db_session, closer, cashier):
        _, token = open_station_session(closer)
        headers = auth_headers(token)
        open_line(client, headers)
        assert close_line(client, headers).status_code == 200

        again = open_line(client, headers)
        assert again.status_code == 409
        assert again.get_json()["error"] == "LINE_CLOSED"

        _, cashier_token = open_station_session(cashier, device_id="device-2")
        assert close_line(client, auth_headers(cashier_token)).get_json()["error"] == "CLOSER_REQUIRED"
