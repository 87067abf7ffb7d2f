"""
Sync validation.

Verifies:
- count mode is in sync only when the station holds nothing
- full mode compares key sets; server-only keys do not count against the station
- legacy lcs ids resolve to the account's cloud id
"""

from conftest import LINE_DATE, payment, sale


def validate(client, headers, **body):
    payload = {"studentId": 100234, "lineDate": LINE_DATE, "mealType": "L"}
    payload.update(body)
    return client.post("/api/pos/sync/validate", json=payload, headers=headers)


def seed(client, headers):
    client.post("/api/pos/transactions", json={"transactions": [sale(1), sale(2)]}, headers=headers)
    client.post("/api/pos/payments", json={"payments": [payment(1)]}, headers=headers)


class TestCountMode:

    def test_in_sync_only_when_station_is_empty(self, client, db_session, roster, cashier_headers):
        seed(client, cashier_headers)

        body = validate(client, cashier_headers, transactionCount=0, paymentCount=0).get_json()
        assert body["mode"] == "count"
        assert body["isInSync"] is True
        assert body["transactions"] == {"clientCount": 0, "serverCount": 2}
        assert body["payments"] == {"clientCount": 0, "serverCount": 1}

        body = validate(client, cashier_headers, transactionCount=2, paymentCount=1).get_json()
        assert body["isInSync"] is False

    def test_mode_defaults_to_count(self, client, db_session, roster, cashier_headers):
        body = validate(client, cashier_headers).get_json()
        assert body["mode"] == "count"
        assert body["isInSync"] is True


class TestFullMode:

    def test_all_station_keys_on_server(self, client, db_session, roster, cashier_headers):
        seed(client, cashier_headers)
        body = validate(
            client, cashier_headers, mode="full",
            transactionSyncKeys=["7-1-1"], paymentSyncKeys=["7-1-p1"],
        ).get_json()

        assert body["isInSync"] is True
        assert body["transactions"] == {
            "clientCount": 1,
            "serverCount": 2,
            "missingFromServer": [],
            "missingFromClient": ["7-1-2"],
        }
        assert body["payments"]["missingFromServer"] == []

    def test_missing_from_server(self, client, db_session, roster, cashier_headers):
        seed(client, cashier_headers)
        body = validate(
            client, cashier_headers, mode="full",
            transactionSyncKeys=["7-1-1", "7-1-2", "7-1-3"], paymentSyncKeys=[],
        ).get_json()

        assert body["isInSync"] is False
        assert body["transactions"]["missingFromServer"] == ["7-1-3"]
        assert body["payments"]["missingFromClient"] == ["7-1-p1"]

    def test_legacy_id_resolves_to_cloud_id(self, client, db_session, roster, cashier_headers):
        seed(client, cashier_headers)
        body = validate(client, cashier_headers, studentId=4321, mode="full",
                        transactionSyncKeys=["7-1-1", "7-1-2"]).get_json()
        assert body["isInSync"] is True
        assert body["transactions"]["serverCount"] == 2

    def test_other_scope_is_excluded(self, client, db_session, roster, cashier_headers):
        seed(client, cashier_headers)
        body = validate(client, cashier_headers, mealType="B", mode="full",
                        transactionSyncKeys=[]).get_json()
        assert body["transactions"]["serverCount"] == 0


class TestValidation:

    def test_bad_mode(self, client, db_session, cashier_headers):
        resp = validate(client, cashier_headers, mode="everything")
        assert resp.status_code == 400
        assert resp.get_json()["field"] == "mode"

    def test_meal_type_must_be_one_letter(self, client, db_session, cashier_headers):
        resp = validate(client, cashier_headers, mealType="LU")
        assert resp.status_code == 400
        assert resp.get_json()["field"] == "mealType"
