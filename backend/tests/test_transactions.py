"""
Transaction upload.

Verifies:
- Roster sales carry the roster identity and approval provenance
- Re-uploads return the original server id as a duplicate
- Unknown accounts are accepted with the station's identity hints
- Cash sales bill the placeholder account with synthetic family ids
- A missing placeholder fails only the cash items
- Line access and validation are checked before anything is stored
- An unexpected fault rolls back the whole batch
"""

from decimal import Decimal

from linesync.models import PosTransaction, SecurityEvent
from linesync.services import idempotency_service, transaction_sync_service
from conftest import CASH_CLOUD_ID, line_date, sale


def upload(client, headers, *items):
    return client.post("/api/pos/transactions", json={"transactions": list(items)}, headers=headers)


class TestRosterSales:

    def test_sale_uses_roster_identity(self, client, db_session, roster, cashier, cashier_headers):
        resp = upload(client, cashier_headers, sale(1, timestampUTC="2024-09-03T17:02:11Z"))
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["success"] is True
        [result] = body["results"]
        assert result == {"localId": 1, "syncKey": "7-1-1", "serverId": result["serverId"], "success": True}

        tx = db_session.get(PosTransaction, result["serverId"])
        assert tx.student_id == 100234
        assert tx.family_id == 501
        assert tx.school_code == "ELM"
        assert tx.item_type == "L"
        assert tx.transaction_code == "L"
        assert tx.approval_method == "DC"
        assert tx.approval_code == "DC-2024"
        assert tx.price == Decimal("3.25")
        assert tx.line_type == "L"
        assert tx.line_num == 10
        assert tx.pos_id == 10
        assert tx.line_date == line_date()
        assert tx.user_id == cashier.id
        assert tx.station_student_id == "100234"
        assert tx.transaction_timestamp.hour == 17

    def test_non_reimbursable_item_has_no_approval(self, client, db_session, roster, cashier_headers):
        resp = upload(client, cashier_headers, sale(1, item_id=601, price="0.75"))
        tx = db_session.get(PosTransaction, resp.get_json()["results"][0]["serverId"])
        assert tx.item_type == "C"
        assert tx.approval_method is None
        assert tx.approval_code is None

    def test_station_item_type_and_code_win(self, client, db_session, roster, cashier_headers):
        resp = upload(client, cashier_headers, sale(1, item_id=601, itemType="X", transactionCode="F"))
        tx = db_session.get(PosTransaction, resp.get_json()["results"][0]["serverId"])
        assert tx.item_type == "X"
        assert tx.transaction_code == "F"
        assert tx.approval_method == "DC"

    def test_unknown_item_falls_back_to_c(self, client, db_session, roster, cashier_headers):
        resp = upload(client, cashier_headers, sale(1, item_id=999))
        tx = db_session.get(PosTransaction, resp.get_json()["results"][0]["serverId"])
        assert (tx.item_type, tx.transaction_code) == ("C", "C")

    def test_numeric_user_id_from_station(self, client, db_session, roster, cashier, cashier_headers):
        resp = upload(client, cashier_headers, sale(1, userId="42"), sale(2, userId="jdoe"))
        first, second = resp.get_json()["results"]
        assert db_session.get(PosTransaction, first["serverId"]).user_id == 42
        assert db_session.get(PosTransaction, second["serverId"]).user_id == cashier.id

    def test_line_defaults_when_omitted(self, client, db_session, roster, cashier_headers):
        item = sale(1)
        del item["mealType"], item["lineNum"]
        resp = upload(client, cashier_headers, item)
        assert resp.status_code == 200
        tx = db_session.get(PosTransaction, resp.get_json()["results"][0]["serverId"])
        assert (tx.line_type, tx.line_num) == ("L", 10)

    def test_lowercase_meal_type_is_normalized(self, client, db_session, roster, cashier_headers):
        resp = upload(client, cashier_headers, sale(1, mealType="l"))
        assert resp.status_code == 200
        tx = db_session.get(PosTransaction, resp.get_json()["results"][0]["serverId"])
        assert tx.line_type == "L"

    def test_unknown_account_uses_station_hints(self, client, db_session, roster, cashier_headers):
        resp = upload(client, cashier_headers, sale(1, student_id="777777", familyId=88, schoolCode="HS"))
        assert resp.status_code == 200
        tx = db_session.get(PosTransaction, resp.get_json()["results"][0]["serverId"])
        assert tx.student_id == 777777
        assert tx.family_id == 88
        assert tx.school_code == "HS"
        assert tx.approval_method is None


class TestIdempotency:

    def test_reupload_returns_original_id(self, client, db_session, roster, cashier_headers):
        first = upload(client, cashier_headers, sale(1), sale(2)).get_json()["results"]
        again = upload(client, cashier_headers, sale(1), sale(2), sale(3)).get_json()["results"]

        assert [r["serverId"] for r in again[:2]] == [r["serverId"] for r in first]
        assert all(r["duplicate"] for r in again[:2])
        assert "duplicate" not in again[2]
        assert db_session.query(PosTransaction).count() == 3

    def test_same_key_twice_in_one_batch(self, client, db_session, roster, cashier_headers):
        results = upload(client, cashier_headers, sale(1), sale(1)).get_json()["results"]
        assert results[0]["serverId"] == results[1]["serverId"]
        assert results[1]["duplicate"] is True
        assert db_session.query(PosTransaction).count() == 1

    def test_deleted_sale_is_not_resurrected(self, client, db_session, roster, cashier_headers):
        [created] = upload(client, cashier_headers, sale(1)).get_json()["results"]
        client.post("/api/pos/deletions", json={"deletions": [{
            "syncKey": "7-1-d1", "originalSyncKey": "7-1-1", "tableName": "transactions", "localId": 9,
        }]}, headers=cashier_headers)

        [retried] = upload(client, cashier_headers, sale(1)).get_json()["results"]
        assert retried["duplicate"] is True
        assert retried["serverId"] == created["serverId"]
        assert db_session.query(PosTransaction).count() == 0

    def test_concurrent_insert_loser_reports_winner(self, client, db_session, roster, cashier_headers, monkeypatch):
        [created] = upload(client, cashier_headers, sale(1)).get_json()["results"]

        # The next lookup misses, as if another batch had not yet committed
        real_find = idempotency_service.find_existing
        misses = []

        def find_after_race(*args, **kwargs):
            if not misses:
                misses.append(True)
                return None
            return real_find(*args, **kwargs)

        monkeypatch.setattr(idempotency_service, "find_existing", find_after_race)

        [retried] = upload(client, cashier_headers, sale(1)).get_json()["results"]
        assert misses == [True]
        assert retried["success"] is True
        assert retried["duplicate"] is True
        assert retried["serverId"] == created["serverId"]
        assert db_session.query(PosTransaction).count() == 1

    def test_items_in_one_batch_are_independent(self, client, db_session, roster, cashier_headers):
        [seen] = upload(client, cashier_headers, sale(1)).get_json()["results"]

        resp = upload(client, cashier_headers, sale(2), sale(1), sale(3, student_id="777777", familyId=88))
        assert resp.status_code == 200
        fresh, repeat, unknown = resp.get_json()["results"]

        assert fresh["success"] is True and "duplicate" not in fresh
        assert repeat["duplicate"] is True
        assert repeat["serverId"] == seen["serverId"]
        assert unknown["success"] is True and "duplicate" not in unknown

        assert db_session.query(PosTransaction).count() == 3
        assert db_session.get(PosTransaction, unknown["serverId"]).family_id == 88


class TestCashSales:

    def test_cash_sales_get_synthetic_family_ids(self, client, db_session, roster, cash_account, cashier_headers):
        resp = upload(client, cashier_headers, sale(1, student_id="C1"), sale(2, student_id="c2"), sale(3))
        body = resp.get_json()
        assert "warning" not in body

        first, second, roster_sale = (db_session.get(PosTransaction, r["serverId"]) for r in body["results"])
        assert first.student_id == CASH_CLOUD_ID
        assert first.family_id == 9500000
        assert second.family_id == 9500001
        assert first.transaction_code == "C"
        assert first.school_code is None
        assert first.station_student_id == "C1"
        assert second.station_student_id == "c2"
        assert roster_sale.family_id == 501

    def test_allocation_continues_across_batches(self, client, db_session, roster, cash_account, cashier_headers):
        upload(client, cashier_headers, sale(1, student_id="C1"))
        resp = upload(client, cashier_headers, sale(1, student_id="C1"), sale(2, student_id="C2"))
        first, second = resp.get_json()["results"]
        assert first["duplicate"] is True
        assert db_session.get(PosTransaction, second["serverId"]).family_id == 9500001

    def test_missing_placeholder_fails_only_cash_items(self, client, db_session, roster, cashier_headers):
        resp = upload(client, cashier_headers, sale(1), sale(2, student_id="C1"), sale(3), sale(4, student_id="C2"))
        assert resp.status_code == 200
        body = resp.get_json()

        assert body["success"] is True
        assert body["warning"] == "CASH_STUDENT_NOT_CONFIGURED"
        assert "999999999" in body["warningMessage"]
        assert body["cashTransactionsFailed"] is True

        ok1, cash1, ok2, cash2 = body["results"]
        assert ok1["success"] and ok2["success"]
        for failed in (cash1, cash2):
            assert failed["success"] is False
            assert failed["serverId"] is None
            assert failed["error"] == "CASH_STUDENT_NOT_CONFIGURED"
            assert failed["errorMessage"]
        assert db_session.query(PosTransaction).count() == 2


class TestRejectedBatches:

    def test_validation_error_stores_nothing(self, client, db_session, roster, cashier_headers):
        bad = sale(2)
        del bad["syncKey"]
        resp = upload(client, cashier_headers, sale(1), bad)
        assert resp.status_code == 400
        assert resp.get_json() == {
            "success": False,
            "error": "VALIDATION_FAILED",
            "message": "transactions.1.syncKey is required",
            "field": "transactions.1.syncKey",
        }
        assert db_session.query(PosTransaction).count() == 0

    def test_bad_account_token_is_validation_error(self, client, db_session, roster, cashier_headers):
        resp = upload(client, cashier_headers, sale(1, student_id="abc"))
        assert resp.status_code == 400
        assert resp.get_json()["field"] == "transactions.0.studentId"

    def test_unpermitted_line_rejects_whole_batch(self, client, db_session, roster, cashier_headers):
        resp = upload(client, cashier_headers, sale(1), sale(2, lineNum=11))
        assert resp.status_code == 403
        body = resp.get_json()
        assert body["error"] == "LINE_ACCESS_DENIED"
        assert body["lines"] == ["L11"]
        assert db_session.query(PosTransaction).count() == 0
        assert db_session.query(SecurityEvent).filter_by(event_type="LINE_ACCESS_DENIED").count() == 1

    def test_wildcard_session_may_use_any_line(self, client, db_session, roster, admin_headers):
        resp = upload(client, admin_headers, sale(1, mealType="B", lineNum=3))
        assert resp.status_code == 200

    def test_unexpected_fault_rolls_back_batch(self, client, db_session, roster, cashier_headers, monkeypatch):
        calls = []
        real_classify = transaction_sync_service.classify_item

        def failing_classify(*args):
            calls.append(args)
            if len(calls) == 2:
                raise RuntimeError("catalog unavailable")
            return real_classify(*args)

        monkeypatch.setattr(transaction_sync_service, "classify_item", failing_classify)

        resp = upload(client, cashier_headers, sale(1), sale(2), sale(3))
        assert resp.status_code == 500
        assert resp.get_json() == {
            "success": False,
            "error": "BATCH_FAILED",
            "message": "Batch was not saved; retry the upload",
        }
        assert db_session.query(PosTransaction).count() == 0


class TestClassifyItem:

    def test_resolution_order(self):
        classify = transaction_sync_service.classify_item
        assert classify("B", "F", "L", is_cash=False) == ("B", "F")
        assert classify(None, None, "L", is_cash=False) == ("L", "L")
        assert classify(None, None, "L", is_cash=True) == ("L", "C")
        assert classify(None, None, None, is_cash=False) == ("C", "C")
