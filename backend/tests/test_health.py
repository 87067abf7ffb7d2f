"""Health endpoint: unauthenticated, degraded without the cash account."""


def test_healthy_with_cash_account(client, db_session, cash_account):
    resp = client.get("/api/pos/health")
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["status"] == "healthy"
    assert body["checks"]["database"]["details"]["accounts"] == 1
    assert body["checks"]["cash_account"]["details"]["cloud_id"] == cash_account.cloud_id


def test_degraded_without_cash_account(client, db_session):
    resp = client.get("/api/pos/health")
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["status"] == "degraded"
    assert body["checks"]["cash_account"]["warning"] == "CASH_STUDENT_NOT_CONFIGURED"
