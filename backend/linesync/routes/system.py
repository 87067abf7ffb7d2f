# backend/linesync/routes/system.py
"""
System health endpoint.

Station clients poll this before uploading to decide whether the server is
reachable; it is unauthenticated.
"""

import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import StationSession, Student
from ..models.stations import SESSION_STATUS_ACTIVE, SESSION_STATUS_SYNCING
from ..services.cash_service import find_cash_account
from linesync.time_utils import utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api/pos")


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        account_count = db.session.query(Student).count()
        live_sessions = db.session.query(StationSession).filter(
            StationSession.sync_status.in_([SESSION_STATUS_ACTIVE, SESSION_STATUS_SYNCING]),
            StationSession.closed_at.is_(None),
        ).count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "accounts": account_count,
                "live_sessions": live_sessions,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_cash_account_health() -> dict:
    """
    Cash sales need the placeholder account; without it only cash items fail,
    so a missing account degrades rather than fails the check.
    """
    try:
        account = find_cash_account()
    except Exception:
        current_app.logger.exception("Cash account health check failed")
        return {"status": "unhealthy", "error": "Database error"}

    if account is None:
        return {
            "status": "degraded",
            "warning": "CASH_STUDENT_NOT_CONFIGURED",
            "details": {"lcs_id": current_app.config["CASH_ACCOUNT_LCS_ID"]},
        }
    return {"status": "healthy", "details": {"cloud_id": account.cloud_id}}


@system_bp.get("/health")
def health():
    """
    Health check endpoint.

    Returns:
    - 200: healthy or degraded (still accepting uploads)
    - 503: database unreachable
    """
    start_time = time.time()

    database_health = check_database_health()
    cash_health = (
        check_cash_account_health()
        if database_health["status"] != "unhealthy"
        else {"status": "unknown"}
    )

    if database_health["status"] == "unhealthy":
        overall_status = "unhealthy"
        http_status = 503
    elif cash_health["status"] == "degraded":
        overall_status = "degraded"
        http_status = 200  # Degraded is still operational
    else:
        overall_status = "healthy"
        http_status = 200

    total_elapsed_ms = (time.time() - start_time) * 1000

    response = {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round(total_elapsed_ms, 2),
        "checks": {
            "database": database_health,
            "cash_account": cash_health,
        }
    }

    return response, http_status
