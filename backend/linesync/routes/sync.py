# Overview: Flask API routes for offline sync uploads; parses input and returns JSON responses.

# backend/linesync/routes/sync.py
"""
Offline Sync API Routes

WHY: Stations record sales and payments while offline and upload them in
batches once the network is back. Uploads may be retried any number of
times; each record carries a sync key so a retry never double-bills.

FLOW (per batch):
session check -> validation -> line ability check -> per-item processing

RESPONSES:
- 200 with one result per item, in input order
- 400 VALIDATION_FAILED: nothing was processed
- 401 UNAUTHENTICATED
- 403 LINE_ACCESS_DENIED: an item targets a line the session may not use;
  nothing was processed
- 500 BATCH_FAILED: the batch was rolled back; the station retries it
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import (
    transaction_sync_service,
    payment_sync_service,
    deletion_service,
    sync_validation_service,
    history_service,
    session_service,
)
from ..services.batch import SyncContext
from ..services.security_service import log_security_event
from ..decorators import require_station_session
from ..validation import ValidationError
from linesync.time_utils import today, parse_line_date


sync_bp = Blueprint("sync", __name__, url_prefix="/api/pos")


def _context() -> SyncContext:
    session = g.station_session
    return SyncContext(
        user_id=session.user_id,
        session_id=session.id,
        station_id=session.station_id,
    )


def _validation_response(e: ValidationError):
    return jsonify({
        "success": False,
        "error": "VALIDATION_FAILED",
        "message": str(e),
        "field": e.field,
    }), 400


def _batch_failed_response():
    return jsonify({
        "success": False,
        "error": "BATCH_FAILED",
        "message": "Batch was not saved; retry the upload",
    }), 500


def _deny_unpermitted_lines(items):
    """
    403 response if any item targets a line the session may not act on.

    Every item is checked before any is processed.
    """
    session = g.station_session
    denied = sorted({
        f"{item.meal_type}{item.line_num}"
        for item in items
        if not session_service.can_act_on_line(session, item.meal_type, item.line_num)
    })
    if not denied:
        return None

    log_security_event(
        user_id=session.user_id,
        event_type="LINE_ACCESS_DENIED",
        success=False,
        resource=request.path,
        action=request.method,
        reason=f"No ability for line(s) {', '.join(denied)}",
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
        station_id=session.station_id,
    )
    return jsonify({
        "success": False,
        "error": "LINE_ACCESS_DENIED",
        "message": f"Session has no access to line(s) {', '.join(denied)}",
        "lines": denied,
    }), 403


@sync_bp.post("/transactions")
@require_station_session
def upload_transactions_route():
    """
    Upload a batch of sales.

    Request body:
    {
        "transactions": [
            {
                "syncKey": "12-34-1",
                "localId": 1,
                "studentId": "100234" | "C3",
                "itemId": 501,
                "price": 3.25,
                "lineDate": "2024-09-03",
                "lineLogId": 12,
                "stationSessionId": 34,
                "mealType": "L", "lineNum": 10,           (optional)
                "itemType": "L", "transactionCode": "P",  (optional)
                "timestampUTC": "2024-09-03T17:02:11Z",   (optional)
                "familyId": 88, "schoolCode": "HS"        (optional hints)
            }
        ]
    }
    """
    try:
        items = transaction_sync_service.parse_transactions(request.get_json(silent=True))
    except ValidationError as e:
        return _validation_response(e)

    denied = _deny_unpermitted_lines(items)
    if denied:
        return denied

    try:
        batch = transaction_sync_service.submit_batch(items, _context())
        return jsonify(batch.to_dict()), 200
    except Exception:
        current_app.logger.exception("Transaction batch failed")
        return _batch_failed_response()


@sync_bp.post("/payments")
@require_station_session
def upload_payments_route():
    """
    Upload a batch of payments.

    Request body:
    {
        "payments": [
            {
                "syncKey": "12-34-7",
                "localId": 7,
                "studentId": "100234" | "C3",
                "paymentType": "CASH" | "CHECK",
                "amount": 20.00,
                "lineDate": "2024-09-03",
                "memo": "1042", "checkNumber": "1042"   (optional)
            }
        ]
    }
    """
    try:
        items = payment_sync_service.parse_payments(request.get_json(silent=True))
    except ValidationError as e:
        return _validation_response(e)

    denied = _deny_unpermitted_lines(items)
    if denied:
        return denied

    try:
        batch = payment_sync_service.submit_batch(items, _context())
        return jsonify(batch.to_dict()), 200
    except Exception:
        current_app.logger.exception("Payment batch failed")
        return _batch_failed_response()


@sync_bp.post("/deletions")
@require_station_session
def upload_deletions_route():
    """
    Upload a batch of deletions of previously uploaded records.

    Each deletion is checked against the line its original was recorded on.

    Request body:
    {
        "deletions": [
            {
                "syncKey": "12-34-9",
                "originalSyncKey": "12-34-1",
                "tableName": "transactions" | "payments",
                "localId": 9
            }
        ]
    }
    """
    try:
        items = deletion_service.parse_deletions(request.get_json(silent=True))
    except ValidationError as e:
        return _validation_response(e)

    denied = _deny_unpermitted_lines(deletion_service.original_lines(items))
    if denied:
        return denied

    try:
        batch = deletion_service.submit_deletions(items, _context())
        return jsonify(batch.to_dict()), 200
    except Exception:
        current_app.logger.exception("Deletion batch failed")
        return _batch_failed_response()


@sync_bp.post("/sync/validate")
@require_station_session
def validate_sync_route():
    """
    Compare the station's records for one account/date/meal with the server.

    Request body:
    {
        "studentId": 100234,
        "lineDate": "2024-09-03",
        "mealType": "L",
        "mode": "count" | "full",
        "transactionCount": 3, "paymentCount": 1,         (count mode)
        "transactionSyncKeys": [...], "paymentSyncKeys": [...]   (full mode)
    }
    """
    try:
        sync_request = sync_validation_service.parse_request(request.get_json(silent=True))
        return jsonify(sync_validation_service.validate_sync(sync_request)), 200
    except ValidationError as e:
        return _validation_response(e)
    except Exception:
        current_app.logger.exception("Sync validation failed")
        return jsonify({"success": False, "error": "Internal server error"}), 500


@sync_bp.get("/accounts/<int:account_id>/transactions")
@require_station_session
def account_history_route(account_id: int):
    """
    One account's sales and payments for a date and meal, from every station.

    Query params:
    - lineDate: YYYY-MM-DD (default: today)
    - mealType: single letter (default: configured default meal)
    """
    try:
        raw_date = request.args.get("lineDate")
        try:
            line_date = parse_line_date(raw_date) if raw_date else today()
        except ValueError:
            raise ValidationError("lineDate must match the format Y-m-d", "lineDate")
        meal_type = (request.args.get("mealType") or current_app.config["DEFAULT_MEAL_TYPE"]).upper()

        history = history_service.account_history(account_id, line_date, meal_type, g.station_session)
        return jsonify(history), 200

    except ValidationError as e:
        return _validation_response(e)
    except Exception:
        current_app.logger.exception("Failed to load account history")
        return jsonify({"success": False, "error": "Internal server error"}), 500
