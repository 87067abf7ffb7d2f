# Overview: Flask API routes for line log operations; parses input and returns JSON responses.

# backend/linesync/routes/lines.py
"""
Line Log API Routes

DESIGN:
- Line lifecycle: not_opened -> open -> closed (immutable once closed)
- Opening binds the caller's station session to the day's line log
- Closing waits until every other station session on the line has synced

SECURITY:
- Every route requires a live station session with the line's ability
- Closing additionally requires the closer privilege
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import line_service
from ..services.line_service import LineLogError, LINE_ACCESS_DENIED
from ..services.security_service import log_security_event
from ..decorators import require_station_session
from ..validation import ValidationError
from linesync.time_utils import parse_line_date


lines_bp = Blueprint("lines", __name__, url_prefix="/api/pos/lines")


def _line_date_arg(data: dict):
    raw = data.get("lineDate") or request.args.get("lineDate")
    if not raw:
        return None
    try:
        return parse_line_date(str(raw).strip())
    except ValueError:
        raise ValidationError("lineDate must match the format Y-m-d", "lineDate")


def _line_error_response(e: LineLogError, meal_type: str, line_num: int):
    if e.code == LINE_ACCESS_DENIED:
        session = g.station_session
        log_security_event(
            user_id=session.user_id,
            event_type=LINE_ACCESS_DENIED,
            success=False,
            resource=request.path,
            action=request.method,
            reason=f"No ability for line {meal_type}{line_num}",
            ip_address=request.remote_addr,
            user_agent=request.headers.get("User-Agent"),
            station_id=session.station_id,
        )
    return jsonify({"success": False, "error": e.code, "message": str(e)}), e.status


def _validation_response(e: ValidationError):
    return jsonify({
        "success": False,
        "error": "VALIDATION_FAILED",
        "message": str(e),
        "field": e.field,
    }), 400


@lines_bp.post("/<meal_type>/<int:line_num>/open")
@require_station_session
def open_line_route(meal_type: str, line_num: int):
    """
    Open today's log for a line.

    Request body (optional):
    {
        "startCash": {"20": 2, "5": 4},
        "lineDate": "2024-09-03"
    }
    """
    meal_type = meal_type.upper()
    try:
        data = request.get_json(silent=True) or {}
        log = line_service.open_line(
            g.station_session,
            meal_type,
            line_num,
            start_cash=data.get("startCash"),
            line_date=_line_date_arg(data),
        )
        return jsonify({"success": True, "lineLog": log.to_dict()}), 200

    except ValidationError as e:
        return _validation_response(e)
    except LineLogError as e:
        return _line_error_response(e, meal_type, line_num)
    except Exception:
        current_app.logger.exception("Failed to open line")
        return jsonify({"success": False, "error": "Internal server error"}), 500


@lines_bp.get("/<meal_type>/<int:line_num>/status")
@require_station_session
def line_status_route(meal_type: str, line_num: int):
    """Line log state plus per-status session totals and close readiness."""
    meal_type = meal_type.upper()
    try:
        status = line_service.line_status(
            g.station_session, meal_type, line_num, line_date=_line_date_arg({})
        )
        return jsonify({"success": True, **status}), 200

    except ValidationError as e:
        return _validation_response(e)
    except LineLogError as e:
        return _line_error_response(e, meal_type, line_num)
    except Exception:
        current_app.logger.exception("Failed to load line status")
        return jsonify({"success": False, "error": "Internal server error"}), 500


@lines_bp.post("/<meal_type>/<int:line_num>/close")
@require_station_session
def close_line_route(meal_type: str, line_num: int):
    """
    Close today's log for a line.

    Request body (optional):
    {
        "endCash": {"20": 3, "1": 17},
        "lineDate": "2024-09-03"
    }
    """
    meal_type = meal_type.upper()
    try:
        data = request.get_json(silent=True) or {}
        log = line_service.close_line(
            g.station_session,
            meal_type,
            line_num,
            end_cash=data.get("endCash"),
            line_date=_line_date_arg(data),
        )
        return jsonify({"success": True, "lineLog": log.to_dict()}), 200

    except ValidationError as e:
        return _validation_response(e)
    except LineLogError as e:
        return _line_error_response(e, meal_type, line_num)
    except Exception:
        current_app.logger.exception("Failed to close line")
        return jsonify({"success": False, "error": "Internal server error"}), 500
