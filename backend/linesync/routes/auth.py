# Overview: Flask API routes for station login and logout; parses input and returns JSON responses.

# backend/linesync/routes/auth.py
"""
Station Authentication API routes

SECURITY FEATURES:
- bcrypt password verification with one generic failure message
- One live session per user (a new login supersedes the previous one)
- Failed logins recorded as security events
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service, session_service, station_service
from ..services.auth_service import AuthenticationError
from ..services.security_service import log_security_event
from ..decorators import require_station_session
from ..validation import coerce_int


auth_bp = Blueprint("auth", __name__, url_prefix="/api/pos")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate line staff on a station and create a session token.

    Request body:
    {
        "username": "jdoe",
        "password": "...",
        "deviceId": "c0ffee...",
        "browser": "chrome",
        "isPrivate": false,
        "macAddress": "AA:BB:CC:DD:EE:FF"  (optional)
    }

    The token is returned once; stations send it as Authorization: Bearer <token>.
    """
    try:
        data = request.get_json(silent=True) or {}
        username = (data.get("username") or "").strip()
        password = data.get("password")
        device_id = (data.get("deviceId") or "").strip()
        browser = (data.get("browser") or "unknown").strip()

        if not all([username, password, device_id]):
            return jsonify({
                "success": False,
                "error": "VALIDATION_FAILED",
                "message": "username, password and deviceId required",
            }), 400

        user_agent = request.headers.get("User-Agent")
        ip_address = request.remote_addr

        try:
            user = auth_service.authenticate(username, password)
        except AuthenticationError as e:
            log_security_event(
                user_id=None,
                event_type="LOGIN_FAILED",
                success=False,
                resource=request.path,
                action=request.method,
                reason=f"Invalid credentials for {username}",
                ip_address=ip_address,
                user_agent=user_agent,
            )
            return jsonify({"success": False, "error": "INVALID_CREDENTIALS", "message": str(e)}), 401

        station = station_service.find_or_create_station(
            device_id=device_id,
            browser=browser,
            is_private=bool(data.get("isPrivate")),
            mac_address=data.get("macAddress"),
            ip_address=ip_address,
        )
        session, token = session_service.create_session(user, station)

        log_security_event(
            user_id=user.id,
            event_type="LOGIN",
            success=True,
            resource=request.path,
            action=request.method,
            ip_address=ip_address,
            user_agent=user_agent,
            station_id=station.id,
        )

        return jsonify({
            "success": True,
            "token": token,
            "user": user.to_dict(),
            "station": station.to_dict(),
            "session": session.to_dict(),
        }), 200

    except Exception:
        current_app.logger.exception("Failed to login station user")
        return jsonify({"success": False, "error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_station_session
def logout_route():
    """
    End the station session.

    Request body (optional):
    {
        "pendingCount": 0   (records still buffered on the station)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        pending_count = coerce_int(data.get("pendingCount")) or 0

        session = session_service.logout(g.station_session, pending_count=pending_count)

        log_security_event(
            user_id=session.user_id,
            event_type="LOGOUT",
            success=True,
            resource=request.path,
            action=request.method,
            reason=f"pending={pending_count}",
            ip_address=request.remote_addr,
            user_agent=request.headers.get("User-Agent"),
            station_id=session.station_id,
        )

        return jsonify({"success": True, "session": session.to_dict()}), 200

    except Exception:
        current_app.logger.exception("Failed to logout station session")
        return jsonify({"success": False, "error": "Internal server error"}), 500
