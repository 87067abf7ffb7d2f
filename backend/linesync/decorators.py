# Overview: Request decorators for station API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import session_service


UNAUTHENTICATED_MESSAGE = "Invalid or expired session"


def bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def unauthenticated():
    return jsonify({
        "success": False,
        "error": "UNAUTHENTICATED",
        "message": UNAUTHENTICATED_MESSAGE,
    }), 401


def require_station_session(f):
    """
    Require a live station session.

    Sets the following Flask g attributes:
    - g.station_session: The resolved StationSession
    - g.pos_user: The session's User

    SECURITY: Returns the same 401 whether the header is missing, the token
    is unknown, the session has ended or idled out, or the user is inactive.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        session = session_service.resolve(bearer_token())
        if not session:
            return unauthenticated()

        g.station_session = session
        g.pos_user = session.user

        return f(*args, **kwargs)

    return decorated_function
