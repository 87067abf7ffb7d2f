# Overview: Service-layer operations for station sessions; encapsulates business logic and database work.

"""
Station Session Management Service

WHY: Every upload must be attributable to a station, a user and the lines
that user may act on. A bearer token resolves to exactly one session.

LIFECYCLE:
- active: created at login; the only state in which the token resolves
- syncing: logged out with records still buffered on the device
- synced: logged out with nothing left to upload
- abandoned: superseded by a newer login, idle timeout, or sweep

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage (fast, one-way)
- Idle timeout (Config.SESSION_IDLE_TIMEOUT_MINUTES)
- One live session per user: a new login abandons the previous ones
"""

from __future__ import annotations

import secrets
import hashlib
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import StationSession, Station, User
from ..models.stations import (
    SESSION_STATUS_ACTIVE,
    SESSION_STATUS_SYNCING,
    SESSION_STATUS_SYNCED,
    SESSION_STATUS_ABANDONED,
)
from linesync.time_utils import utcnow


LINE_ABILITY_PREFIX = "line"


def generate_token() -> str:
    """
    Generate cryptographically secure random token.

    Returns 64-character hex string (32 bytes of entropy).
    This is the plaintext token sent to the station (never stored).
    """
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """Hash token for database storage using SHA-256."""
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def _idle_timeout() -> timedelta:
    return timedelta(minutes=current_app.config["SESSION_IDLE_TIMEOUT_MINUTES"])


def line_ability(meal_type: str, line_num: int | str) -> str:
    return f"{LINE_ABILITY_PREFIX}:{meal_type}{line_num}"


def abilities_for_user(user: User) -> list[str]:
    """Line abilities granted to a new session for this user."""
    if user.line_access_all:
        return [f"{LINE_ABILITY_PREFIX}:*"]
    return [f"{LINE_ABILITY_PREFIX}:{code}" for code in (user.line_access or [])]


def has_ability(abilities: list[str] | None, ability: str) -> bool:
    """
    Check an ability against a session's grant list.

    Matches verbatim, or via a wildcard grant: "line:*" covers every
    ability starting with "line:".
    """
    for granted in abilities or []:
        if granted == ability:
            return True
        if granted.endswith(":*") and ability.startswith(granted[:-1]):
            return True
    return False


def can_act_on_line(session: StationSession, meal_type: str, line_num: int | str) -> bool:
    return has_ability(session.abilities, line_ability(meal_type, line_num))


def _close(session: StationSession, status: str, reason: str, now=None) -> None:
    session.sync_status = status
    session.closed_at = now or utcnow()
    session.closed_reason = reason


def create_session(user: User, station: Station) -> tuple[StationSession, str]:
    """
    Create a new active session for user on station.

    Any other live session of the same user (active or syncing, on any
    station) is abandoned first so one user never holds two sessions.

    Returns (session_record, plaintext_token).
    """
    now = utcnow()
    revoke_user_sessions(user.id, reason="Superseded by new login", commit=False)

    plaintext_token = generate_token()
    session = StationSession(
        station_id=station.id,
        user_id=user.id,
        token_hash=hash_token(plaintext_token),
        abilities=abilities_for_user(user),
        sync_status=SESSION_STATUS_ACTIVE,
        opened_at=now,
        last_activity_at=now,
    )
    user.last_login_at = now

    db.session.add(session)
    db.session.commit()

    return session, plaintext_token


def resolve(token: str | None) -> StationSession | None:
    """
    Resolve a bearer token to its session.

    Returns None if:
    - Token is missing or unknown
    - Session is not active, or has been closed
    - Session has been idle past the timeout (it is abandoned here)
    - User account is deactivated

    Updates last_activity_at and the station's last_seen_at on success.
    """
    if not token:
        return None

    now = utcnow()
    session = db.session.query(StationSession).filter_by(
        token_hash=hash_token(token),
        sync_status=SESSION_STATUS_ACTIVE,
        closed_at=None,
    ).first()

    if not session:
        return None

    if now - session.last_activity_at > _idle_timeout():
        _close(session, SESSION_STATUS_ABANDONED, "Idle timeout", now)
        db.session.commit()
        return None

    user = session.user
    if not user or not user.is_active:
        _close(session, SESSION_STATUS_ABANDONED, "User account deactivated", now)
        db.session.commit()
        return None

    session.last_activity_at = now
    if session.station:
        session.station.last_seen_at = now
    db.session.commit()

    return session


def logout(session: StationSession, pending_count: int = 0) -> StationSession:
    """
    End a session from the station.

    With nothing left to upload the session is synced and closed. With
    records still buffered it becomes syncing: the token stops resolving,
    and the line cannot close until a newer login by the same user (which
    flushes the buffer) or the idle sweep abandons it.
    """
    if pending_count > 0:
        session.sync_status = SESSION_STATUS_SYNCING
        session.last_activity_at = utcnow()
    else:
        _close(session, SESSION_STATUS_SYNCED, "User logout")
    db.session.commit()
    return session


def revoke_user_sessions(user_id: int, reason: str = "Revoke all sessions", commit: bool = True) -> int:
    """
    Abandon every live (active or syncing) session for a user.

    Returns count of sessions abandoned.
    """
    now = utcnow()
    sessions = db.session.query(StationSession).filter(
        StationSession.user_id == user_id,
        StationSession.sync_status.in_([SESSION_STATUS_ACTIVE, SESSION_STATUS_SYNCING]),
        StationSession.closed_at.is_(None),
    ).all()

    for session in sessions:
        _close(session, SESSION_STATUS_ABANDONED, reason, now)

    if commit:
        db.session.commit()
    return len(sessions)


def sweep_idle_sessions() -> int:
    """
    Abandon live sessions idle past the timeout.

    Sessions otherwise expire only when their token is next presented; the
    sweep lets lines close when a station never comes back.
    """
    now = utcnow()
    cutoff = now - _idle_timeout()
    sessions = db.session.query(StationSession).filter(
        StationSession.sync_status.in_([SESSION_STATUS_ACTIVE, SESSION_STATUS_SYNCING]),
        StationSession.closed_at.is_(None),
        StationSession.last_activity_at < cutoff,
    ).all()

    for session in sessions:
        _close(session, SESSION_STATUS_ABANDONED, "Idle timeout", now)

    db.session.commit()
    return len(sessions)
