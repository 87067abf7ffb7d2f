# Overview: Service-layer operations for line logs; encapsulates business logic and database work.

"""
Line Log Management Service

WHY: A serving line's day is bracketed by an open and a close. Closing is
only safe once every station that worked the line has uploaded its buffer.

LIFECYCLE: not_opened -> open -> closed (never reopened)

DESIGN:
- The log row for (meal, line, date) is created lazily on first use
- Opening an open line is a no-op; it still binds the caller's session
- Close readiness: no other session bound to the log is active or syncing
- Closing requires the closer privilege (or admin)
"""

from __future__ import annotations

from datetime import date

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import LineLog, StationSession
from ..models.stations import (
    SESSION_STATUS_ACTIVE,
    SESSION_STATUS_SYNCING,
    SESSION_STATUS_SYNCED,
    SESSION_STATUS_ABANDONED,
)
from . import session_service
from linesync.time_utils import utcnow, today


LINE_ACCESS_DENIED = "LINE_ACCESS_DENIED"
LINE_CLOSED = "LINE_CLOSED"
LINE_NOT_OPEN = "LINE_NOT_OPEN"
LINE_NOT_READY = "LINE_NOT_READY"
CLOSER_REQUIRED = "CLOSER_REQUIRED"


class LineLogError(Exception):
    """Raised when a line cannot move to the requested state."""

    def __init__(self, code: str, message: str, status: int = 409):
        super().__init__(message)
        self.code = code
        self.status = status


def get_line_log(meal_type: str, line_num: int, line_date: date | None = None) -> LineLog | None:
    return db.session.query(LineLog).filter_by(
        meal_type=meal_type,
        line_num=line_num,
        line_date=line_date or today(),
    ).first()


def find_or_create(meal_type: str, line_num: int, line_date: date | None = None) -> LineLog:
    """Log for the line's day, created in not_opened state on first use."""
    line_date = line_date or today()
    log = get_line_log(meal_type, line_num, line_date)
    if log:
        return log

    log = LineLog(meal_type=meal_type, line_num=line_num, line_date=line_date, plate_count=0)
    db.session.add(log)
    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        log = get_line_log(meal_type, line_num, line_date)
        if log is None:
            raise
    return log


def _require_line_access(session: StationSession, meal_type: str, line_num: int) -> None:
    if not session_service.can_act_on_line(session, meal_type, line_num):
        raise LineLogError(
            LINE_ACCESS_DENIED,
            f"Session has no access to line {meal_type}{line_num}",
            status=403,
        )


def open_line(
    session: StationSession,
    meal_type: str,
    line_num: int,
    start_cash: dict | None = None,
    line_date: date | None = None,
) -> LineLog:
    """
    Open the line for the day and bind the session to it.

    Raises LineLogError if the session lacks the line or the line is closed.
    """
    _require_line_access(session, meal_type, line_num)

    log = find_or_create(meal_type, line_num, line_date)
    if log.is_closed:
        raise LineLogError(LINE_CLOSED, f"Line {meal_type}{line_num} is closed for {log.line_date.isoformat()}")

    if not log.open_date:
        log.open_date = utcnow()
        log.open_user_id = session.user_id
        log.start_cash = start_cash

    session.line_log_id = log.id
    db.session.commit()
    return log


def sync_info(log: LineLog, exclude_session_id: int | None = None) -> dict:
    """
    Session totals for a line log and whether it may close.

    exclude_session_id: the asking session, which does not block its own close.
    """
    counts = {
        status: 0
        for status in (SESSION_STATUS_ACTIVE, SESSION_STATUS_SYNCING, SESSION_STATUS_SYNCED, SESSION_STATUS_ABANDONED)
    }
    blocking = 0
    sessions = db.session.query(StationSession.id, StationSession.sync_status).filter(
        StationSession.line_log_id == log.id
    )
    for session_id, status in sessions:
        counts[status] = counts.get(status, 0) + 1
        if status in (SESSION_STATUS_ACTIVE, SESSION_STATUS_SYNCING) and session_id != exclude_session_id:
            blocking += 1

    return {
        "totalStations": sum(counts.values()),
        "syncedStations": counts[SESSION_STATUS_SYNCED],
        "activeStations": counts[SESSION_STATUS_ACTIVE],
        "syncingStations": counts[SESSION_STATUS_SYNCING],
        "abandonedStations": counts[SESSION_STATUS_ABANDONED],
        "readyToClose": log.is_open and blocking == 0,
    }


def line_status(session: StationSession, meal_type: str, line_num: int, line_date: date | None = None) -> dict:
    _require_line_access(session, meal_type, line_num)
    log = find_or_create(meal_type, line_num, line_date)
    db.session.commit()
    return {
        "lineLog": log.to_dict(),
        "syncInfo": sync_info(log, exclude_session_id=session.id),
    }


def close_line(
    session: StationSession,
    meal_type: str,
    line_num: int,
    end_cash: dict | None = None,
    line_date: date | None = None,
) -> LineLog:
    """
    Close the line for the day.

    Raises LineLogError if the user may not close, the line is not open,
    or another station still has records to upload.
    """
    _require_line_access(session, meal_type, line_num)

    user = session.user
    if not (user.line_closer or user.is_admin):
        raise LineLogError(CLOSER_REQUIRED, "User is not allowed to close lines", status=403)

    log = get_line_log(meal_type, line_num, line_date)
    if log is None or not log.is_open:
        if log is not None and log.is_closed:
            raise LineLogError(LINE_CLOSED, f"Line {meal_type}{line_num} is already closed")
        raise LineLogError(LINE_NOT_OPEN, f"Line {meal_type}{line_num} is not open")

    info = sync_info(log, exclude_session_id=session.id)
    if not info["readyToClose"]:
        raise LineLogError(
            LINE_NOT_READY,
            "Other station sessions on this line have not finished syncing",
        )

    log.close_date = utcnow()
    log.close_user_id = user.id
    log.closer_is_admin = bool(user.is_admin)
    log.end_cash = end_cash
    db.session.commit()
    return log
