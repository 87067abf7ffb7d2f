# Overview: Service-layer operations for security events; encapsulates business logic and database work.

from __future__ import annotations

from ..extensions import db
from ..models import SecurityEvent
from linesync.time_utils import utcnow


def log_security_event(
    user_id: int | None,
    event_type: str,
    success: bool,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
    station_id: int | None = None,
    commit: bool = True,
) -> SecurityEvent:
    """
    Log security event to audit trail.

    event_type examples:
    - LOGIN
    - LOGIN_FAILED
    - LOGOUT
    - LINE_ACCESS_DENIED
    """
    event = SecurityEvent(
        user_id=user_id,
        station_id=station_id,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
        occurred_at=utcnow()
    )

    db.session.add(event)
    if commit:
        db.session.commit()
    return event
