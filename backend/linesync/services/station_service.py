# Overview: Service-layer operations for stations; encapsulates business logic and database work.

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Station
from linesync.time_utils import utcnow


def find_or_create_station(
    device_id: str,
    browser: str,
    is_private: bool = False,
    mac_address: str | None = None,
    ip_address: str | None = None,
) -> Station:
    """
    Find a station by device fingerprint, creating it on first contact.

    An existing station gets its IP and last-seen refreshed; the MAC address
    is only overwritten when the station reports one.
    """
    now = utcnow()
    station = db.session.query(Station).filter_by(
        device_id=device_id,
        browser=browser,
        is_private=is_private,
    ).first()

    if station:
        station.ip_address = ip_address
        station.last_seen_at = now
        if mac_address:
            station.mac_address = mac_address
        db.session.flush()
        return station

    station = Station(
        device_id=device_id,
        browser=browser,
        is_private=is_private,
        mac_address=mac_address,
        ip_address=ip_address,
        first_seen_at=now,
        last_seen_at=now,
    )
    db.session.add(station)
    try:
        db.session.flush()
    except IntegrityError:
        # Same device registered concurrently; take the winner
        db.session.rollback()
        station = db.session.query(Station).filter_by(
            device_id=device_id,
            browser=browser,
            is_private=is_private,
        ).one()
    return station
