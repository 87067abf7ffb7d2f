# Overview: Service-layer operations for account history; cross-station view of one account's records.

"""
Account History

Stations only hold what they recorded themselves. Before ringing up an
account they merge in what other stations recorded for it in the same
(date, meal) scope. Each record is attributed to its origin station through
the session segment of its sync key.
"""

from __future__ import annotations

from datetime import date

from ..extensions import db
from ..models import PosTransaction, PosPayment, MenuItem, StationSession
from ..sync_keys import SyncKey
from .account_service import resolve_account_id
from linesync.time_utils import to_utc_z


THIS_STATION = "This Station"


def session_station_map(session_ids) -> dict[int, int]:
    """station_id for each of the given session ids."""
    ids = {sid for sid in session_ids if sid is not None}
    if not ids:
        return {}
    rows = db.session.query(StationSession.id, StationSession.station_id).filter(
        StationSession.id.in_(ids)
    )
    return {session_id: station_id for session_id, station_id in rows}


def _attribution(sync_key: str, current_station_id: int | None, stations: dict[int, int]) -> dict:
    parsed = SyncKey.parse(sync_key)
    session_id = parsed.session_id if parsed else None
    station_id = stations.get(session_id) if session_id is not None else None
    is_other = station_id is None or station_id != current_station_id
    return {
        "stationSessionId": session_id,
        "stationId": station_id,
        "stationName": f"St{station_id}" if is_other else THIS_STATION,
        "isOtherStation": is_other,
    }


def _session_ids(keys) -> list[int]:
    parsed = (SyncKey.parse(key) for key in keys)
    return [p.session_id for p in parsed if p is not None]


def account_history(raw_account_id: int, line_date: date, meal_type: str, current_session: StationSession) -> dict:
    account_id = resolve_account_id(raw_account_id)

    transactions = (
        db.session.query(PosTransaction, MenuItem.description)
        .outerjoin(MenuItem, MenuItem.item_id == PosTransaction.item_id)
        .filter(
            PosTransaction.student_id == account_id,
            PosTransaction.line_date == line_date,
            PosTransaction.line_type == meal_type,
        )
        .order_by(PosTransaction.created_at.asc(), PosTransaction.id.asc())
        .all()
    )
    payments = (
        db.session.query(PosPayment)
        .filter(
            PosPayment.student_id == account_id,
            PosPayment.line_date == line_date,
            PosPayment.meal_type == meal_type,
        )
        .order_by(PosPayment.created_at.asc(), PosPayment.id.asc())
        .all()
    )

    stations = session_station_map(
        _session_ids([tx.sync_key for tx, _ in transactions] + [p.sync_key for p in payments])
    )
    current_station_id = current_session.station_id

    tx_data = []
    for tx, description in transactions:
        entry = {
            "serverId": tx.id,
            "syncKey": tx.sync_key,
            "studentId": tx.student_id,
            "itemId": tx.item_id,
            "itemName": description or f"Item {tx.item_id}",
            "itemType": tx.item_type,
            "price": float(tx.price),
            "lineNum": tx.line_num,
            "timestampUTC": to_utc_z(tx.transaction_timestamp),
            "createdAt": to_utc_z(tx.created_at),
        }
        entry.update(_attribution(tx.sync_key, current_station_id, stations))
        tx_data.append(entry)

    pmt_data = []
    for p in payments:
        entry = {
            "serverId": p.id,
            "syncKey": p.sync_key,
            "studentId": p.student_id,
            "paymentType": p.payment_type,
            "amount": float(p.amount),
            "memo": p.memo,
            "timestampUTC": to_utc_z(p.payment_timestamp),
            "createdAt": to_utc_z(p.created_at),
            "isPayment": True,
        }
        entry.update(_attribution(p.sync_key, current_station_id, stations))
        pmt_data.append(entry)

    return {
        "success": True,
        "transactions": tx_data,
        "payments": pmt_data,
        "currentStationSessionId": current_session.id,
    }
