# Overview: Service-layer operations for sync validation; compares a station's records with the server's.

"""
Sync Validation

Lets a station confirm that everything it recorded for one account in one
(date, meal) scope reached the server.

- count mode: a cheap probe. Counts alone cannot prove that the station's
  own records are on the server, so the scope is reported in sync only when
  the station holds nothing for it. Server counts are returned so the
  station can decide whether a full check is worth it.
- full mode: compares sync key sets. In sync means nothing the station
  holds is missing from the server. Keys the server has and the station
  lacks belong to other stations and do not count against it.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from ..extensions import db
from ..models import PosTransaction, PosPayment
from ..validation import SYNC_VALIDATE_RULES, validate_item, validate_sync_key_list
from .account_service import resolve_account_id


MODE_COUNT = "count"
MODE_FULL = "full"


@dataclass(frozen=True)
class SyncValidationRequest:
    account_id: int
    line_date: date
    meal_type: str
    mode: str = MODE_COUNT
    transaction_count: int = 0
    payment_count: int = 0
    transaction_keys: tuple[str, ...] = ()
    payment_keys: tuple[str, ...] = ()


def parse_request(payload) -> SyncValidationRequest:
    """Raises ValidationError."""
    data = validate_item(payload, SYNC_VALIDATE_RULES)
    return SyncValidationRequest(
        account_id=data["studentId"],
        line_date=data["lineDate"],
        meal_type=data["mealType"].upper(),
        mode=data.get("mode") or MODE_COUNT,
        transaction_count=data.get("transactionCount") or 0,
        payment_count=data.get("paymentCount") or 0,
        transaction_keys=tuple(validate_sync_key_list(data.get("transactionSyncKeys"), "transactionSyncKeys")),
        payment_keys=tuple(validate_sync_key_list(data.get("paymentSyncKeys"), "paymentSyncKeys")),
    )


def _transaction_scope(account_id: int, line_date: date, meal_type: str):
    return db.session.query(PosTransaction).filter(
        PosTransaction.student_id == account_id,
        PosTransaction.line_date == line_date,
        PosTransaction.line_type == meal_type,
    )


def _payment_scope(account_id: int, line_date: date, meal_type: str):
    return db.session.query(PosPayment).filter(
        PosPayment.student_id == account_id,
        PosPayment.line_date == line_date,
        PosPayment.meal_type == meal_type,
    )


def _ordered_difference(left, right: set) -> list[str]:
    seen = set()
    missing = []
    for key in left:
        if key not in right and key not in seen:
            seen.add(key)
            missing.append(key)
    return missing


def _compare(client_keys, server_keys: list[str]) -> dict:
    client_set = set(client_keys)
    server_set = set(server_keys)
    return {
        "clientCount": len(client_keys),
        "serverCount": len(server_keys),
        "missingFromServer": _ordered_difference(client_keys, server_set),
        "missingFromClient": _ordered_difference(server_keys, client_set),
    }


def validate_sync(request: SyncValidationRequest) -> dict:
    account_id = resolve_account_id(request.account_id)
    tx_scope = _transaction_scope(account_id, request.line_date, request.meal_type)
    pmt_scope = _payment_scope(account_id, request.line_date, request.meal_type)

    if request.mode == MODE_COUNT:
        return {
            "success": True,
            "mode": MODE_COUNT,
            "isInSync": request.transaction_count == 0 and request.payment_count == 0,
            "transactions": {
                "clientCount": request.transaction_count,
                "serverCount": tx_scope.count(),
            },
            "payments": {
                "clientCount": request.payment_count,
                "serverCount": pmt_scope.count(),
            },
        }

    server_tx_keys = [k for (k,) in tx_scope.with_entities(PosTransaction.sync_key).order_by(PosTransaction.id)]
    server_pmt_keys = [k for (k,) in pmt_scope.with_entities(PosPayment.sync_key).order_by(PosPayment.id)]
    transactions = _compare(request.transaction_keys, server_tx_keys)
    payments = _compare(request.payment_keys, server_pmt_keys)

    return {
        "success": True,
        "mode": MODE_FULL,
        "isInSync": not transactions["missingFromServer"] and not payments["missingFromServer"],
        "transactions": transactions,
        "payments": payments,
    }
