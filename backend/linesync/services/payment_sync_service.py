# Overview: Service-layer operations for uploaded payments; encapsulates business logic and database work.

"""
Payment Sync Engine

Same contract as the transaction engine (idempotent per sync key, one
database transaction per batch, cash placeholder failures isolated to the
cash items).

Payment specifics:
- payment type is CASH or CHECK, matched case-insensitively at validation
- a cash payment is billed to the family id of the sale it settles (the
  latest sale with the same cash code, date and line type)
- memo is encoded for the legacy reports:
  CHECK -> "CHK " + first 14 chars of the memo (or check number)
  CASH  -> "{mealType}{lineNum mod 10} CASH"
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

from flask import current_app

from ..models import PosPayment, PosPaymentDeleteLog
from ..sync_keys import AccountRef, CashAccount, RealAccount
from ..validation import PAYMENT_RULES, coerce_int, normalize_line, validate_batch
from . import account_service, cash_service, idempotency_service
from .batch import BatchResult, ItemResult, SyncContext, run_batch
from .transaction_sync_service import parse_account
from linesync.time_utils import utcnow


PAYMENT_TYPE_CASH = "CASH"
PAYMENT_TYPE_CHECK = "CHECK"

CHECK_MEMO_PREFIX = "CHK "
CHECK_MEMO_SOURCE_LENGTH = 14


@dataclass(frozen=True)
class PaymentItem:
    sync_key: str
    local_id: int
    account: AccountRef
    payment_type: str
    amount: Decimal
    line_date: date
    meal_type: str
    line_num: int
    line_log_id: int | None = None
    station_session_id: int | None = None
    user_id: int | None = None
    memo: str | None = None
    check_number: str | None = None
    timestamp: datetime | None = None
    family_id: int | None = None
    school_code: str | None = None


def parse_payments(payload) -> list[PaymentItem]:
    """Validate an upload body and build typed items. Raises ValidationError."""
    cfg = current_app.config
    items = []
    for i, raw in enumerate(validate_batch(payload, "payments", PAYMENT_RULES)):
        meal_type, line_num = normalize_line(raw, cfg["DEFAULT_MEAL_TYPE"], cfg["DEFAULT_LINE_NUM"])
        items.append(PaymentItem(
            sync_key=raw["syncKey"],
            local_id=raw["localId"],
            account=parse_account(raw["studentId"], f"payments.{i}.studentId"),
            payment_type=raw["paymentType"],
            amount=raw["amount"],
            line_date=raw["lineDate"],
            meal_type=meal_type,
            line_num=line_num,
            line_log_id=raw.get("lineLogId"),
            station_session_id=raw.get("stationSessionId"),
            user_id=coerce_int(raw.get("userId")),
            memo=raw.get("memo"),
            check_number=raw.get("checkNumber"),
            timestamp=raw.get("timestampUTC"),
            family_id=raw.get("familyId"),
            school_code=raw.get("schoolCode"),
        ))
    return items


def encode_memo(
    payment_type: str,
    meal_type: str,
    line_num: int,
    memo: str | None = None,
    check_number: str | None = None,
) -> str:
    if payment_type == PAYMENT_TYPE_CHECK:
        source = memo or check_number or ""
        return CHECK_MEMO_PREFIX + source[:CHECK_MEMO_SOURCE_LENGTH]
    return f"{meal_type}{line_num % 10} CASH"


def _billing_identity(item: PaymentItem, lookup: cash_service.CashAccountLookup):
    if isinstance(item.account, CashAccount):
        placeholder = cash_service.resolve_cash_account(lookup)
        family_id = cash_service.cash_family_for_payment(
            item.account.raw, item.line_date, item.meal_type, lookup
        )
        if family_id is None:
            current_app.logger.warning(
                "Payment sync: no cash sale for %s on %s %s; family left empty",
                item.account.raw, item.line_date.isoformat(), item.meal_type,
            )
        return account_service.cash_identity(placeholder, family_id)

    if isinstance(item.account, RealAccount):
        found = account_service.lookup_account(item.account.account_id)
        if found is None:
            current_app.logger.warning(
                "Payment sync: account %s not found; using station identity", item.account.raw
            )
        hints = account_service.ClientHints(
            account_id=item.account.account_id,
            family_id=item.family_id,
            school_code=item.school_code,
        )
        return account_service.resolve_identity(found, hints)

    raise TypeError(f"Unsupported account reference: {item.account!r}")


def _build_payment(item: PaymentItem, context: SyncContext, lookup) -> PosPayment:
    identity = _billing_identity(item, lookup)
    return PosPayment(
        sync_key=item.sync_key,
        user_id=item.user_id if item.user_id is not None else context.user_id,
        student_id=identity.account_id,
        family_id=identity.family_id,
        school_code=identity.school_code,
        payment_type=item.payment_type,
        amount=item.amount,
        memo=encode_memo(item.payment_type, item.meal_type, item.line_num, item.memo, item.check_number),
        check_number=item.check_number,
        meal_type=item.meal_type,
        line_num=item.line_num,
        line_date=item.line_date,
        station_student_id=item.account.raw,
        station_session_id=item.station_session_id,
        payment_timestamp=item.timestamp or utcnow(),
    )


def submit_batch(items: list[PaymentItem], context: SyncContext) -> BatchResult:
    """Persist a batch of payments in one database transaction."""
    def _process() -> BatchResult:
        lookup = cash_service.CashAccountLookup()
        batch = BatchResult()
        for item in items:
            try:
                accepted = idempotency_service.accept(
                    PosPayment,
                    item.sync_key,
                    lambda: _build_payment(item, context, lookup),
                    tombstones=PosPaymentDeleteLog,
                )
            except cash_service.CashAccountNotConfigured as exc:
                batch.flag_cash_failure(exc.code, str(exc))
                batch.add(ItemResult.failed(
                    item.local_id,
                    item.sync_key,
                    exc.code,
                    "Cash Student account not configured in database. Contact administrator.",
                ))
                continue
            batch.add(ItemResult.from_accepted(item.local_id, item.sync_key, accepted))
        return batch

    batch = run_batch(_process)

    current_app.logger.info(
        "Payment sync: session=%s items=%d created=%d duplicates=%d failed=%d",
        context.session_id, len(items), batch.created, batch.duplicates, batch.failures,
    )
    return batch
