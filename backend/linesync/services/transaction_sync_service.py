# Overview: Service-layer operations for uploaded sales; encapsulates business logic and database work.

"""
Transaction Sync Engine

Accepts a batch of sales recorded offline by a station.

Per item, in order:
1. Idempotency: a sync key already on file returns the stored id (duplicate).
2. Account: cash code -> placeholder account + synthetic family id;
   roster id -> roster identity, or best-effort identity on a miss.
3. Classification: item type and transaction code fall back from the
   station's value to the catalog's item type to "C".
4. Approval provenance is stamped only on reimbursable meal types.
5. Persist.

FAILURE POLICY:
- Cash placeholder missing: that cash item fails, every other item proceeds,
  and the batch response carries a warning.
- Anything else: the whole batch is rolled back.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

from flask import current_app

from ..extensions import db
from ..models import PosTransaction, PosTransactionDeleteLog, MenuItem
from ..sync_keys import AccountRef, CashAccount, RealAccount, parse_account_ref
from ..validation import (
    TRANSACTION_RULES,
    ValidationError,
    coerce_int,
    normalize_line,
    validate_batch,
)
from . import account_service, cash_service, idempotency_service
from .batch import BatchResult, ItemResult, SyncContext, run_batch
from linesync.time_utils import utcnow


DEFAULT_ITEM_CODE = "C"


@dataclass(frozen=True)
class TransactionItem:
    sync_key: str
    local_id: int
    account: AccountRef
    item_id: int
    price: Decimal
    line_date: date
    meal_type: str
    line_num: int
    line_log_id: int
    station_session_id: int
    user_id: int | None = None
    item_type: str | None = None
    transaction_code: str | None = None
    timestamp: datetime | None = None
    family_id: int | None = None
    school_code: str | None = None

    @property
    def is_cash(self) -> bool:
        return isinstance(self.account, CashAccount)


def parse_account(raw, path: str) -> AccountRef:
    try:
        return parse_account_ref(raw, current_app.config["CASH_CODE_PREFIX"])
    except ValueError as exc:
        raise ValidationError(f"{path} {exc}", path) from exc


def parse_transactions(payload) -> list[TransactionItem]:
    """Validate an upload body and build typed items. Raises ValidationError."""
    cfg = current_app.config
    items = []
    for i, raw in enumerate(validate_batch(payload, "transactions", TRANSACTION_RULES)):
        meal_type, line_num = normalize_line(raw, cfg["DEFAULT_MEAL_TYPE"], cfg["DEFAULT_LINE_NUM"])
        items.append(TransactionItem(
            sync_key=raw["syncKey"],
            local_id=raw["localId"],
            account=parse_account(raw["studentId"], f"transactions.{i}.studentId"),
            item_id=raw["itemId"],
            price=raw["price"],
            line_date=raw["lineDate"],
            meal_type=meal_type,
            line_num=line_num,
            line_log_id=raw["lineLogId"],
            station_session_id=raw["stationSessionId"],
            user_id=coerce_int(raw.get("userId")),
            item_type=raw.get("itemType"),
            transaction_code=raw.get("transactionCode"),
            timestamp=raw.get("timestampUTC"),
            family_id=raw.get("familyId"),
            school_code=raw.get("schoolCode"),
        ))
    return items


def classify_item(
    client_item_type: str | None,
    client_code: str | None,
    catalog_item_type: str | None,
    is_cash: bool,
) -> tuple[str, str]:
    """
    Resolve (item_type, transaction_code) for a sale.

    transaction_code: station value, else "C" for cash buyers, else the
    catalog item type, else "C".
    item_type: station value, else the catalog item type, else "C".
    """
    if client_code:
        transaction_code = client_code
    elif is_cash:
        transaction_code = DEFAULT_ITEM_CODE
    else:
        transaction_code = catalog_item_type or DEFAULT_ITEM_CODE
    item_type = client_item_type or catalog_item_type or DEFAULT_ITEM_CODE
    return item_type, transaction_code


def _billing_identity(item: TransactionItem, lookup: cash_service.CashAccountLookup):
    if isinstance(item.account, CashAccount):
        placeholder = cash_service.resolve_cash_account(lookup)
        family_id = cash_service.next_synthetic_family_id(item.line_date, item.meal_type, lookup)
        return account_service.cash_identity(placeholder, family_id)

    if isinstance(item.account, RealAccount):
        found = account_service.lookup_account(item.account.account_id)
        if found is None:
            current_app.logger.warning(
                "Transaction sync: account %s not found; using station identity", item.account.raw
            )
        hints = account_service.ClientHints(
            account_id=item.account.account_id,
            family_id=item.family_id,
            school_code=item.school_code,
        )
        return account_service.resolve_identity(found, hints)

    raise TypeError(f"Unsupported account reference: {item.account!r}")


def _build_transaction(item: TransactionItem, context: SyncContext, lookup) -> PosTransaction:
    identity = _billing_identity(item, lookup)

    catalog_item_type = db.session.query(MenuItem.item_type).filter_by(item_id=item.item_id).scalar()
    item_type, transaction_code = classify_item(
        item.item_type, item.transaction_code, catalog_item_type, item.is_cash
    )
    approval_method, approval_code = identity.approval_for(item_type)

    return PosTransaction(
        sync_key=item.sync_key,
        user_id=item.user_id if item.user_id is not None else context.user_id,
        student_id=identity.account_id,
        family_id=identity.family_id,
        school_code=identity.school_code,
        item_id=item.item_id,
        item_type=item_type,
        transaction_code=transaction_code,
        approval_method=approval_method,
        approval_code=approval_code,
        price=item.price,
        line_type=item.meal_type,
        line_num=item.line_num,
        line_date=item.line_date,
        pos_id=item.line_num,
        station_student_id=item.account.raw,
        station_session_id=item.station_session_id,
        transaction_timestamp=item.timestamp or utcnow(),
    )


def _submit_one(
    item: TransactionItem,
    context: SyncContext,
    lookup: cash_service.CashAccountLookup,
    batch: BatchResult,
) -> ItemResult:
    try:
        accepted = idempotency_service.accept(
            PosTransaction,
            item.sync_key,
            lambda: _build_transaction(item, context, lookup),
            tombstones=PosTransactionDeleteLog,
        )
    except cash_service.CashAccountNotConfigured as exc:
        batch.flag_cash_failure(exc.code, str(exc))
        return ItemResult.failed(
            item.local_id,
            item.sync_key,
            exc.code,
            "Cash Student account not configured in database. Contact administrator.",
        )
    return ItemResult.from_accepted(item.local_id, item.sync_key, accepted)


def submit_batch(items: list[TransactionItem], context: SyncContext) -> BatchResult:
    """
    Persist a batch of sales in one database transaction.

    Returns one result per item in input order. Raises on an unexpected
    fault after rolling the batch back.
    """
    def _process() -> BatchResult:
        lookup = cash_service.CashAccountLookup()
        batch = BatchResult()
        for item in items:
            batch.add(_submit_one(item, context, lookup, batch))
        return batch

    batch = run_batch(_process)

    current_app.logger.info(
        "Transaction sync: session=%s items=%d created=%d duplicates=%d failed=%d",
        context.session_id, len(items), batch.created, batch.duplicates, batch.failures,
    )
    if batch.cash_failed:
        current_app.logger.warning("Transaction sync: cash account not configured; cash items rejected")
    return batch
