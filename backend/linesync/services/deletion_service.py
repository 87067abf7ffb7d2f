# Overview: Service-layer operations for record deletions; encapsulates business logic and database work.

"""
Deletion / Audit Engine

Stations delete records they uploaded earlier (voided sales, mistaken
payments) by sending a deletion with its own sync key.

Invariants:
- IMMUTABLE audit: every removed row is first copied, with all business
  fields plus who deleted it and when, into the table's delete log.
- The audit insert and the live delete happen in one savepoint, so a row is
  never removed without its audit copy.
- Idempotent: the deletion's own sync key is unique in the delete log; a
  repeat returns the audit row id as a duplicate.
- A deletion whose original is not on file succeeds with notFound (the
  record may never have synced). No audit row is written.
- A deletion is subject to the line abilities of the line its original was
  recorded on; see original_lines().
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..extensions import db
from ..models import (
    PosTransaction,
    PosPayment,
    PosTransactionDeleteLog,
    PosPaymentDeleteLog,
)
from ..validation import DELETION_RULES, validate_batch
from . import idempotency_service
from .batch import BatchResult, ItemResult, SyncContext, run_batch
from .concurrency import lock_for_update
from linesync.time_utils import utcnow


TRANSACTION_SNAPSHOT_FIELDS = (
    "user_id", "student_id", "family_id", "school_code",
    "item_id", "item_type", "transaction_code", "approval_method", "approval_code",
    "price", "line_type", "line_num", "line_date", "pos_id",
    "station_student_id", "transaction_timestamp",
)

PAYMENT_SNAPSHOT_FIELDS = (
    "user_id", "student_id", "family_id", "school_code",
    "payment_type", "amount", "memo", "check_number",
    "meal_type", "line_num", "line_date",
    "station_student_id", "payment_timestamp",
)


@dataclass(frozen=True)
class DeletionTarget:
    live_model: type
    log_model: type
    snapshot_fields: tuple[str, ...]
    meal_type_field: str


TARGETS = {
    "transactions": DeletionTarget(PosTransaction, PosTransactionDeleteLog, TRANSACTION_SNAPSHOT_FIELDS, "line_type"),
    "payments": DeletionTarget(PosPayment, PosPaymentDeleteLog, PAYMENT_SNAPSHOT_FIELDS, "meal_type"),
}


@dataclass(frozen=True)
class DeletionItem:
    sync_key: str
    original_sync_key: str
    table_name: str
    local_id: int


def parse_deletions(payload) -> list[DeletionItem]:
    """Validate an upload body and build typed items. Raises ValidationError."""
    return [
        DeletionItem(
            sync_key=raw["syncKey"],
            original_sync_key=raw["originalSyncKey"],
            table_name=raw["tableName"],
            local_id=raw["localId"],
        )
        for raw in validate_batch(payload, "deletions", DELETION_RULES)
    ]


@dataclass(frozen=True)
class OriginalLine:
    meal_type: str
    line_num: int


def original_lines(items: list[DeletionItem]) -> list[OriginalLine]:
    """
    Lines the originals of these deletions were recorded on.

    Originals not on file contribute nothing; their deletions end as notFound.
    """
    lines = []
    for item in items:
        target = TARGETS[item.table_name]
        model = target.live_model
        row = (
            db.session.query(getattr(model, target.meal_type_field), model.line_num)
            .filter(model.sync_key == item.original_sync_key)
            .first()
        )
        if row is not None:
            lines.append(OriginalLine(meal_type=row[0], line_num=row[1]))
    return lines


def _audit_and_delete(target: DeletionTarget, item: DeletionItem, original, context: SyncContext):
    snapshot = {name: getattr(original, name) for name in target.snapshot_fields}
    entry = target.log_model(
        sync_key=item.sync_key,
        original_sync_key=original.sync_key,
        original_id=original.id,
        deleting_user_id=context.user_id,
        deleted_at=utcnow(),
        **snapshot,
    )
    db.session.delete(original)
    return entry


def _submit_one(item: DeletionItem, context: SyncContext) -> ItemResult:
    target = TARGETS[item.table_name]

    existing_id = idempotency_service.find_existing(target.log_model, item.sync_key)
    if existing_id is not None:
        return ItemResult(item.local_id, item.sync_key, existing_id, duplicate=True)

    original = lock_for_update(
        db.session.query(target.live_model).filter_by(sync_key=item.original_sync_key)
    ).first()
    if original is None:
        return ItemResult(item.local_id, item.sync_key, None, not_found=True)

    accepted = idempotency_service.accept(
        target.log_model,
        item.sync_key,
        lambda: _audit_and_delete(target, item, original, context),
    )
    return ItemResult.from_accepted(item.local_id, item.sync_key, accepted)


def submit_deletions(items: list[DeletionItem], context: SyncContext) -> BatchResult:
    """Apply a batch of deletions in one database transaction."""
    def _process() -> BatchResult:
        batch = BatchResult()
        for item in items:
            batch.add(_submit_one(item, context))
        return batch

    batch = run_batch(_process)

    not_found = sum(1 for r in batch.results if r.not_found)
    current_app.logger.info(
        "Deletion sync: session=%s items=%d deleted=%d duplicates=%d not_found=%d",
        context.session_id, len(items), batch.created, batch.duplicates, not_found,
    )
    return batch
