# Overview: Shared plumbing for upload batches; per-item results and the batch transaction.

"""
Batch Upload Plumbing

WHY: Transactions, payments and deletions share one contract. A batch runs
in a single database transaction, items are handled in order, each item
gets its own result, and an unexpected fault rolls the whole batch back.

Per-item failures that are expected (cash placeholder missing) are reported
in the item's result and do not abort the batch.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, TypeVar

from flask import current_app

from ..extensions import db
from .concurrency import begin_write, run_with_retry
from .idempotency_service import Accepted


T = TypeVar("T")


@dataclass(frozen=True)
class SyncContext:
    """Who is uploading: resolved from the bearer token before the batch starts."""
    user_id: int | None
    session_id: int | None = None
    station_id: int | None = None


@dataclass
class ItemResult:
    local_id: int
    sync_key: str
    server_id: int | None
    success: bool = True
    duplicate: bool = False
    not_found: bool = False
    error: str | None = None
    error_message: str | None = None

    @classmethod
    def from_accepted(cls, local_id: int, sync_key: str, accepted: Accepted) -> ItemResult:
        return cls(local_id=local_id, sync_key=sync_key, server_id=accepted.id, duplicate=accepted.duplicate)

    @classmethod
    def failed(cls, local_id: int, sync_key: str, error: str, error_message: str) -> ItemResult:
        return cls(
            local_id=local_id,
            sync_key=sync_key,
            server_id=None,
            success=False,
            error=error,
            error_message=error_message,
        )

    def to_dict(self) -> dict:
        data = {
            "localId": self.local_id,
            "syncKey": self.sync_key,
            "serverId": self.server_id,
            "success": self.success,
        }
        if self.duplicate:
            data["duplicate"] = True
        if self.not_found:
            data["notFound"] = True
        if self.error:
            data["error"] = self.error
            data["errorMessage"] = self.error_message
        return data


@dataclass
class BatchResult:
    results: list[ItemResult] = field(default_factory=list)
    warning: str | None = None
    warning_message: str | None = None
    cash_failed: bool = False

    def add(self, result: ItemResult) -> None:
        self.results.append(result)

    def flag_cash_failure(self, code: str, message: str) -> None:
        self.warning = code
        self.warning_message = message
        self.cash_failed = True

    @property
    def created(self) -> int:
        return sum(1 for r in self.results if r.success and not r.duplicate and not r.not_found)

    @property
    def duplicates(self) -> int:
        return sum(1 for r in self.results if r.duplicate)

    @property
    def failures(self) -> int:
        return sum(1 for r in self.results if not r.success)

    def to_dict(self) -> dict:
        data = {
            "success": True,
            "results": [r.to_dict() for r in self.results],
        }
        if self.cash_failed:
            data["warning"] = self.warning
            data["warningMessage"] = self.warning_message
            data["cashTransactionsFailed"] = True
        return data


def run_batch(process: Callable[[], T]) -> T:
    """
    Run process() as one write transaction and commit it.

    process() is re-run from scratch when the database reports a lock
    conflict, so it must build all of its per-batch state itself. Any other
    exception rolls the batch back and propagates.
    """
    def _op():
        begin_write()
        result = process()
        db.session.commit()
        return result

    try:
        return run_with_retry(_op, attempts=current_app.config["SYNC_RETRY_ATTEMPTS"])
    except Exception:
        db.session.rollback()
        raise
