# Overview: Service-layer operations for the idempotency ledger; encapsulates business logic and database work.

"""
Idempotency Ledger

Invariants:
- A sync key is accepted at most once per record table (unique constraint).
- Lookup is by exact sync key; a hit returns the stored id as a duplicate.
- Checked per item, never per batch: each item's fate is independent.
- Two concurrent inserts with one key: the loser's savepoint rolls back on
  the unique violation and it reports the winner's id as a duplicate.
- A deleted record stays accepted: its key is found in the delete log
  (original_sync_key) so a late retry cannot resurrect it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from sqlalchemy.exc import IntegrityError

from ..extensions import db


@dataclass(frozen=True)
class Accepted:
    id: int
    duplicate: bool = False


def find_existing(model, sync_key: str, tombstones=None) -> int | None:
    """Id previously assigned to sync_key in model, or None."""
    existing_id = db.session.query(model.id).filter(model.sync_key == sync_key).scalar()
    if existing_id is not None:
        return existing_id
    if tombstones is not None:
        return (
            db.session.query(tombstones.original_id)
            .filter(tombstones.original_sync_key == sync_key)
            .order_by(tombstones.id)
            .limit(1)
            .scalar()
        )
    return None


def accept(model, sync_key: str, build: Callable[[], object], tombstones=None) -> Accepted:
    """
    Persist the record built by `build` unless sync_key was already accepted.

    build() runs inside the same savepoint as the insert, so anything it
    allocates is rolled back together with a losing insert. Exceptions
    raised by build() propagate after the savepoint is rolled back.
    """
    existing_id = find_existing(model, sync_key, tombstones)
    if existing_id is not None:
        return Accepted(id=existing_id, duplicate=True)

    try:
        with db.session.begin_nested():
            record = build()
            db.session.add(record)
    except IntegrityError:
        existing_id = find_existing(model, sync_key, tombstones)
        if existing_id is None:
            raise
        return Accepted(id=existing_id, duplicate=True)

    return Accepted(id=record.id)
