# Overview: Service-layer operations for anonymous cash customers; encapsulates business logic and database work.

"""
Cash Customer Resolver

Anonymous buyers are sent by the station as cash codes ("C1", "c7").
They are billed to one placeholder account, and each encounter gets its own
synthetic family id so a later payment can be matched to the sale it settles.

DESIGN:
- The placeholder lookup happens at most once per batch. The batch owns a
  CashAccountLookup value and passes it to every call; a missing account is
  remembered and re-raised for each later cash item of that batch only.
- Synthetic family ids come from a per-(line_date, line_type) counter row.
  The row is advanced with one UPDATE, which serializes concurrent
  allocations in a scope. A new row is seeded from the highest id already
  on file for the scope (or the floor), and a creation race is resolved
  through the unique constraint.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from flask import current_app
from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Student, PosTransaction, CashFamilySequence


CASH_NOT_CONFIGURED = "CASH_STUDENT_NOT_CONFIGURED"


class CashAccountNotConfigured(Exception):
    """The deployment has no cash placeholder account."""
    code = CASH_NOT_CONFIGURED

    def __init__(self, lcs_id: int):
        super().__init__(
            f"{CASH_NOT_CONFIGURED}: This database is missing the required Cash Student record. "
            f"Cash transactions cannot be synced until a student record with lcs_id = {lcs_id} is created. "
            "Please contact your system administrator to configure the Cash Student account. "
            "Non-cash transactions will continue to sync normally."
        )
        self.lcs_id = lcs_id


@dataclass(frozen=True)
class CashPlaceholder:
    account_id: int
    family_id: int | None


@dataclass
class CashAccountLookup:
    """Result of the placeholder lookup, shared by the items of one batch."""
    checked: bool = False
    placeholder: CashPlaceholder | None = None


def find_cash_account() -> Student | None:
    return db.session.query(Student).filter_by(
        lcs_id=current_app.config["CASH_ACCOUNT_LCS_ID"]
    ).first()


def resolve_cash_account(lookup: CashAccountLookup) -> CashPlaceholder:
    """
    Return the placeholder account, querying only on first use per batch.

    Raises CashAccountNotConfigured every time it is called once the
    account is known to be missing.
    """
    if not lookup.checked:
        lookup.checked = True
        account = find_cash_account()
        if account is not None:
            lookup.placeholder = CashPlaceholder(account_id=account.cloud_id, family_id=account.fam_perm_id)

    if lookup.placeholder is None:
        raise CashAccountNotConfigured(current_app.config["CASH_ACCOUNT_LCS_ID"])
    return lookup.placeholder


def _scope_seed(placeholder: CashPlaceholder, line_date: date, line_type: str) -> int:
    """First id for a scope with no counter row: floor, or past any id already on file."""
    floor = current_app.config["CASH_FAMILY_ID_START"]
    max_family_id = (
        db.session.query(func.max(PosTransaction.family_id))
        .filter(
            PosTransaction.student_id == placeholder.account_id,
            PosTransaction.line_date == line_date,
            PosTransaction.line_type == line_type,
            PosTransaction.family_id >= floor,
        )
        .scalar()
    )
    return max_family_id + 1 if max_family_id else floor


def next_synthetic_family_id(line_date: date, line_type: str, lookup: CashAccountLookup) -> int:
    """
    Allocate the next synthetic family id for (line_date, line_type).

    Raises CashAccountNotConfigured when the placeholder account is missing.
    """
    placeholder = resolve_cash_account(lookup)

    scope = (
        CashFamilySequence.line_date == line_date,
        CashFamilySequence.line_type == line_type,
    )
    stmt = (
        update(CashFamilySequence)
        .where(*scope)
        .values(next_family_id=CashFamilySequence.next_family_id + 1)
        .execution_options(synchronize_session=False)
    )

    def _advance() -> int | None:
        result = db.session.execute(stmt)
        if not result.rowcount:
            return None
        current = db.session.query(CashFamilySequence.next_family_id).filter(*scope).scalar()
        return current - 1

    allocated = _advance()
    if allocated is not None:
        return allocated

    seed = _scope_seed(placeholder, line_date, line_type)
    try:
        with db.session.begin_nested():
            db.session.add(CashFamilySequence(
                line_date=line_date,
                line_type=line_type,
                next_family_id=seed + 1,
            ))
    except IntegrityError:
        # Another batch created the scope row first
        allocated = _advance()
        if allocated is None:
            raise
        return allocated
    return seed


def cash_family_for_payment(
    station_student_id: str,
    line_date: date,
    line_type: str,
    lookup: CashAccountLookup,
) -> int | None:
    """
    Synthetic family id of the sale a cash payment settles.

    Matches the most recent cash sale with the same cash code, date and
    line type. Returns None when there is no such sale.
    """
    placeholder = resolve_cash_account(lookup)
    return (
        db.session.query(PosTransaction.family_id)
        .filter(
            PosTransaction.student_id == placeholder.account_id,
            func.upper(PosTransaction.station_student_id) == station_student_id.strip().upper(),
            PosTransaction.line_date == line_date,
            PosTransaction.line_type == line_type,
        )
        .order_by(PosTransaction.id.desc())
        .limit(1)
        .scalar()
    )
