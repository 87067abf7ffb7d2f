# Overview: Service-layer operations for billing identity; resolves who pays for an uploaded record.

"""
Account Identity Resolution

Every sale and payment carries a billing identity: account id, family id,
school, and (for reimbursable meals) the approval provenance of the
account's meal-benefit status.

- Roster hit: identity comes from the student joined to its family and status.
- Roster miss: the record is still accepted with a best-effort identity built
  from the station's hints, so offline sales are never lost. The miss is
  logged so the roster can be corrected.
- Cash: identity is the placeholder account plus a synthetic family id.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import or_

from ..extensions import db
from ..models import Student, Family, StudentStatus
from .cash_service import CashPlaceholder


# Item types that are reimbursable meals and must carry approval provenance
REIMBURSABLE_ITEM_TYPES = frozenset({"L", "B", "A", "X"})


@dataclass(frozen=True)
class AccountRecord:
    account_id: int
    family_id: int | None
    school_code: str | None
    status: str | None = None
    approval_method: str | None = None
    approval_code: str | None = None


@dataclass(frozen=True)
class ClientHints:
    """Identity fields the station sent alongside the account token."""
    account_id: int
    family_id: int | None = None
    school_code: str | None = None


@dataclass(frozen=True)
class BillingIdentity:
    account_id: int
    family_id: int | None
    school_code: str | None
    approval_method: str | None = None
    approval_code: str | None = None
    from_roster: bool = False

    def approval_for(self, item_type: str | None) -> tuple[str | None, str | None]:
        """(approval_method, approval_code) for a record of item_type."""
        if item_type in REIMBURSABLE_ITEM_TYPES:
            return self.approval_method, self.approval_code
        return None, None


def lookup_account(account_id: int) -> AccountRecord | None:
    """
    Roster account by cloud id, joined to its family and status.

    A student without a family row is treated as missing.
    """
    row = (
        db.session.query(
            Student.cloud_id,
            Family.fam_perm_id,
            Student.school_code,
            StudentStatus.status,
            StudentStatus.approval_method,
            StudentStatus.approval_code,
        )
        .join(Family, Family.fam_perm_id == Student.fam_perm_id)
        .outerjoin(StudentStatus, StudentStatus.id == Student.status_id)
        .filter(Student.cloud_id == account_id)
        .first()
    )
    if row is None:
        return None
    return AccountRecord(
        account_id=row.cloud_id,
        family_id=row.fam_perm_id,
        school_code=row.school_code,
        status=row.status,
        approval_method=row.approval_method,
        approval_code=row.approval_code,
    )


def resolve_identity(found: AccountRecord | None, hints: ClientHints) -> BillingIdentity:
    """Authoritative identity when the roster has the account, else the station's hints."""
    if found is None:
        return BillingIdentity(
            account_id=hints.account_id,
            family_id=hints.family_id,
            school_code=hints.school_code,
        )
    return BillingIdentity(
        account_id=found.account_id,
        family_id=found.family_id,
        school_code=found.school_code,
        approval_method=found.approval_method,
        approval_code=found.approval_code,
        from_roster=True,
    )


def cash_identity(placeholder: CashPlaceholder, family_id: int | None) -> BillingIdentity:
    return BillingIdentity(
        account_id=placeholder.account_id,
        family_id=family_id,
        school_code=None,
        from_roster=True,
    )


def resolve_account_id(raw_id: int) -> int:
    """
    Durable account id for an id that may be a cloud id or a legacy lcs id.

    Unknown ids are returned unchanged.
    """
    cloud_id = (
        db.session.query(Student.cloud_id)
        .filter(or_(Student.cloud_id == raw_id, Student.lcs_id == raw_id))
        .order_by((Student.cloud_id == raw_id).desc())
        .limit(1)
        .scalar()
    )
    return cloud_id if cloud_id is not None else raw_id
