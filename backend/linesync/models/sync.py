from __future__ import annotations

from ..extensions import db
from linesync.time_utils import to_utc_z


SYNC_KEY_MAX_LENGTH = 64


class PosTransaction(db.Model):
    """
    One priced item sold to one account on one line/date.

    IDEMPOTENT: sync_key is built by the station as
    {lineLogId}-{sessionId}-{localId} and is unique. A second upload with
    the same key returns this row's id instead of inserting.

    item_type is the menu classification (L, B, A, X are reimbursable
    meals; C, M, G, S are not). transaction_code is the billing code.
    approval_* are only populated for reimbursable meals.
    """
    __tablename__ = "pos_transactions"
    __table_args__ = (
        db.Index("ix_pos_transactions_account_scope", "student_id", "line_date", "line_type"),
        db.Index("ix_pos_transactions_cash_scope", "station_student_id", "line_date", "line_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sync_key = db.Column(db.String(SYNC_KEY_MAX_LENGTH), nullable=False, unique=True, index=True)

    user_id = db.Column(db.Integer, nullable=True)
    student_id = db.Column(db.Integer, nullable=False)
    family_id = db.Column(db.Integer, nullable=True, index=True)
    school_code = db.Column(db.String(16), nullable=True)

    item_id = db.Column(db.Integer, nullable=False)
    item_type = db.Column(db.String(1), nullable=True)
    transaction_code = db.Column(db.String(1), nullable=True)
    approval_method = db.Column(db.String(16), nullable=True)
    approval_code = db.Column(db.String(16), nullable=True)

    price = db.Column(db.Numeric(10, 2), nullable=False)

    line_type = db.Column(db.String(1), nullable=False)
    line_num = db.Column(db.Integer, nullable=False)
    line_date = db.Column(db.Date, nullable=False, index=True)
    pos_id = db.Column(db.Integer, nullable=True)

    # Raw account token as the station sent it ("12345" or "C3")
    station_student_id = db.Column(db.String(32), nullable=False)
    station_session_id = db.Column(db.Integer, nullable=True, index=True)

    transaction_timestamp = db.Column(db.DateTime(timezone=True), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sync_key": self.sync_key,
            "user_id": self.user_id,
            "student_id": self.student_id,
            "family_id": self.family_id,
            "school_code": self.school_code,
            "item_id": self.item_id,
            "item_type": self.item_type,
            "transaction_code": self.transaction_code,
            "approval_method": self.approval_method,
            "approval_code": self.approval_code,
            "price": float(self.price),
            "line_type": self.line_type,
            "line_num": self.line_num,
            "line_date": self.line_date.isoformat(),
            "station_student_id": self.station_student_id,
            "transaction_timestamp": to_utc_z(self.transaction_timestamp),
            "created_at": to_utc_z(self.created_at),
        }


class PosPayment(db.Model):
    """
    One cash or check payment against an account.

    memo follows the legacy reporting convention:
    - CHECK: "CHK " + first 14 chars of the memo or check number
    - CASH:  "{mealType}{lineNum mod 10} CASH"
    """
    __tablename__ = "pos_payments"
    __table_args__ = (
        db.Index("ix_pos_payments_account_scope", "student_id", "line_date", "meal_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sync_key = db.Column(db.String(SYNC_KEY_MAX_LENGTH), nullable=False, unique=True, index=True)

    user_id = db.Column(db.Integer, nullable=True)
    student_id = db.Column(db.Integer, nullable=False)
    family_id = db.Column(db.Integer, nullable=True, index=True)
    school_code = db.Column(db.String(16), nullable=True)

    payment_type = db.Column(db.String(8), nullable=False)  # CASH, CHECK
    amount = db.Column(db.Numeric(10, 2), nullable=False)
    memo = db.Column(db.String(32), nullable=True)
    check_number = db.Column(db.String(32), nullable=True)

    meal_type = db.Column(db.String(1), nullable=False)
    line_num = db.Column(db.Integer, nullable=False)
    line_date = db.Column(db.Date, nullable=False, index=True)

    station_student_id = db.Column(db.String(32), nullable=False)
    station_session_id = db.Column(db.Integer, nullable=True, index=True)

    payment_timestamp = db.Column(db.DateTime(timezone=True), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sync_key": self.sync_key,
            "user_id": self.user_id,
            "student_id": self.student_id,
            "family_id": self.family_id,
            "school_code": self.school_code,
            "payment_type": self.payment_type,
            "amount": float(self.amount),
            "memo": self.memo,
            "check_number": self.check_number,
            "meal_type": self.meal_type,
            "line_num": self.line_num,
            "line_date": self.line_date.isoformat(),
            "station_student_id": self.station_student_id,
            "payment_timestamp": to_utc_z(self.payment_timestamp),
            "created_at": to_utc_z(self.created_at),
        }


class PosTransactionDeleteLog(db.Model):
    """
    Audit copy of a deleted transaction.

    IMMUTABLE: append-only. sync_key is the deletion's own key (unique,
    same idempotency contract as uploads); original_sync_key points at
    the transaction that was removed.
    """
    __tablename__ = "pos_transaction_delete_log"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sync_key = db.Column(db.String(SYNC_KEY_MAX_LENGTH), nullable=False, unique=True, index=True)
    original_sync_key = db.Column(db.String(SYNC_KEY_MAX_LENGTH), nullable=False, index=True)
    original_id = db.Column(db.Integer, nullable=False)

    deleting_user_id = db.Column(db.Integer, nullable=True)
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=False)

    user_id = db.Column(db.Integer, nullable=True)
    student_id = db.Column(db.Integer, nullable=False)
    family_id = db.Column(db.Integer, nullable=True)
    school_code = db.Column(db.String(16), nullable=True)
    item_id = db.Column(db.Integer, nullable=False)
    item_type = db.Column(db.String(1), nullable=True)
    transaction_code = db.Column(db.String(1), nullable=True)
    approval_method = db.Column(db.String(16), nullable=True)
    approval_code = db.Column(db.String(16), nullable=True)
    price = db.Column(db.Numeric(10, 2), nullable=False)
    line_type = db.Column(db.String(1), nullable=False)
    line_num = db.Column(db.Integer, nullable=False)
    line_date = db.Column(db.Date, nullable=False)
    pos_id = db.Column(db.Integer, nullable=True)
    station_student_id = db.Column(db.String(32), nullable=False)
    transaction_timestamp = db.Column(db.DateTime(timezone=True), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())


class PosPaymentDeleteLog(db.Model):
    """Audit copy of a deleted payment. Same contract as PosTransactionDeleteLog."""
    __tablename__ = "pos_payment_delete_log"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sync_key = db.Column(db.String(SYNC_KEY_MAX_LENGTH), nullable=False, unique=True, index=True)
    original_sync_key = db.Column(db.String(SYNC_KEY_MAX_LENGTH), nullable=False, index=True)
    original_id = db.Column(db.Integer, nullable=False)

    deleting_user_id = db.Column(db.Integer, nullable=True)
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=False)

    user_id = db.Column(db.Integer, nullable=True)
    student_id = db.Column(db.Integer, nullable=False)
    family_id = db.Column(db.Integer, nullable=True)
    school_code = db.Column(db.String(16), nullable=True)
    payment_type = db.Column(db.String(8), nullable=False)
    amount = db.Column(db.Numeric(10, 2), nullable=False)
    memo = db.Column(db.String(32), nullable=True)
    check_number = db.Column(db.String(32), nullable=True)
    meal_type = db.Column(db.String(1), nullable=False)
    line_num = db.Column(db.Integer, nullable=False)
    line_date = db.Column(db.Date, nullable=False)
    station_student_id = db.Column(db.String(32), nullable=False)
    payment_timestamp = db.Column(db.DateTime(timezone=True), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())


class CashFamilySequence(db.Model):
    """
    Per-scope counter for synthetic cash family ids.

    One row per (line_date, line_type). next_family_id is incremented with a
    single UPDATE so concurrent allocations in one scope serialize on the row.
    """
    __tablename__ = "cash_family_sequences"
    __table_args__ = (
        db.UniqueConstraint("line_date", "line_type", name="uq_cash_family_sequences_scope"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    line_date = db.Column(db.Date, nullable=False)
    line_type = db.Column(db.String(1), nullable=False)
    next_family_id = db.Column(db.Integer, nullable=False)
