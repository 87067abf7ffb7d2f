from __future__ import annotations

from ..extensions import db
from linesync.time_utils import to_utc_z


class Family(db.Model):
    """
    Billing group for one or more students.

    fam_perm_id is the durable id stamped on every sale and payment; the
    surrogate primary key never leaves the server.
    """
    __tablename__ = "families"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    fam_perm_id = db.Column(db.Integer, nullable=False, unique=True, index=True)
    first_name = db.Column(db.String(64), nullable=True)
    last_name = db.Column(db.String(64), nullable=True)
    balance = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    is_deleted = db.Column(db.Boolean, nullable=False, default=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "fam_perm_id": self.fam_perm_id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "balance": float(self.balance or 0),
        }


class StudentStatus(db.Model):
    """
    Meal-benefit status for a student (F/R/P) plus the approval provenance
    that reimbursable meals must carry.
    """
    __tablename__ = "student_statuses"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    status = db.Column(db.String(1), nullable=False)
    approval_method = db.Column(db.String(16), nullable=True)
    approval_code = db.Column(db.String(16), nullable=True)


class Student(db.Model):
    """
    Student account.

    cloud_id is the durable external id stations use as the account token.
    lcs_id is the legacy id; the cash placeholder account is the row whose
    lcs_id equals Config.CASH_ACCOUNT_LCS_ID.
    """
    __tablename__ = "students"
    __table_args__ = (
        db.Index("ix_students_family", "fam_perm_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    cloud_id = db.Column(db.Integer, nullable=False, unique=True, index=True)
    lcs_id = db.Column(db.Integer, nullable=True, index=True)
    fam_perm_id = db.Column(db.Integer, db.ForeignKey("families.fam_perm_id"), nullable=True)
    first_name = db.Column(db.String(64), nullable=True)
    last_name = db.Column(db.String(64), nullable=True)
    grade = db.Column(db.String(8), nullable=True)
    school_code = db.Column(db.String(16), nullable=True)
    status_id = db.Column(db.Integer, db.ForeignKey("student_statuses.id"), nullable=True)
    is_deleted = db.Column(db.Boolean, nullable=False, default=False)

    family = db.relationship("Family", backref=db.backref("students", lazy=True))
    status = db.relationship("StudentStatus")

    def __repr__(self) -> str:
        return f"<Student cloud_id={self.cloud_id} lcs_id={self.lcs_id}>"


class MenuItem(db.Model):
    """Catalog entry; item_type is the fallback classification for sales."""
    __tablename__ = "menu_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    item_id = db.Column(db.Integer, nullable=False, unique=True, index=True)
    description = db.Column(db.String(128), nullable=True)
    item_type = db.Column(db.String(1), nullable=True)
    price = db.Column(db.Numeric(10, 2), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "item_id": self.item_id,
            "description": self.description,
            "item_type": self.item_type,
            "price": float(self.price) if self.price is not None else None,
            "created_at": to_utc_z(self.created_at),
        }
