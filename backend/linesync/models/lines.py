from __future__ import annotations

from ..extensions import db
from linesync.time_utils import to_utc_z


LINE_STATUS_NOT_OPENED = "not_opened"
LINE_STATUS_OPEN = "open"
LINE_STATUS_CLOSED = "closed"


class LineLog(db.Model):
    """
    Daily ledger header for one (meal_type, line_num, line_date).

    LIFECYCLE: not_opened -> open -> closed. Status is derived from the
    open/close stamps; once close_date is set the log never reopens.

    Cash till snapshots are opaque denomination breakdowns from the station.
    """
    __tablename__ = "pos_line_logs"
    __table_args__ = (
        db.UniqueConstraint("meal_type", "line_num", "line_date", name="uq_line_logs_line_day"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    meal_type = db.Column(db.String(1), nullable=False)
    line_num = db.Column(db.Integer, nullable=False)
    line_date = db.Column(db.Date, nullable=False, index=True)

    plate_count = db.Column(db.Integer, nullable=False, default=0)

    open_date = db.Column(db.DateTime(timezone=True), nullable=True)
    open_user_id = db.Column(db.Integer, db.ForeignKey("pos_users.id"), nullable=True)
    start_cash = db.Column(db.JSON, nullable=True)

    close_date = db.Column(db.DateTime(timezone=True), nullable=True)
    close_user_id = db.Column(db.Integer, db.ForeignKey("pos_users.id"), nullable=True)
    closer_is_admin = db.Column(db.Boolean, nullable=False, default=False)
    end_cash = db.Column(db.JSON, nullable=True)

    @property
    def status(self) -> str:
        if self.close_date:
            return LINE_STATUS_CLOSED
        if self.open_date:
            return LINE_STATUS_OPEN
        return LINE_STATUS_NOT_OPENED

    @property
    def is_open(self) -> bool:
        return self.status == LINE_STATUS_OPEN

    @property
    def is_closed(self) -> bool:
        return self.status == LINE_STATUS_CLOSED

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "meal_type": self.meal_type,
            "line_num": self.line_num,
            "line_date": self.line_date.isoformat(),
            "status": self.status,
            "open_date": to_utc_z(self.open_date),
            "open_user_id": self.open_user_id,
            "start_cash": self.start_cash,
            "close_date": to_utc_z(self.close_date),
            "close_user_id": self.close_user_id,
            "end_cash": self.end_cash,
        }
