from __future__ import annotations

from ..extensions import db
from linesync.time_utils import to_utc_z


SESSION_STATUS_ACTIVE = "active"
SESSION_STATUS_SYNCING = "syncing"
SESSION_STATUS_SYNCED = "synced"
SESSION_STATUS_ABANDONED = "abandoned"


class User(db.Model):
    """
    Line staff account.

    line_access holds line codes ("L10", "B5"); line_access_all grants every
    line. line_closer may close a line log at the end of service.
    """
    __tablename__ = "pos_users"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), nullable=False, unique=True, index=True)
    first_name = db.Column(db.String(64), nullable=True)
    last_name = db.Column(db.String(64), nullable=True)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    line_access = db.Column(db.JSON, nullable=True)
    line_access_all = db.Column(db.Boolean, nullable=False, default=False)
    line_closer = db.Column(db.Boolean, nullable=False, default=False)
    is_admin = db.Column(db.Boolean, nullable=False, default=False)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    @property
    def name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "name": self.name,
            "line_access": list(self.line_access or []),
            "line_access_all": self.line_access_all,
            "line_closer": self.line_closer,
            "is_active": self.is_active,
            "last_login_at": to_utc_z(self.last_login_at) if self.last_login_at else None,
        }


class Station(db.Model):
    """
    Physical POS device, identified by (device_id, browser, is_private).

    Created on first contact and refreshed (IP, MAC, last seen) afterwards.
    Never deleted.
    """
    __tablename__ = "pos_stations"
    __table_args__ = (
        db.UniqueConstraint("device_id", "browser", "is_private", name="uq_stations_fingerprint"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    device_id = db.Column(db.String(128), nullable=False)
    browser = db.Column(db.String(64), nullable=False)
    is_private = db.Column(db.Boolean, nullable=False, default=False)
    mac_address = db.Column(db.String(32), nullable=True)
    ip_address = db.Column(db.String(45), nullable=True)  # IPv6 max length
    first_seen_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_seen_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "device_id": self.device_id,
            "browser": self.browser,
            "is_private": self.is_private,
            "mac_address": self.mac_address,
            "ip_address": self.ip_address,
            "first_seen_at": to_utc_z(self.first_seen_at),
            "last_seen_at": to_utc_z(self.last_seen_at),
        }


class StationSession(db.Model):
    """
    Authorization grant binding one station, one user and (once a line is
    opened) one line log to a bearer token.

    LIFECYCLE: active -> synced at logout (syncing first while the device
    still holds records to upload); -> abandoned on superseding login or
    idle timeout.
    Only active, unclosed sessions resolve from a token.

    SECURITY: the plaintext token is returned once at login; only its
    SHA-256 hash is stored.
    """
    __tablename__ = "pos_station_sessions"
    __table_args__ = (
        db.Index("ix_station_sessions_user_status", "user_id", "sync_status"),
        db.Index("ix_station_sessions_line_log_status", "line_log_id", "sync_status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    station_id = db.Column(db.Integer, db.ForeignKey("pos_stations.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("pos_users.id"), nullable=False, index=True)
    line_log_id = db.Column(db.Integer, db.ForeignKey("pos_line_logs.id"), nullable=True)

    token_hash = db.Column(db.String(255), nullable=False, unique=True, index=True)
    abilities = db.Column(db.JSON, nullable=False, default=list)

    sync_status = db.Column(db.String(16), nullable=False, default=SESSION_STATUS_ACTIVE, index=True)
    opened_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_activity_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    closed_reason = db.Column(db.String(255), nullable=True)

    station = db.relationship("Station", backref=db.backref("sessions", lazy=True))
    user = db.relationship("User", backref=db.backref("station_sessions", lazy=True))
    line_log = db.relationship("LineLog", backref=db.backref("station_sessions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "station_id": self.station_id,
            "user_id": self.user_id,
            "line_log_id": self.line_log_id,
            "abilities": list(self.abilities or []),
            "sync_status": self.sync_status,
            "opened_at": to_utc_z(self.opened_at),
            "last_activity_at": to_utc_z(self.last_activity_at),
            "closed_at": to_utc_z(self.closed_at) if self.closed_at else None,
        }
