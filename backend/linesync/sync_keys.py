# Overview: Value types parsed once at the upload boundary.

"""
Structured identifiers carried by every uploaded record.

SyncKey: "{lineLogId}-{sessionId}-{localId}". Stations build it offline so a
retried upload is recognised without negotiating ids with the server.
Idempotency only ever compares the raw string; the parsed form is used to
attribute a record to the session (and station) that created it.

AccountRef: the station's account token is either a roster account id
("12345") or a cash code ("C3"). It is classified once when the item is
parsed; downstream code branches on the variant type.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class SyncKey:
    line_log_id: int
    session_id: int
    local_id: str

    @classmethod
    def parse(cls, raw: str | None) -> SyncKey | None:
        """Parse a sync key; returns None when it does not follow the format."""
        if not raw:
            return None
        parts = str(raw).split("-", 2)
        if len(parts) != 3:
            return None
        line_log_id, session_id, local_id = parts
        if not (line_log_id.isdigit() and session_id.isdigit()) or not local_id:
            return None
        return cls(line_log_id=int(line_log_id), session_id=int(session_id), local_id=local_id)

    def format(self) -> str:
        return f"{self.line_log_id}-{self.session_id}-{self.local_id}"

    def __str__(self) -> str:
        return self.format()


@dataclass(frozen=True)
class RealAccount:
    """Roster account, addressed by its durable cloud id."""
    account_id: int
    raw: str


@dataclass(frozen=True)
class CashAccount:
    """Anonymous buyer; raw is the station's cash code (e.g. "C3")."""
    raw: str


AccountRef = RealAccount | CashAccount


def is_cash_token(raw: str, prefix: str = "C") -> bool:
    return str(raw).strip().upper().startswith(prefix.upper())


def parse_account_ref(raw, cash_prefix: str = "C") -> AccountRef:
    """
    Classify a station account token.

    Raises ValueError when the token is neither a cash code nor an integer id.
    """
    if isinstance(raw, bool) or raw is None:
        raise ValueError("account token must be an integer id or a cash code")
    if isinstance(raw, int):
        return RealAccount(account_id=raw, raw=str(raw))
    token = str(raw).strip()
    if not token:
        raise ValueError("account token must not be blank")
    if is_cash_token(token, cash_prefix):
        return CashAccount(raw=token)
    if token.lstrip("-").isdigit():
        return RealAccount(account_id=int(token), raw=token)
    raise ValueError("account token must be an integer id or a cash code")
