# backend/linesync/config.py
from __future__ import annotations
import os


def _env_int(name: str, default: int) -> int:
    raw = (os.environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///linesync.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Sessions untouched for this long are abandoned on next lookup
    SESSION_IDLE_TIMEOUT_MINUTES = _env_int("SESSION_IDLE_TIMEOUT_MINUTES", 240)

    # Anonymous buyers are keyed on the station as "C<n>"
    CASH_CODE_PREFIX = os.environ.get("CASH_CODE_PREFIX", "C")
    # Legacy id of the single placeholder account that receives cash sales
    CASH_ACCOUNT_LCS_ID = _env_int("CASH_ACCOUNT_LCS_ID", 999999999)
    # Synthetic family ids for cash customers start here, per (date, line type)
    CASH_FAMILY_ID_START = _env_int("CASH_FAMILY_ID_START", 9500000)

    # Line used when a station omits mealType/lineNum on an item
    DEFAULT_MEAL_TYPE = os.environ.get("DEFAULT_MEAL_TYPE", "L")
    DEFAULT_LINE_NUM = _env_int("DEFAULT_LINE_NUM", 10)

    SYNC_RETRY_ATTEMPTS = _env_int("SYNC_RETRY_ATTEMPTS", 3)
