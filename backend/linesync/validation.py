from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from linesync.time_utils import parse_iso_datetime, parse_line_date
from linesync.models.sync import SYNC_KEY_MAX_LENGTH


_LINE_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

# Maximum price/amount: $99,999,999.99 fits Numeric(10, 2)
MAX_AMOUNT = Decimal("99999999.99")

# Raw account token as stored on each record (station_student_id)
STATION_ACCOUNT_MAX_LENGTH = 32


class ValidationError(ValueError):
    """400-level input problem. Rejects the whole request before any processing."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


@dataclass(frozen=True)
class FieldRule:
    """
    One field of an uploaded item.

    kind: "string", "integer", "numeric", "date", "datetime", "list", "any"
    required: key must be present, non-null and non-blank
    """
    name: str
    kind: str
    required: bool = False
    max_length: int | None = None
    exact_length: int | None = None
    choices: tuple[str, ...] | None = None
    case_insensitive: bool = False
    min_value: int | None = None


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def _coerce(rule: FieldRule, value: Any, path: str):
    kind = rule.kind

    if kind == "integer":
        # Already an int (but not bool which is a subclass of int)
        if isinstance(value, int) and not isinstance(value, bool):
            number = value
        elif isinstance(value, str) and re.fullmatch(r"-?\d+", value.strip()):
            number = int(value.strip())
        else:
            raise ValidationError(f"{path} must be an integer", path)
        if rule.min_value is not None and number < rule.min_value:
            raise ValidationError(f"{path} must be at least {rule.min_value}", path)
        return number

    if kind == "numeric":
        if isinstance(value, bool):
            raise ValidationError(f"{path} must be a number", path)
        if isinstance(value, (int, float, str)):
            try:
                amount = Decimal(str(value).strip())
            except InvalidOperation:
                raise ValidationError(f"{path} must be a number", path)
            if not amount.is_finite():
                raise ValidationError(f"{path} must be a number", path)
            if abs(amount) > MAX_AMOUNT:
                raise ValidationError(f"{path} exceeds {MAX_AMOUNT}", path)
            return amount.quantize(Decimal("0.01"))
        raise ValidationError(f"{path} must be a number", path)

    if kind == "date":
        if isinstance(value, str) and _LINE_DATE_RE.match(value.strip()):
            try:
                return parse_line_date(value.strip())
            except ValueError:
                pass
        raise ValidationError(f"{path} must match the format Y-m-d", path)

    if kind == "datetime":
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                dt = None
            if dt is not None:
                return dt
        raise ValidationError(f"{path} must be an ISO-8601 datetime", path)

    if kind == "list":
        if not isinstance(value, list):
            raise ValidationError(f"{path} must be an array", path)
        return value

    if kind == "string":
        if isinstance(value, bool) or not isinstance(value, (str, int, float)):
            raise ValidationError(f"{path} must be a string", path)
        text = str(value).strip()
        if rule.max_length is not None and len(text) > rule.max_length:
            raise ValidationError(f"{path} may not be greater than {rule.max_length} characters", path)
        if rule.exact_length is not None and len(text) != rule.exact_length:
            raise ValidationError(f"{path} must be {rule.exact_length} characters", path)
        if rule.choices is not None:
            candidate = text.upper() if rule.case_insensitive else text
            if candidate not in rule.choices:
                raise ValidationError(f"{path} must be one of: {', '.join(rule.choices)}", path)
            return candidate
        return text

    # "any": passed through untouched, length-checked when given
    if rule.max_length is not None and len(str(value).strip()) > rule.max_length:
        raise ValidationError(f"{path} may not be greater than {rule.max_length} characters", path)
    return value


def validate_item(item: Any, rules: tuple[FieldRule, ...], prefix: str = "") -> dict:
    """
    Validate and normalize one object against its field rules.

    Unknown keys are kept as-is so stations can send extra context without
    being rejected. Returns a new dict.
    """
    if not isinstance(item, dict):
        raise ValidationError(f"{prefix or 'payload'} must be an object", prefix or None)

    cleaned = dict(item)
    for rule in rules:
        path = f"{prefix}.{rule.name}" if prefix else rule.name
        raw = item.get(rule.name)
        if _is_blank(raw):
            if rule.required:
                raise ValidationError(f"{path} is required", path)
            cleaned[rule.name] = None
            continue
        cleaned[rule.name] = _coerce(rule, raw, path)
    return cleaned


def validate_batch(payload: Any, collection: str, rules: tuple[FieldRule, ...]) -> list[dict]:
    """
    Validate an upload body of the form {collection: [item, ...]}.

    Any invalid item rejects the whole batch.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    items = payload.get(collection)
    if not isinstance(items, list):
        raise ValidationError(f"{collection} must be an array", collection)
    return [validate_item(item, rules, f"{collection}.{i}") for i, item in enumerate(items)]


# =============================================================================
# UPLOAD POLICIES
# =============================================================================

TRANSACTION_RULES = (
    FieldRule("syncKey", "string", required=True, max_length=SYNC_KEY_MAX_LENGTH),
    FieldRule("localId", "integer", required=True),
    FieldRule("userId", "any"),
    FieldRule("studentId", "any", required=True, max_length=STATION_ACCOUNT_MAX_LENGTH),
    FieldRule("itemId", "integer", required=True),
    FieldRule("price", "numeric", required=True),
    FieldRule("lineDate", "date", required=True),
    FieldRule("lineLogId", "integer", required=True),
    FieldRule("stationSessionId", "integer", required=True),
    FieldRule("mealType", "string", max_length=1),
    FieldRule("lineNum", "integer", min_value=0),
    FieldRule("transactionCode", "string", max_length=1),
    FieldRule("itemType", "string", max_length=1),
    FieldRule("timestampUTC", "datetime"),
    FieldRule("familyId", "integer"),
    FieldRule("schoolCode", "string", max_length=16),
)

PAYMENT_RULES = (
    FieldRule("syncKey", "string", required=True, max_length=SYNC_KEY_MAX_LENGTH),
    FieldRule("localId", "integer", required=True),
    FieldRule("userId", "any"),
    FieldRule("studentId", "any", required=True, max_length=STATION_ACCOUNT_MAX_LENGTH),
    FieldRule("paymentType", "string", required=True, choices=("CASH", "CHECK"), case_insensitive=True),
    FieldRule("amount", "numeric", required=True),
    FieldRule("lineDate", "date", required=True),
    FieldRule("lineLogId", "integer"),
    FieldRule("stationSessionId", "integer"),
    FieldRule("mealType", "string", max_length=1),
    FieldRule("lineNum", "integer", min_value=0),
    FieldRule("memo", "string", max_length=255),
    FieldRule("checkNumber", "string", max_length=32),
    FieldRule("timestampUTC", "datetime"),
    FieldRule("familyId", "integer"),
    FieldRule("schoolCode", "string", max_length=16),
)

DELETION_RULES = (
    FieldRule("syncKey", "string", required=True, max_length=SYNC_KEY_MAX_LENGTH),
    FieldRule("originalSyncKey", "string", required=True, max_length=SYNC_KEY_MAX_LENGTH),
    FieldRule("tableName", "string", required=True, choices=("transactions", "payments")),
    FieldRule("localId", "integer", required=True),
)

SYNC_VALIDATE_RULES = (
    FieldRule("studentId", "integer", required=True),
    FieldRule("lineDate", "date", required=True),
    FieldRule("mealType", "string", required=True, exact_length=1),
    FieldRule("mode", "string", choices=("count", "full")),
    FieldRule("transactionCount", "integer"),
    FieldRule("paymentCount", "integer"),
    FieldRule("transactionSyncKeys", "list"),
    FieldRule("paymentSyncKeys", "list"),
)


def validate_sync_key_list(keys: list | None, path: str) -> list[str]:
    if keys is None:
        return []
    cleaned = []
    for i, key in enumerate(keys):
        if not isinstance(key, str) or not key:
            raise ValidationError(f"{path}.{i} must be a string", f"{path}.{i}")
        cleaned.append(key)
    return cleaned


def normalize_line(item: dict, default_meal_type: str, default_line_num: int) -> tuple[str, int]:
    """Line an item was rung up on; falls back to the configured default line."""
    meal_type = (item.get("mealType") or default_meal_type).upper()
    line_num = item.get("lineNum")
    if line_num is None:
        line_num = default_line_num
    return meal_type, line_num


def coerce_int(raw: Any) -> int | None:
    """Integer from a loosely typed station value ("12", 12), else None."""
    if isinstance(raw, bool) or raw is None:
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, str) and raw.strip().isdigit():
        return int(raw.strip())
    return None
