from __future__ import annotations

import re
from dataclasses import dataclass, field as dc_field
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta

from billing.services.tax_service import LineItem


# Maximum single rate: Rs 99,99,99,999.99 (9,999,999,999 paise)
MAX_RATE_PAISE = 9_999_999_999

# Quantities are stored as Numeric(14, 3)
QUANTITY_STEP = Decimal("0.001")
MAX_QUANTITY = Decimal("99999999999")

GSTIN_PATTERN = re.compile(r"^[0-9]{2}[A-Z]{5}[0-9]{4}[A-Z][1-9A-Z]Z[0-9A-Z]$")


class ValidationError(ValueError):
    """400-level input problem. Raised before any state is mutated."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., editing a deleted document)."""


class NotFoundError(LookupError):
    """404-level: referenced record does not exist in the caller's account."""


@dataclass(frozen=True)
class ConsistencyWarning:
    """
    Non-fatal compliance finding surfaced with a saved document.

    Examples: HSN code shorter than the turnover bracket requires,
    export invoice without a shipping bill number.
    """
    code: str
    message: str
    field: str | None = None
    context: dict = dc_field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "field": self.field,
            "context": dict(self.context),
        }


# =============================================================================
# Scalar coercion
# =============================================================================

def _to_decimal(value: Any, name: str) -> Decimal:
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be a number")
    if isinstance(value, Decimal):
        d = value
    elif isinstance(value, (int, float, str)):
        try:
            d = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValidationError(f"{name} must be a number")
    else:
        raise ValidationError(f"{name} must be a number")
    if not d.is_finite():
        raise ValidationError(f"{name} must be a finite number")
    return d


def parse_money_paise(value: Any, name: str = "amount") -> int:
    """
    Convert a rupee amount (e.g. "499.50", 500, Decimal("0.05")) to paise.

    Rejects negatives and anything finer than one paisa; never rounds.
    """
    if value is None:
        raise ValidationError(f"{name} is required")
    d = _to_decimal(value, name)
    if d < 0:
        raise ValidationError(f"{name} must be >= 0")
    paise = d * 100
    if paise != paise.to_integral_value():
        raise ValidationError(f"{name} cannot have more than 2 decimal places")
    result = int(paise)
    if result > MAX_RATE_PAISE:
        raise ValidationError(f"{name} exceeds the maximum supported amount")
    return result


def parse_quantity(value: Any, name: str = "quantity") -> Decimal:
    """Units sold; fractional quantities (1.5 kg) are kept to 3 decimals."""
    if value is None:
        raise ValidationError(f"{name} is required")
    d = _to_decimal(value, name)
    if d < 0:
        raise ValidationError(f"{name} must be >= 0")
    if d > MAX_QUANTITY:
        raise ValidationError(f"{name} exceeds the maximum supported quantity")
    if d != d.quantize(QUANTITY_STEP):
        raise ValidationError(f"{name} cannot have more than 3 decimal places")
    return d.quantize(QUANTITY_STEP)


def parse_gst_rate_bps(value: Any, name: str = "gst_rate") -> int:
    """GST percentage (18, "12", 0.25) -> basis points (1800, 1200, 25)."""
    if value is None:
        raise ValidationError(f"{name} is required")
    d = _to_decimal(value, name)
    if d < 0 or d > 100:
        raise ValidationError(f"{name} must be between 0 and 100")
    bps = d * 100
    if bps != bps.to_integral_value():
        raise ValidationError(f"{name} cannot have more than 2 decimal places")
    return int(bps)


def normalize_gstin(value: Any) -> str | None:
    """Uppercase and validate a GSTIN. Blank values mean 'unregistered'."""
    if value is None:
        return None
    s = str(value).strip().upper()
    if not s:
        return None
    if not GSTIN_PATTERN.match(s):
        raise ValidationError("gstin is not a valid 15-character GSTIN", details={"gstin": s})
    return s


def normalize_state(value: Any) -> str:
    if value is None:
        return ""
    return " ".join(str(value).split())


def parse_line_items(raw_lines: Any) -> list[LineItem]:
    """
    Validate a JSON list of line items.

    Each entry: description, hsn_code, quantity, rate (rupees), gst_rate (%).
    Errors carry the failing line index in details.
    """
    if raw_lines is None:
        raw_lines = []
    if not isinstance(raw_lines, list):
        raise ValidationError("lines must be a list")
    if not raw_lines:
        raise ValidationError("At least one line item is required")

    items: list[LineItem] = []
    for idx, raw in enumerate(raw_lines):
        if not isinstance(raw, dict):
            raise ValidationError("Each line item must be an object", details={"line": idx})
        try:
            items.append(
                LineItem(
                    description=str(raw.get("description") or "").strip(),
                    hsn_code=str(raw.get("hsn_code") or "").strip(),
                    quantity=parse_quantity(raw.get("quantity")),
                    rate_paise=parse_money_paise(raw.get("rate"), "rate"),
                    gst_rate_bps=parse_gst_rate_bps(raw.get("gst_rate", 0)),
                )
            )
        except ValidationError as exc:
            raise ValidationError(str(exc), details={"line": idx, **exc.details})
    return items


# =============================================================================
# Model-driven payload validation (customers, business profile)
# =============================================================================

@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str):
            stripped = value.strip()
            if stripped.lstrip("-").isdigit():
                return int(stripped)
        raise ValidationError(f"{col.key} must be an integer")

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        return bool(value)

    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against SQLAlchemy column metadata
    and a policy allowlist. Returns a cleaned patch dict with only writable
    fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}
    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "" and k in required:
                raise ValidationError(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch
