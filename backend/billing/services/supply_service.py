# Overview: Service-layer operations for GSTR-1 supply-type classification; pure functions.

"""
Supply Service - GSTR-1 bucket for an invoice

AUTO-DETECTION (only without a manual override):
1. Customer has a GSTIN                                  -> B2B
2. Customer state differs from supplier AND total > 2.5L -> B2CL
3. Otherwise                                             -> B2CS

SEZ / export / deemed-export types are reachable only through a manual
override. Classification never raises: unknown overrides are ignored and a
missing customer or state falls through to B2CS.

Compliance gaps (missing shipping details, short HSN codes) are returned as
ConsistencyWarning objects and never block saving.
"""

from __future__ import annotations

from typing import Iterable

from ..models.accounts import TURNOVER_ABOVE_5CR
from ..validation import ConsistencyWarning
from .tax_service import LineItem, is_interstate

B2B = "B2B"
B2CS = "B2CS"
B2CL = "B2CL"
SEZWP = "SEZWP"
SEZWOP = "SEZWOP"
EXPWP = "EXPWP"
EXPWOP = "EXPWOP"
DE = "DE"

SUPPLY_TYPES = (B2B, B2CS, B2CL, SEZWP, SEZWOP, EXPWP, EXPWOP, DE)
EXPORT_TYPES = (EXPWP, EXPWOP)
SEZ_TYPES = (SEZWP, SEZWOP)

# Rs 2,50,000 in paise; B2CL needs a total strictly above this.
B2CL_THRESHOLD_PAISE = 250_000 * 100

EXPORT_FIELDS = (
    ("port_code", "port code"),
    ("shipping_bill_no", "shipping bill number"),
    ("shipping_bill_date", "shipping bill date"),
    ("export_country", "export country"),
)


def normalize_supply_type(value) -> str | None:
    """Return the canonical supply type or None for blank/unknown input."""
    if value is None:
        return None
    s = str(value).strip().upper()
    return s if s in SUPPLY_TYPES else None


def auto_detect(customer, total_paise: int, supplier_state: str | None) -> str:
    if customer is None:
        return B2CS
    if getattr(customer, "gstin", None):
        return B2B
    customer_state = getattr(customer, "state", None)
    if is_interstate(supplier_state, customer_state) and total_paise > B2CL_THRESHOLD_PAISE:
        return B2CL
    return B2CS


def classify(customer, total_paise: int, supplier_state: str | None, manual_override=None) -> str:
    """Effective supply type: a valid manual override wins over auto-detection."""
    override = normalize_supply_type(manual_override)
    if override is not None:
        return override
    return auto_detect(customer, total_paise, supplier_state)


def requires_export_details(supply_type: str | None) -> bool:
    return supply_type in EXPORT_TYPES or supply_type in SEZ_TYPES


def export_field_warnings(supply_type: str | None, **fields) -> list[ConsistencyWarning]:
    """Warn about each missing shipping field on an export or SEZ invoice."""
    if not requires_export_details(supply_type):
        return []
    warnings = []
    for key, label in EXPORT_FIELDS:
        value = fields.get(key)
        if value is None or (isinstance(value, str) and not value.strip()):
            warnings.append(
                ConsistencyWarning(
                    code="export_field_missing",
                    message=f"{supply_type} invoice is missing the {label}",
                    field=key,
                    context={"supply_type": supply_type},
                )
            )
    return warnings


def min_hsn_digits(annual_turnover: str | None) -> int:
    """4 digits below Rs 5 Cr turnover, 6 digits at or above."""
    return 6 if annual_turnover == TURNOVER_ABOVE_5CR else 4


def hsn_warnings(lines: Iterable[LineItem], annual_turnover: str | None) -> list[ConsistencyWarning]:
    minimum = min_hsn_digits(annual_turnover)
    warnings = []
    for idx, line in enumerate(lines):
        hsn = (line.hsn_code or "").strip()
        if len(hsn) < minimum:
            warnings.append(
                ConsistencyWarning(
                    code="hsn_too_short",
                    message=f"HSN/SAC code must have at least {minimum} digits",
                    field="hsn_code",
                    context={"line": idx, "hsn_code": hsn, "min_digits": minimum},
                )
            )
    return warnings
