# Overview: Service-layer operations for GST computation; pure functions, no database work.

"""
Tax Service - CGST/SGST/IGST split for a document

Money is paise and quantities may be fractional (1.5 kg). Line arithmetic
is exact (Decimal); subtotal and tax are each rounded to the paisa once per
document (ROUND_HALF_UP):

- Intra-state: CGST = SGST = tax / 2 exactly. An odd tax leaves each half
  on a half paisa (94.5), which the document columns store as-is.
- Inter-state: IGST = tax.

The same lines therefore give the same grand total in either state.

Blank or unknown customer state is treated as intra-state (supplier's own
state). Callers that need a non-zero document must check grand_total_paise.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

GST_TYPE_INTRA = "CGST_SGST"
GST_TYPE_INTER = "IGST"

_ONE = Decimal("1")
_TWO = Decimal("2")
_BPS_DIVISOR = Decimal("10000")


@dataclass(frozen=True)
class LineItem:
    """One billable line. rate is paise per unit, gst_rate_bps is 1800 for 18%."""
    description: str
    hsn_code: str
    quantity: Decimal
    rate_paise: int
    gst_rate_bps: int

    def exact_taxable(self) -> Decimal:
        return Decimal(self.quantity) * self.rate_paise

    @property
    def taxable_paise(self) -> int:
        return _round_paise(self.exact_taxable())

    def exact_tax(self) -> Decimal:
        return self.exact_taxable() * Decimal(self.gst_rate_bps) / _BPS_DIVISOR


@dataclass(frozen=True)
class TaxResult:
    subtotal_paise: int
    tax_paise: int
    cgst_paise: Decimal
    sgst_paise: Decimal
    igst_paise: int
    grand_total_paise: int
    gst_type: str

    @property
    def is_zero(self) -> bool:
        return self.grand_total_paise == 0

    def to_dict(self) -> dict:
        return {
            "subtotal_paise": self.subtotal_paise,
            "tax_paise": self.tax_paise,
            "cgst_paise": json_number(self.cgst_paise),
            "sgst_paise": json_number(self.sgst_paise),
            "igst_paise": self.igst_paise,
            "grand_total_paise": self.grand_total_paise,
            "gst_type": self.gst_type,
        }


def json_number(value) -> int | float | None:
    """Decimal amounts and quantities as JSON numbers (int when whole)."""
    if value is None:
        return None
    d = Decimal(value)
    if d == d.to_integral_value():
        return int(d)
    return float(d)


def _state_key(state: str | None) -> str:
    return " ".join((state or "").split()).casefold()


def is_interstate(supplier_state: str | None, customer_state: str | None) -> bool:
    """
    Inter-state only when both states are known and differ.

    Unknown customer state defaults to intra-state treatment.
    """
    customer_key = _state_key(customer_state)
    if not customer_key:
        return False
    return customer_key != _state_key(supplier_state)


def _round_paise(value: Decimal) -> int:
    return int(value.quantize(_ONE, rounding=ROUND_HALF_UP))


def half_of(tax_paise: int) -> Decimal:
    """CGST (or SGST) share of an intra-state tax amount."""
    return Decimal(tax_paise) / _TWO


def compute_tax(
    lines: Iterable[LineItem],
    supplier_state: str | None,
    customer_state: str | None,
) -> TaxResult:
    """
    Compute subtotal, tax and the CGST/SGST/IGST split for a document.

    Invariants (for every input):
    - cgst + sgst + igst == tax
    - subtotal + tax == grand_total
    - either (igst == 0 and cgst == sgst == tax / 2) or (cgst == sgst == 0 and igst == tax)
    """
    exact_subtotal = Decimal(0)
    exact_tax = Decimal(0)
    for line in lines:
        exact_subtotal += line.exact_taxable()
        exact_tax += line.exact_tax()

    subtotal = _round_paise(exact_subtotal)
    tax = _round_paise(exact_tax)

    if is_interstate(supplier_state, customer_state):
        return TaxResult(
            subtotal_paise=subtotal,
            tax_paise=tax,
            cgst_paise=Decimal(0),
            sgst_paise=Decimal(0),
            igst_paise=tax,
            grand_total_paise=subtotal + tax,
            gst_type=GST_TYPE_INTER,
        )

    half = half_of(tax)
    return TaxResult(
        subtotal_paise=subtotal,
        tax_paise=tax,
        cgst_paise=half,
        sgst_paise=half,
        igst_paise=0,
        grand_total_paise=subtotal + tax,
        gst_type=GST_TYPE_INTRA,
    )


def line_tax_split(line: LineItem, gst_type: str) -> tuple:
    """
    Per-line (taxable, igst, cgst, sgst) for summaries such as the HSN table.

    Uses the same rounding rule as compute_tax applied to a single line.
    """
    tax = _round_paise(line.exact_tax())
    if gst_type == GST_TYPE_INTER:
        return line.taxable_paise, tax, 0, 0
    half = half_of(tax)
    return line.taxable_paise, 0, half, half
