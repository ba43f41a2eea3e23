# Overview: Pytest coverage for the CGST/SGST/IGST split.

from decimal import Decimal

import pytest

from billing.services.tax_service import (
    GST_TYPE_INTER,
    GST_TYPE_INTRA,
    LineItem,
    compute_tax,
    is_interstate,
    line_tax_split,
)


def item(quantity=1, rate_paise=100000, gst_rate_bps=1800, hsn_code="998311"):
    return LineItem(
        description="Item",
        hsn_code=hsn_code,
        quantity=quantity,
        rate_paise=rate_paise,
        gst_rate_bps=gst_rate_bps,
    )


class TestComputeTax:
    def test_intra_state_split(self):
        """Rs 1000 at 18% in the supplier's state: Rs 90 + Rs 90."""
        result = compute_tax([item()], "Maharashtra", "Maharashtra")

        assert result.gst_type == GST_TYPE_INTRA
        assert result.subtotal_paise == 100000
        assert result.cgst_paise == 9000
        assert result.sgst_paise == 9000
        assert result.igst_paise == 0
        assert result.tax_paise == 18000
        assert result.grand_total_paise == 118000

    def test_inter_state_igst(self):
        result = compute_tax([item()], "Maharashtra", "Karnataka")

        assert result.gst_type == GST_TYPE_INTER
        assert result.igst_paise == 18000
        assert result.cgst_paise == 0
        assert result.sgst_paise == 0
        assert result.grand_total_paise == 118000

    def test_blank_customer_state_is_intra_state(self):
        result = compute_tax([item()], "Maharashtra", "")
        assert result.gst_type == GST_TYPE_INTRA

        result = compute_tax([item()], "Maharashtra", None)
        assert result.gst_type == GST_TYPE_INTRA

    def test_state_comparison_ignores_case_and_spacing(self):
        assert not is_interstate("Tamil Nadu", "  tamil   nadu ")
        assert is_interstate("Tamil Nadu", "Kerala")

    def test_intra_state_halves_the_rounded_tax(self):
        """30 paise at 5% = 1.5 paise of tax, rounded once to 2; each half is 1."""
        result = compute_tax([item(rate_paise=30, gst_rate_bps=500)], "Goa", "Goa")

        assert result.tax_paise == 2
        assert result.cgst_paise == 1
        assert result.sgst_paise == 1

    def test_half_paisa_rounds_up_in_both_states(self):
        """10 paise at 5% = 0.5 paise: tax is 1 either way, split 0.5 + 0.5 intra-state."""
        inter = compute_tax([item(rate_paise=10, gst_rate_bps=500)], "Goa", "Kerala")
        intra = compute_tax([item(rate_paise=10, gst_rate_bps=500)], "Goa", "Goa")

        assert inter.igst_paise == 1
        assert intra.tax_paise == 1
        assert intra.cgst_paise == intra.sgst_paise == Decimal("0.5")
        assert intra.grand_total_paise == inter.grand_total_paise == 11

    def test_odd_paise_tax_keeps_half_paise_split(self):
        """Rs 10.50 at 18% = 189 paise of tax; CGST and SGST are 94.5 each."""
        intra = compute_tax([item(rate_paise=1050, gst_rate_bps=1800)], "Goa", "Goa")
        inter = compute_tax([item(rate_paise=1050, gst_rate_bps=1800)], "Goa", "Kerala")

        assert intra.tax_paise == inter.tax_paise == 189
        assert intra.cgst_paise == intra.sgst_paise == Decimal("94.5")
        assert intra.cgst_paise + intra.sgst_paise == 189
        assert inter.igst_paise == 189
        assert intra.grand_total_paise == inter.grand_total_paise == 1239

        data = intra.to_dict()
        assert data["cgst_paise"] == 94.5
        assert data["sgst_paise"] == 94.5

    def test_fractional_quantity(self):
        """1.5 units of Rs 100 at 18%."""
        result = compute_tax([item(quantity=Decimal("1.5"), rate_paise=10000)], "Goa", "Goa")

        assert result.subtotal_paise == 15000
        assert result.tax_paise == 2700
        assert result.cgst_paise == result.sgst_paise == 1350
        assert result.grand_total_paise == 17700

    def test_fractional_line_rounds_with_the_document(self):
        """0.333 of 100 paise is 33.3 paise; three such lines total 99.9, rounded to 100."""
        lines = [item(quantity=Decimal("0.333"), rate_paise=100, gst_rate_bps=0)] * 3
        result = compute_tax(lines, "Goa", "Goa")

        assert lines[0].taxable_paise == 33
        assert result.subtotal_paise == 100

    def test_rounding_happens_once_per_document(self):
        """Fractions from several lines add up before rounding."""
        lines = [item(rate_paise=10, gst_rate_bps=500), item(rate_paise=10, gst_rate_bps=500)]
        result = compute_tax(lines, "Goa", "Kerala")

        assert result.subtotal_paise == 20
        assert result.igst_paise == 1

    def test_mixed_rates(self):
        lines = [
            item(quantity=2, rate_paise=50000, gst_rate_bps=1200),
            item(quantity=1, rate_paise=20000, gst_rate_bps=2800),
            item(quantity=3, rate_paise=1000, gst_rate_bps=0),
        ]
        result = compute_tax(lines, "Delhi", "Delhi")

        # 100000 * 12% + 20000 * 28% = 12000 + 5600
        assert result.subtotal_paise == 123000
        assert result.tax_paise == 17600
        assert result.cgst_paise == result.sgst_paise == 8800

    def test_zero_quantity_gives_zero_total(self):
        result = compute_tax([item(quantity=0)], "Delhi", "Delhi")
        assert result.is_zero

    def test_empty_lines(self):
        result = compute_tax([], "Delhi", "Punjab")
        assert result.grand_total_paise == 0
        assert result.gst_type == GST_TYPE_INTER

    @pytest.mark.parametrize(
        "rate_paise,gst_rate_bps,customer_state",
        [
            (1, 25, "Goa"),
            (333, 300, "Goa"),
            (99999, 1800, "Kerala"),
            (12345, 2800, ""),
            (7, 500, "Kerala"),
        ],
    )
    def test_split_invariants(self, rate_paise, gst_rate_bps, customer_state):
        result = compute_tax([item(quantity=3, rate_paise=rate_paise, gst_rate_bps=gst_rate_bps)], "Goa", customer_state)

        assert result.cgst_paise + result.sgst_paise + result.igst_paise == result.tax_paise
        assert result.subtotal_paise + result.tax_paise == result.grand_total_paise
        if result.igst_paise:
            assert result.cgst_paise == result.sgst_paise == 0
        else:
            assert result.cgst_paise == result.sgst_paise

    def test_to_dict(self):
        data = compute_tax([item()], "Maharashtra", "Karnataka").to_dict()
        assert data["igst_paise"] == 18000
        assert data["gst_type"] == "IGST"


class TestLineTaxSplit:
    def test_intra_state_line(self):
        assert line_tax_split(item(), GST_TYPE_INTRA) == (100000, 0, 9000, 9000)

    def test_inter_state_line(self):
        assert line_tax_split(item(), GST_TYPE_INTER) == (100000, 18000, 0, 0)

    def test_odd_tax_line_splits_into_half_paise(self):
        assert line_tax_split(item(rate_paise=1050), GST_TYPE_INTRA) == (1050, 0, Decimal("94.5"), Decimal("94.5"))
