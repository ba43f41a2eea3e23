# Overview: Pytest coverage for the sales, notes and HSN registers and their workbook export.

from datetime import date
from io import BytesIO

import pytest
from openpyxl import load_workbook

from billing.services import document_service, register_service
from billing.validation import ValidationError

from conftest import line

APRIL = date(2026, 4, 10)


@pytest.fixture
def registered_documents(db_session, account, local_customer, interstate_customer, registered_customer):
    def create(customer, kind="invoice", lines=None, **kwargs):
        kwargs.setdefault("document_date", APRIL)
        return document_service.create_document(
            account_id=account.id,
            kind=kind,
            customer_id=customer.id,
            lines=lines or [line()],
            **kwargs,
        ).document

    docs = {
        "local": create(registered_customer),
        "interstate": create(interstate_customer, lines=[line(rate="250000")]),
        "deleted": create(local_customer),
    }
    docs["note"] = create(
        local_customer, kind="credit_note", lines=[line(rate="100", gst_rate=0)],
        reason="Returned", original_invoice_id=docs["local"].id,
    )
    docs["may"] = create(
        local_customer, document_date=date(2026, 5, 2), lines=[line(hsn_code="", quantity="2.5", rate="10")]
    )
    document_service.soft_delete_document(account_id=account.id, document_id=docs["deleted"].id)
    return docs


def sheet(register):
    return load_workbook(BytesIO(register_service.export_register_workbook(register))).active


class TestSalesRegister:
    def test_rows_skip_deleted_invoices(self, registered_documents, account):
        register = register_service.build_sales_register(account.id)

        assert [r["document_number"] for r in register["rows"]] == ["INV/26/001", "INV/26/002", "INV/26/004"]
        assert [r["num"] for r in register["rows"]] == [1, 2, 3]

    def test_row_shape(self, registered_documents, account):
        register = register_service.build_sales_register(account.id, "2026-04-01", "2026-04-30")

        assert register["title"] == "Sales Register"
        assert register["business_name"] == "Acme Traders"
        assert register["gstin"] == "27ABCDE1234F1Z5"
        assert register["rows"][0] == {
            "num": 1,
            "date": "2026-04-10",
            "document_number": "INV/26/001",
            "party_name": "Registered Buyer",
            "gstin": "27AAACR5055K1Z7",
            "taxable_paise": 100000,
            "igst_paise": 0,
            "cgst_paise": 9000,
            "sgst_paise": 9000,
            "tax_paise": 18000,
            "total_paise": 118000,
            "status": "Unpaid",
        }
        assert register["rows"][1]["gstin"] == ""
        assert register["rows"][1]["igst_paise"] == 4500000

    def test_totals(self, registered_documents, account):
        totals = register_service.build_sales_register(account.id, end="2026-04-30")["totals"]

        assert totals == {
            "taxable_paise": 25100000,
            "igst_paise": 4500000,
            "cgst_paise": 9000,
            "sgst_paise": 9000,
            "tax_paise": 4518000,
            "total_paise": 29618000,
        }

    def test_half_paise_totals(self, registered_documents, account):
        totals = register_service.build_sales_register(account.id, start="2026-05-01")["totals"]

        # 2.5 x Rs 10 at 18% = 450 paise of tax, 225 each half
        assert totals["taxable_paise"] == 2500
        assert totals["cgst_paise"] == 225
        assert totals["total_paise"] == 2950

    def test_bad_range(self, db_session, account):
        with pytest.raises(ValidationError):
            register_service.build_sales_register(account.id, "2026-05-01", "2026-04-01")
        with pytest.raises(ValidationError):
            register_service.build_sales_register(account.id, start="01-04-2026")


class TestNotesRegister:
    def test_credit_notes(self, registered_documents, account):
        register = register_service.build_notes_register(account.id, "credit_note")

        assert register["title"] == "Credit Notes Register"
        assert len(register["rows"]) == 1
        row = register["rows"][0]
        assert row["document_number"] == "CN/26/001"
        assert row["linked_invoice"] == "INV/26/001"
        assert row["total_paise"] == 10000
        assert "tax_paise" not in row
        assert register["totals"]["taxable_paise"] == 10000

    def test_debit_notes_empty(self, registered_documents, account):
        register = register_service.build_notes_register(account.id, "debit_note")

        assert register["title"] == "Debit Notes Register"
        assert register["rows"] == []
        assert register["totals"]["total_paise"] == 0

    def test_invoice_is_not_a_note_kind(self, db_session, account):
        with pytest.raises(ValidationError):
            register_service.build_notes_register(account.id, "invoice")


class TestHsnSummary:
    def test_grouped_by_code(self, registered_documents, account):
        rows = register_service.build_hsn_summary(account.id)["rows"]

        assert [r["hsn_code"] for r in rows] == ["998311", "N/A"]
        assert rows[0]["quantity"] == 2
        assert rows[0]["taxable_paise"] == 25100000
        assert rows[0]["igst_paise"] == 4500000
        assert rows[0]["cgst_paise"] == rows[0]["sgst_paise"] == 9000
        assert rows[0]["tax_paise"] == 4518000
        assert rows[1]["quantity"] == 2.5
        assert rows[1]["uqc"] == "NOS"
        assert rows[1]["tax_paise"] == 450

    def test_notes_not_included(self, registered_documents, account):
        summary = register_service.build_hsn_summary(account.id, "2026-04-01", "2026-04-30")

        assert summary["totals"]["taxable_paise"] == 25100000


class TestRegisterWorkbook:
    def test_sales_layout(self, registered_documents, account):
        ws = sheet(register_service.build_sales_register(account.id, "2026-04-01", "2026-04-30"))

        assert ws["A1"].value == "Sales Register - 2026-04-01 to 2026-04-30 - Acme Traders"
        assert ws["D1"].value == "GSTIN: 27ABCDE1234F1Z5"
        assert ws["A2"].value is None
        assert [c.value for c in ws[3]][:4] == ["#", "Date", "Invoice No.", "Party Name"]
        assert ws["A3"].font.bold
        assert [c.value for c in ws[4]] == [
            1, "10-04-2026", "INV/26/001", "Registered Buyer", "27AAACR5055K1Z7",
            1000, 0, 90, 90, 180, 1180, "Unpaid",
        ]
        assert ws.max_row == 6
        assert ws["A6"].value == "TOTAL"
        assert ws["A6"].font.bold
        assert ws["F6"].value == 251000

    def test_open_period_title(self, db_session, account):
        ws = sheet(register_service.build_sales_register(account.id))

        assert ws["A1"].value == "Sales Register - All dates - Acme Traders"
        assert ws.max_row == 4
        assert ws["A4"].value == "TOTAL"

    def test_hsn_layout(self, registered_documents, account):
        ws = sheet(register_service.build_hsn_summary(account.id))

        assert [c.value for c in ws[3]] == [
            "#", "HSN Code", "Description", "UQC", "Total Qty", "Taxable Value", "CGST", "SGST", "IGST", "Total Tax",
        ]
        assert ws["B5"].value == "N/A"
        assert ws["E5"].value == 2.5
        assert ws["G5"].value == 2.25
