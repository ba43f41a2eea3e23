# Overview: Pytest coverage for the GSTR-1 return builder and workbook export.

from datetime import date
from io import BytesIO

import pytest
from openpyxl import load_workbook

from billing.services import document_service, gstr1_service
from billing.validation import ValidationError

from conftest import line

APRIL = date(2026, 4, 10)


@pytest.fixture
def april_documents(db_session, account, local_customer, interstate_customer, registered_customer):
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
        "b2b": create(registered_customer),
        "b2cs": create(local_customer),
        "b2cl": create(interstate_customer, lines=[line(rate="250000")]),
        "deleted": create(local_customer),
        "note": create(local_customer, kind="credit_note", lines=[line(rate="100", gst_rate=0)], reason="Returned"),
        "may": create(local_customer, document_date=date(2026, 5, 2)),
    }
    document_service.soft_delete_document(account_id=account.id, document_id=docs["deleted"].id)
    return docs


class TestBuildGstr1:
    def test_sections_present(self, db_session, account):
        report = gstr1_service.build_gstr1(account.id, "042026")

        assert set(report) == {"gstin", "fp", *gstr1_service.SECTIONS}
        assert report["gstin"] == "27ABCDE1234F1Z5"
        assert report["fp"] == "042026"
        assert report["b2b"] == []
        assert report["doc_det"] == []

    def test_b2b_invoice(self, april_documents, account):
        report = gstr1_service.build_gstr1(account.id, "042026")

        assert report["b2b"] == [
            {
                "ctin": "27AAACR5055K1Z7",
                "inv": [
                    {
                        "inum": "INV/26/001",
                        "idt": "10-04-2026",
                        "val": 1180.0,
                        "pos": "27",
                        "rchrg": "N",
                        "inv_typ": "R",
                        "itms": [
                            {
                                "num": 1,
                                "itm_det": {
                                    "rt": 18,
                                    "txval": 1000.0,
                                    "iamt": 0.0,
                                    "camt": 90.0,
                                    "samt": 90.0,
                                    "csamt": 0,
                                },
                            }
                        ],
                    }
                ],
            }
        ]

    def test_b2cs_and_b2cl(self, april_documents, account):
        report = gstr1_service.build_gstr1(account.id, "042026")

        assert report["b2cs"] == [
            {
                "sply_ty": "INTRA",
                "pos": "27",
                "typ": "OE",
                "rt": 18,
                "txval": 1000.0,
                "iamt": 0.0,
                "camt": 90.0,
                "samt": 90.0,
                "csamt": 0,
            }
        ]
        assert len(report["b2cl"]) == 1
        assert report["b2cl"][0]["pos"] == "29"
        b2cl_invoice = report["b2cl"][0]["inv"][0]
        assert b2cl_invoice["inum"] == "INV/26/003"
        assert b2cl_invoice["val"] == 295000.0
        assert b2cl_invoice["itms"][0]["itm_det"]["iamt"] == 45000.0

    def test_unregistered_credit_note(self, april_documents, account):
        report = gstr1_service.build_gstr1(account.id, "042026")

        assert report["cdnr"] == []
        assert len(report["cdnur"]) == 1
        note = report["cdnur"][0]
        assert note["ntty"] == "C"
        assert note["ntnum"] == "CN/26/001"
        assert note["typ"] == "B2CS"
        assert note["val"] == 100.0

    def test_hsn_summary_nets_credit_notes(self, april_documents, account):
        report = gstr1_service.build_gstr1(account.id, "042026")

        rows = report["hsn"]["data"]
        assert len(rows) == 1
        assert rows[0]["hsn_sc"] == "998311"
        # Three active invoices minus one credit note line; the deleted invoice is left out
        assert rows[0]["qty"] == 2
        assert rows[0]["txval"] == 251900.0

    def test_doc_det_counts_deleted_as_cancelled(self, april_documents, account):
        report = gstr1_service.build_gstr1(account.id, "042026")

        invoices = next(d for d in report["doc_det"] if d["doc_num"] == 1)
        assert invoices["docs"][0] == {
            "num": 1,
            "from": "INV/26/001",
            "to": "INV/26/004",
            "totnum": 4,
            "cancel": 1,
            "net_issue": 3,
        }
        notes = next(d for d in report["doc_det"] if d["doc_num"] == 4)
        assert notes["docs"][0]["totnum"] == 1

    def test_other_periods_excluded(self, april_documents, account):
        report = gstr1_service.build_gstr1(account.id, "052026")

        assert report["b2b"] == []
        assert report["b2cs"][0]["txval"] == 1000.0
        assert report["doc_det"][0]["docs"][0]["from"] == "INV/26/005"

    def test_export_section(self, db_session, account, interstate_customer):
        document_service.create_document(
            account_id=account.id,
            kind="invoice",
            customer_id=interstate_customer.id,
            lines=[line()],
            document_date=APRIL,
            supply_type="EXPWOP",
            port_code="INNSA1",
            shipping_bill_no="SB123",
            shipping_bill_date="2026-04-11",
            export_country="Singapore",
        )

        report = gstr1_service.build_gstr1(account.id, "042026")

        assert report["exp"][0]["exp_typ"] == "WOPAY"
        inv = report["exp"][0]["inv"][0]
        assert inv["sbpcode"] == "INNSA1"
        assert inv["sbdt"] == "11-04-2026"

    def test_nil_rated_invoice_lines(self, db_session, account, local_customer):
        document_service.create_document(
            account_id=account.id,
            kind="invoice",
            customer_id=local_customer.id,
            lines=[line(rate="500", gst_rate=0), line(rate="100")],
            document_date=APRIL,
        )

        report = gstr1_service.build_gstr1(account.id, "042026")

        assert report["exemp"]["nil_sup"]["intra_unreg"] == 500.0
        assert report["exemp"]["nil_sup"]["inter_reg"] == 0.0

    @pytest.mark.parametrize("period", ["", "2026-04", "132026", "04202"])
    def test_bad_period(self, db_session, account, period):
        with pytest.raises(ValidationError):
            gstr1_service.build_gstr1(account.id, period)


class TestWorkbook:
    def test_one_sheet_per_section(self, april_documents, account):
        report = gstr1_service.build_gstr1(account.id, "042026")

        wb = load_workbook(BytesIO(gstr1_service.export_gstr1_workbook(report)))

        assert wb.sheetnames == ["b2b", "sez", "de", "b2cl", "b2cs", "cdnr", "cdnur", "exp", "exemp", "hsn", "docs"]
        b2b = wb["b2b"]
        assert b2b["A1"].value == "GSTR1 - b2b - 042026"
        assert b2b["A2"].value == "GSTIN of Recipient"
        assert b2b["A2"].font.bold
        assert b2b["A3"].value == "27AAACR5055K1Z7"
        assert b2b["B3"].value == "INV/26/001"
        docs = wb["docs"]
        assert docs["E3"].value == 1
