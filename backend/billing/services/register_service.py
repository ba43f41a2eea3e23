# Overview: Service-layer operations for the sales, notes and HSN registers; encapsulates business logic and database work.

"""
Register Service

Period registers a business hands to its accountant, each one sheet:

- Sales register: active invoices with their tax split and status
- Credit / debit notes register: active notes with the linked invoice
- HSN summary: invoice lines grouped by HSN/SAC code ("N/A" when blank)

Amounts are paise in the JSON form and rupees in the workbook. Deleted
documents are left out; every register ends with a TOTAL row in the
workbook.
"""

from __future__ import annotations

from collections import OrderedDict
from datetime import date
from io import BytesIO

from ..extensions import db
from ..models import Customer, Document
from ..models.documents import KIND_CREDIT_NOTE, KIND_DEBIT_NOTE, KIND_INVOICE
from ..validation import ValidationError
from billing.time_utils import parse_iso_date, to_gst_date
from .account_service import get_account, get_profile
from .document_service import load_document_lines
from .gstr1_service import rupees
from .tax_service import json_number, line_tax_split

NOTE_LABELS = {KIND_CREDIT_NOTE: "Credit", KIND_DEBIT_NOTE: "Debit"}

SALES_COLUMNS = (
    ("date", "Date"),
    ("document_number", "Invoice No."),
    ("party_name", "Party Name"),
    ("gstin", "GSTIN"),
    ("taxable_paise", "Taxable Amount"),
    ("igst_paise", "IGST"),
    ("cgst_paise", "CGST"),
    ("sgst_paise", "SGST"),
    ("tax_paise", "Total Tax"),
    ("total_paise", "Total Amount"),
    ("status", "Status"),
)

NOTES_COLUMNS = (
    ("date", "Date"),
    ("document_number", "Note No."),
    ("party_name", "Party Name"),
    ("gstin", "GSTIN"),
    ("linked_invoice", "Linked Invoice"),
    ("taxable_paise", "Taxable Amount"),
    ("igst_paise", "IGST"),
    ("cgst_paise", "CGST"),
    ("sgst_paise", "SGST"),
    ("total_paise", "Total Amount"),
)

HSN_COLUMNS = (
    ("hsn_code", "HSN Code"),
    ("description", "Description"),
    ("uqc", "UQC"),
    ("quantity", "Total Qty"),
    ("taxable_paise", "Taxable Value"),
    ("cgst_paise", "CGST"),
    ("sgst_paise", "SGST"),
    ("igst_paise", "IGST"),
    ("tax_paise", "Total Tax"),
)

AMOUNT_KEYS = ("taxable_paise", "igst_paise", "cgst_paise", "sgst_paise", "tax_paise", "total_paise")
HSN_TEXT_KEYS = ("hsn_code", "description", "uqc")


def _parse_bound(value, name: str) -> date | None:
    try:
        return parse_iso_date(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be a date (YYYY-MM-DD)", details={name: value})


def parse_range(start, end) -> tuple[date | None, date | None]:
    """Optional inclusive date bounds; either side may be open."""
    start_d = _parse_bound(start, "start")
    end_d = _parse_bound(end, "end")
    if start_d and end_d and start_d > end_d:
        raise ValidationError("start must be on or before end", details={"start": start, "end": end})
    return start_d, end_d


def _documents(account_id: int, kind: str, start: date | None, end: date | None) -> list[Document]:
    query = db.session.query(Document).filter(
        Document.account_id == account_id,
        Document.kind == kind,
        Document.is_deleted.is_(False),
    )
    if start:
        query = query.filter(Document.document_date >= start)
    if end:
        query = query.filter(Document.document_date <= end)
    return query.order_by(Document.document_date.asc(), Document.sequence_number.asc()).all()


def _gstins(account_id: int) -> dict[int, str]:
    rows = db.session.query(Customer.id, Customer.gstin).filter_by(account_id=account_id).all()
    return {cid: gstin or "" for cid, gstin in rows}


def _header(account_id: int, title: str, start, end) -> dict:
    account = get_account(account_id)
    profile = get_profile(account_id)
    return {
        "title": title,
        "business_name": account.name,
        "gstin": profile.gstin or "",
        "start": start.isoformat() if start else None,
        "end": end.isoformat() if end else None,
    }


def _totals(rows: list[dict], keys) -> dict:
    return {key: json_number(sum((row[key] for row in rows), 0)) for key in keys}


def _document_amounts(document: Document) -> dict:
    return {
        "taxable_paise": document.subtotal_paise,
        "igst_paise": document.igst_paise,
        "cgst_paise": json_number(document.cgst_paise),
        "sgst_paise": json_number(document.sgst_paise),
        "tax_paise": document.tax_paise,
        "total_paise": document.grand_total_paise,
    }


def build_sales_register(account_id: int, start=None, end=None) -> dict:
    start_d, end_d = parse_range(start, end)
    register = _header(account_id, "Sales Register", start_d, end_d)
    gstins = _gstins(account_id)

    rows = []
    for idx, document in enumerate(_documents(account_id, KIND_INVOICE, start_d, end_d), start=1):
        rows.append(
            {
                "num": idx,
                "date": document.document_date.isoformat(),
                "document_number": document.document_number,
                "party_name": document.customer_name,
                "gstin": gstins.get(document.customer_id, ""),
                **_document_amounts(document),
                "status": document.status or "",
            }
        )

    register.update(kind="sales", columns=SALES_COLUMNS, rows=rows, totals=_totals(rows, AMOUNT_KEYS))
    return register


def build_notes_register(account_id: int, kind: str, start=None, end=None) -> dict:
    label = NOTE_LABELS.get(kind)
    if label is None:
        raise ValidationError("kind must be credit_note or debit_note", details={"kind": kind})
    start_d, end_d = parse_range(start, end)
    register = _header(account_id, f"{label} Notes Register", start_d, end_d)
    gstins = _gstins(account_id)

    rows = []
    for idx, document in enumerate(_documents(account_id, kind, start_d, end_d), start=1):
        amounts = _document_amounts(document)
        amounts.pop("tax_paise")
        rows.append(
            {
                "num": idx,
                "date": document.document_date.isoformat(),
                "document_number": document.document_number,
                "party_name": document.customer_name,
                "gstin": gstins.get(document.customer_id, ""),
                "linked_invoice": document.original_invoice_number or "",
                **amounts,
            }
        )

    keys = tuple(k for k in AMOUNT_KEYS if k != "tax_paise")
    register.update(kind=kind, columns=NOTES_COLUMNS, rows=rows, totals=_totals(rows, keys))
    return register


def build_hsn_summary(account_id: int, start=None, end=None) -> dict:
    """Invoice lines only; notes are netted in the GSTR-1 HSN table instead."""
    start_d, end_d = parse_range(start, end)
    register = _header(account_id, "HSN Summary", start_d, end_d)

    grouped: "OrderedDict[str, dict]" = OrderedDict()
    for document in _documents(account_id, KIND_INVOICE, start_d, end_d):
        for line in load_document_lines(document):
            code = (line.hsn_code or "").strip() or "N/A"
            taxable, igst, cgst, sgst = line_tax_split(line, document.gst_type)
            row = grouped.setdefault(
                code,
                {
                    "hsn_code": code,
                    "description": line.description,
                    "uqc": "NOS",
                    "quantity": 0,
                    "taxable_paise": 0,
                    "cgst_paise": 0,
                    "sgst_paise": 0,
                    "igst_paise": 0,
                    "tax_paise": 0,
                },
            )
            row["quantity"] += line.quantity
            row["taxable_paise"] += taxable
            row["cgst_paise"] += cgst
            row["sgst_paise"] += sgst
            row["igst_paise"] += igst
            row["tax_paise"] += igst + cgst + sgst

    rows = [
        {key: value if key in HSN_TEXT_KEYS else json_number(value) for key, value in grouped[code].items()}
        for code in sorted(grouped)
    ]

    keys = ("taxable_paise", "cgst_paise", "sgst_paise", "igst_paise", "tax_paise")
    register.update(kind="hsn", columns=HSN_COLUMNS, rows=rows, totals=_totals(rows, keys))
    return register


# =============================================================================
# Workbook export
# =============================================================================

def _cell(key: str, value):
    if key.endswith("_paise"):
        return rupees(value)
    if key == "date":
        return to_gst_date(date.fromisoformat(value))
    return value


def export_register_workbook(register: dict) -> bytes:
    """
    Single sheet. Row 1 is the title with the business GSTIN, row 3 the
    column headers, data from row 4 and a TOTAL row last.
    """
    from openpyxl import Workbook
    from openpyxl.styles import Font

    columns = register["columns"]
    period = " to ".join(p for p in (register["start"], register["end"]) if p) or "All dates"

    wb = Workbook()
    ws = wb.active
    ws.title = register["title"][:31]
    ws.append([f"{register['title']} - {period} - {register['business_name']}", "", "",
               f"GSTIN: {register['gstin'] or '-'}"])
    ws.append([])
    ws.append(["#"] + [label for _, label in columns])
    bold = Font(bold=True)
    for cell in ws[3]:
        cell.font = bold

    for idx, row in enumerate(register["rows"], start=1):
        ws.append([idx] + [_cell(key, row[key]) for key, _ in columns])

    totals = register["totals"]
    ws.append(["TOTAL"] + [rupees(totals[key]) if key in totals else "" for key, _ in columns])
    for cell in ws[ws.max_row]:
        cell.font = bold

    for idx in range(1, len(columns) + 2):
        ws.column_dimensions[ws.cell(row=3, column=idx).column_letter].width = 16

    buf = BytesIO()
    wb.save(buf)
    return buf.getvalue()
