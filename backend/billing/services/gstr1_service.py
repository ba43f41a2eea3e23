# Overview: Service-layer assembly of the GSTR-1 outward-supply return (JSON sections and .xlsx export).

"""
GSTR-1 Service

Builds the return for one filing period ("MMYYYY") from the account's
active documents dated inside the period. Each invoice lands in exactly one
section according to its stored supply type; notes go to cdnr (registered
customer) or cdnur (unregistered).

Amounts in the report are rupees with 2 decimals, as the portal expects.
Per-line tax follows the same rounding rule as the document total.

HSN summary: credit notes count negative; codes shorter than the
turnover-bracket minimum are left out (they were flagged when saving).

doc_det reports every number issued in the period; deleted documents are
reported as cancelled.
"""

from __future__ import annotations

from collections import OrderedDict
from decimal import Decimal
from io import BytesIO
from typing import Iterable

from ..extensions import db
from ..models import Customer, Document
from ..models.documents import KIND_CREDIT_NOTE, KIND_DEBIT_NOTE, KIND_INVOICE
from ..validation import ValidationError
from billing.time_utils import parse_return_period, to_gst_date
from .account_service import get_profile
from .document_service import load_document_lines
from .supply_service import (
    B2B,
    B2CL,
    B2CS,
    DE,
    EXPWP,
    EXPORT_TYPES,
    SEZWP,
    SEZ_TYPES,
    auto_detect,
    min_hsn_digits,
)
from .tax_service import GST_TYPE_INTER, json_number, line_tax_split

STATE_CODE_MAP = {
    "Jammu and Kashmir": "01",
    "Himachal Pradesh": "02",
    "Punjab": "03",
    "Chandigarh": "04",
    "Uttarakhand": "05",
    "Haryana": "06",
    "Delhi": "07",
    "Rajasthan": "08",
    "Uttar Pradesh": "09",
    "Bihar": "10",
    "Sikkim": "11",
    "Arunachal Pradesh": "12",
    "Nagaland": "13",
    "Manipur": "14",
    "Mizoram": "15",
    "Tripura": "16",
    "Meghalaya": "17",
    "Assam": "18",
    "West Bengal": "19",
    "Jharkhand": "20",
    "Odisha": "21",
    "Chhattisgarh": "22",
    "Madhya Pradesh": "23",
    "Gujarat": "24",
    "Dadra and Nagar Haveli and Daman and Diu": "26",
    "Maharashtra": "27",
    "Karnataka": "29",
    "Goa": "30",
    "Lakshadweep": "31",
    "Kerala": "32",
    "Tamil Nadu": "33",
    "Puducherry": "34",
    "Andaman and Nicobar Islands": "35",
    "Telangana": "36",
    "Andhra Pradesh": "37",
    "Ladakh": "38",
}

_STATE_CODES_BY_KEY = {name.casefold(): code for name, code in STATE_CODE_MAP.items()}

# doc_det "Nature of document" numbers on the portal
DOC_NATURE = (
    (1, KIND_INVOICE, "Invoices for outward supply"),
    (5, KIND_DEBIT_NOTE, "Debit Note"),
    (4, KIND_CREDIT_NOTE, "Credit Note"),
)

SECTIONS = ("b2b", "sez", "de", "b2cl", "b2cs", "cdnr", "cdnur", "exp", "exemp", "hsn", "doc_det")


def state_code(state: str | None) -> str:
    """GST state code for a state name; unknown names pass through unchanged."""
    s = " ".join((state or "").split())
    return _STATE_CODES_BY_KEY.get(s.casefold(), s)


def rupees(paise) -> float:
    return float(Decimal(paise) / 100)


def _rate(bps: int) -> float:
    value = Decimal(bps) / 100
    return int(value) if value == value.to_integral_value() else float(value)


def _line_items(document: Document) -> list[dict]:
    items = []
    for idx, line in enumerate(load_document_lines(document), start=1):
        taxable, igst, cgst, sgst = line_tax_split(line, document.gst_type)
        items.append(
            {
                "num": idx,
                "itm_det": {
                    "rt": _rate(line.gst_rate_bps),
                    "txval": rupees(taxable),
                    "iamt": rupees(igst),
                    "camt": rupees(cgst),
                    "samt": rupees(sgst),
                    "csamt": 0,
                },
            }
        )
    return items


def _effective_supply_type(document: Document, customer: Customer | None, supplier_state: str) -> str:
    if document.supply_type:
        return document.supply_type
    return auto_detect(customer, document.grand_total_paise, supplier_state)


def _invoice_entry(document: Document, pos: str) -> dict:
    return {
        "inum": document.document_number,
        "idt": to_gst_date(document.document_date),
        "val": rupees(document.grand_total_paise),
        "pos": pos,
        "rchrg": "Y" if document.reverse_charge else "N",
        "itms": _line_items(document),
    }


def _group_by(rows: Iterable[tuple[str, dict]], key_name: str, list_name: str) -> list[dict]:
    grouped: "OrderedDict[str, list]" = OrderedDict()
    for key, row in rows:
        grouped.setdefault(key, []).append(row)
    return [{key_name: key, list_name: value} for key, value in grouped.items()]


def _period_documents(account_id: int, start, end) -> list[Document]:
    return (
        db.session.query(Document)
        .filter(
            Document.account_id == account_id,
            Document.document_date >= start,
            Document.document_date <= end,
        )
        .order_by(Document.kind.asc(), Document.sequence_number.asc())
        .all()
    )


def build_gstr1(account_id: int, period: str) -> dict:
    try:
        start, end = parse_return_period(period)
    except ValueError as exc:
        raise ValidationError(str(exc), details={"period": period})

    profile = get_profile(account_id)
    supplier_state = profile.state
    min_digits = min_hsn_digits(profile.annual_turnover)

    all_docs = _period_documents(account_id, start, end)
    active = [d for d in all_docs if not d.is_deleted]
    customers = {
        c.id: c
        for c in db.session.query(Customer).filter_by(account_id=account_id).all()
    }

    b2b_rows, sez_rows, de_rows, b2cl_rows, cdnr_rows = [], [], [], [], []
    b2cs_agg: "OrderedDict[tuple, dict]" = OrderedDict()
    cdnur, exp = [], []
    nil = {"inter_reg": 0, "inter_unreg": 0, "intra_reg": 0, "intra_unreg": 0}
    hsn_agg: "OrderedDict[str, dict]" = OrderedDict()

    for document in active:
        customer = customers.get(document.customer_id)
        registered = bool(customer and customer.is_registered)
        inter = document.gst_type == GST_TYPE_INTER
        pos = state_code((customer.state if customer else "") or supplier_state)
        lines = load_document_lines(document)

        # HSN summary (all kinds)
        sign = -1 if document.kind == KIND_CREDIT_NOTE else 1
        for line in lines:
            hsn = (line.hsn_code or "").strip()
            if len(hsn) < min_digits:
                continue
            taxable, igst, cgst, sgst = line_tax_split(line, document.gst_type)
            row = hsn_agg.setdefault(
                hsn,
                {"description": line.description, "qty": 0, "val": 0, "txval": 0, "iamt": 0, "camt": 0, "samt": 0},
            )
            row["description"] = row["description"] or line.description
            row["qty"] += sign * line.quantity
            row["val"] += sign * (taxable + igst + cgst + sgst)
            row["txval"] += sign * taxable
            row["iamt"] += sign * igst
            row["camt"] += sign * cgst
            row["samt"] += sign * sgst

        if document.kind != KIND_INVOICE:
            note_type = "C" if document.kind == KIND_CREDIT_NOTE else "D"
            note = {
                "ntty": note_type,
                "ntnum": document.document_number,
                "ntdt": to_gst_date(document.document_date),
                "val": rupees(document.grand_total_paise),
                "pos": pos,
                "itms": _line_items(document),
            }
            if registered:
                note["rchrg"] = "N"
                cdnr_rows.append((customer.gstin, note))
            else:
                note["typ"] = B2CL if inter else B2CS
                cdnur.append(note)
            continue

        # Nil-rated supplies (0% lines on invoices)
        nil_value = sum(line.taxable_paise for line in lines if line.gst_rate_bps == 0)
        if nil_value:
            bucket = ("inter_" if inter else "intra_") + ("reg" if registered else "unreg")
            nil[bucket] += nil_value

        supply_type = _effective_supply_type(document, customer, supplier_state)
        if supply_type == B2B:
            b2b_rows.append((customer.gstin if customer else "", {**_invoice_entry(document, pos), "inv_typ": "R"}))
        elif supply_type in SEZ_TYPES:
            entry = _invoice_entry(document, pos)
            entry["inv_typ"] = "SEWP" if supply_type == SEZWP else "SEWOP"
            sez_rows.append((customer.gstin if customer else "", entry))
        elif supply_type == DE:
            entry = _invoice_entry(document, pos)
            entry["inv_typ"] = "DE"
            de_rows.append((customer.gstin if customer else "", entry))
        elif supply_type == B2CL:
            entry = _invoice_entry(document, pos)
            entry.pop("pos")
            entry.pop("rchrg")
            b2cl_rows.append((state_code(customer.state if customer else ""), entry))
        elif supply_type in EXPORT_TYPES:
            exp.append(
                {
                    "exp_typ": "WPAY" if supply_type == EXPWP else "WOPAY",
                    "inv": [
                        {
                            "inum": document.document_number,
                            "idt": to_gst_date(document.document_date),
                            "val": rupees(document.grand_total_paise),
                            "sbpcode": document.port_code or "",
                            "sbnum": document.shipping_bill_no or "",
                            "sbdt": to_gst_date(document.shipping_bill_date),
                            "itms": _line_items(document),
                        }
                    ],
                }
            )
        else:
            typ = "INTER" if inter else "INTRA"
            for line in lines:
                taxable, igst, cgst, sgst = line_tax_split(line, document.gst_type)
                key = (pos, typ, line.gst_rate_bps)
                row = b2cs_agg.setdefault(key, {"txval": 0, "iamt": 0, "camt": 0, "samt": 0})
                row["txval"] += taxable
                row["iamt"] += igst
                row["camt"] += cgst
                row["samt"] += sgst

    b2cs = [
        {
            "sply_ty": typ,
            "pos": pos,
            "typ": "OE",
            "rt": _rate(bps),
            "txval": rupees(v["txval"]),
            "iamt": rupees(v["iamt"]),
            "camt": rupees(v["camt"]),
            "samt": rupees(v["samt"]),
            "csamt": 0,
        }
        for (pos, typ, bps), v in b2cs_agg.items()
    ]

    hsn = [
        {
            "num": idx,
            "hsn_sc": code,
            "desc": v["description"],
            "uqc": "NOS",
            "qty": json_number(v["qty"]),
            "val": rupees(v["val"]),
            "txval": rupees(v["txval"]),
            "iamt": rupees(v["iamt"]),
            "camt": rupees(v["camt"]),
            "samt": rupees(v["samt"]),
            "csamt": 0,
        }
        for idx, (code, v) in enumerate(hsn_agg.items(), start=1)
    ]

    doc_det = []
    for doc_num, kind, label in DOC_NATURE:
        issued = [d for d in all_docs if d.kind == kind]
        if not issued:
            continue
        issued.sort(key=lambda d: d.sequence_number)
        cancelled = sum(1 for d in issued if d.is_deleted)
        doc_det.append(
            {
                "doc_num": doc_num,
                "doc_typ": label,
                "docs": [
                    {
                        "num": 1,
                        "from": issued[0].document_number,
                        "to": issued[-1].document_number,
                        "totnum": len(issued),
                        "cancel": cancelled,
                        "net_issue": len(issued) - cancelled,
                    }
                ],
            }
        )

    return {
        "gstin": profile.gstin or "",
        "fp": period,
        "b2b": _group_by(b2b_rows, "ctin", "inv"),
        "sez": _group_by(sez_rows, "ctin", "inv"),
        "de": _group_by(de_rows, "ctin", "inv"),
        "b2cl": _group_by(b2cl_rows, "pos", "inv"),
        "b2cs": b2cs,
        "cdnr": _group_by(cdnr_rows, "ctin", "nt"),
        "cdnur": cdnur,
        "exp": exp,
        "exemp": {
            "nil_sup": {k: rupees(v) for k, v in nil.items()},
            "expt_sup": {k: 0 for k in nil},
            "ngsup": {k: 0 for k in nil},
        },
        "hsn": {"data": hsn},
        "doc_det": doc_det,
    }


# =============================================================================
# Workbook export
# =============================================================================

def _invoice_rows(groups: list[dict], with_gstin: bool) -> list[list]:
    rows = []
    for group in groups:
        for inv in group["inv"]:
            for item in inv["itms"]:
                det = item["itm_det"]
                head = [group["ctin"]] if with_gstin else []
                rows.append(
                    head
                    + [
                        inv["inum"],
                        inv["idt"],
                        inv["val"],
                        inv.get("pos", group.get("pos", "")),
                        inv.get("rchrg", "N"),
                        inv.get("inv_typ", ""),
                        det["rt"],
                        det["txval"],
                        det["iamt"],
                        det["camt"],
                        det["samt"],
                    ]
                )
    return rows


def _sheets(report: dict) -> list[tuple[str, list[str], list[list]]]:
    tax_cols = ["Rate", "Taxable Value", "Integrated Tax", "Central Tax", "State/UT Tax"]
    inv_cols = ["Invoice Number", "Invoice date", "Invoice Value", "Place Of Supply", "Reverse Charge", "Invoice Type"]

    note_rows = []
    for group in report["cdnr"]:
        for nt in group["nt"]:
            for item in nt["itms"]:
                det = item["itm_det"]
                note_rows.append(
                    [group["ctin"], nt["ntnum"], nt["ntdt"], nt["ntty"], nt["pos"], nt["val"],
                     det["rt"], det["txval"], det["iamt"], det["camt"], det["samt"]]
                )
    unreg_rows = []
    for nt in report["cdnur"]:
        for item in nt["itms"]:
            det = item["itm_det"]
            unreg_rows.append(
                [nt["typ"], nt["ntnum"], nt["ntdt"], nt["ntty"], nt["pos"], nt["val"],
                 det["rt"], det["txval"], det["iamt"], det["camt"], det["samt"]]
            )
    exp_rows = []
    for group in report["exp"]:
        for inv in group["inv"]:
            for item in inv["itms"]:
                det = item["itm_det"]
                exp_rows.append(
                    [group["exp_typ"], inv["inum"], inv["idt"], inv["val"], inv["sbpcode"], inv["sbnum"],
                     inv["sbdt"], det["rt"], det["txval"], det["iamt"]]
                )

    nil = report["exemp"]["nil_sup"]
    exemp_rows = [
        ["Inter-State supplies to registered persons", nil["inter_reg"], 0, 0],
        ["Inter-State supplies to unregistered persons", nil["inter_unreg"], 0, 0],
        ["Intra-State supplies to registered persons", nil["intra_reg"], 0, 0],
        ["Intra-State supplies to unregistered persons", nil["intra_unreg"], 0, 0],
    ]

    return [
        ("b2b", ["GSTIN of Recipient"] + inv_cols + tax_cols, _invoice_rows(report["b2b"], True)),
        ("sez", ["GSTIN of Recipient"] + inv_cols + tax_cols, _invoice_rows(report["sez"], True)),
        ("de", ["GSTIN of Recipient"] + inv_cols + tax_cols, _invoice_rows(report["de"], True)),
        ("b2cl", inv_cols + tax_cols, _invoice_rows(report["b2cl"], False)),
        (
            "b2cs",
            ["Type", "Place Of Supply", "Rate", "Taxable Value", "Integrated Tax", "Central Tax", "State/UT Tax"],
            [[r["sply_ty"], r["pos"], r["rt"], r["txval"], r["iamt"], r["camt"], r["samt"]] for r in report["b2cs"]],
        ),
        (
            "cdnr",
            ["GSTIN of Recipient", "Note Number", "Note Date", "Note Type", "Place Of Supply", "Note Value"] + tax_cols,
            note_rows,
        ),
        (
            "cdnur",
            ["UR Type", "Note Number", "Note Date", "Note Type", "Place Of Supply", "Note Value"] + tax_cols,
            unreg_rows,
        ),
        (
            "exp",
            ["Export Type", "Invoice Number", "Invoice Date", "Invoice Value", "Port Code",
             "Shipping Bill Number", "Shipping Bill Date", "Rate", "Taxable Value", "Integrated Tax"],
            exp_rows,
        ),
        (
            "exemp",
            ["Description", "Nil Rated Supplies", "Exempted (other than nil rated/non GST supply)", "Non-GST Supplies"],
            exemp_rows,
        ),
        (
            "hsn",
            ["HSN", "Description", "UQC", "Total Quantity", "Total Value", "Taxable Value",
             "Integrated Tax Amount", "Central Tax Amount", "State/UT Tax Amount"],
            [[r["hsn_sc"], r["desc"], r["uqc"], r["qty"], r["val"], r["txval"], r["iamt"], r["camt"], r["samt"]]
             for r in report["hsn"]["data"]],
        ),
        (
            "docs",
            ["Nature of Document", "Sr. No. From", "Sr. No. To", "Total Number", "Cancelled"],
            [[d["doc_typ"], d["docs"][0]["from"], d["docs"][0]["to"], d["docs"][0]["totnum"], d["docs"][0]["cancel"]]
             for d in report["doc_det"]],
        ),
    ]


def export_gstr1_workbook(report: dict) -> bytes:
    """
    One sheet per section. Row 1 is the title, row 2 the column headers,
    data from row 3.
    """
    from openpyxl import Workbook
    from openpyxl.styles import Font

    wb = Workbook()
    wb.remove(wb.active)
    bold = Font(bold=True)

    for name, headers, rows in _sheets(report):
        ws = wb.create_sheet(title=name)
        ws.append([f"GSTR1 - {name} - {report.get('fp', '')}"])
        ws.append(headers)
        for cell in ws[2]:
            cell.font = bold
        for row in rows:
            ws.append(row)
        for idx in range(1, len(headers) + 1):
            ws.column_dimensions[ws.cell(row=2, column=idx).column_letter].width = 20

    buf = BytesIO()
    wb.save(buf)
    return buf.getvalue()
