# Overview: Service-layer operations for invoices and credit/debit notes; encapsulates business logic and database work.

"""
Document Service - invoice / credit note / debit note lifecycle

SAVE (new document), one transaction retried as a whole:
1. Validate everything (customer, lines, total, reason, override) - no writes
2. Compute tax (TaxSplitter) and, for invoices, the supply type
3. Reserve the next series number
4. Insert document + lines
5. Post to the customer ledger (entry + balance)
6. Commit

If any step fails the transaction rolls back, including the number
reservation, so a number is only consumed by a document that exists.

EDIT: recompute tax/classification, keep the number. The ledger follows
LEDGER_EDIT_POLICY ("delta" appends a revision entry, "none" leaves the
posting stale). Deleted documents cannot be edited.

DELETE / RESTORE: visibility only. The number stays consumed and the ledger
posting stays in place.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Optional

from flask import current_app

from ..extensions import db
from ..models import BusinessProfile, Customer, Document, DocumentLine, LedgerEntry
from ..models.documents import DOCUMENT_KINDS, INVOICE_STATUSES, KIND_INVOICE
from ..models.ledger import ENTRY_DEBIT
from ..validation import (
    ConflictError,
    ConsistencyWarning,
    NotFoundError,
    ValidationError,
    parse_line_items,
)
from billing.time_utils import parse_iso_date, today, utcnow
from . import ledger_service
from .concurrency import begin_write, lock_for_update, run_with_retry
from .sequence_service import reserve_next
from .supply_service import classify, export_field_warnings, hsn_warnings, normalize_supply_type
from .tax_service import LineItem, TaxResult, compute_tax

DOCUMENT_NUMBER_MAX = 64

EDITABLE_FIELDS = {
    "customer_id",
    "lines",
    "document_date",
    "document_number",
    "supply_type",
    "reverse_charge",
    "port_code",
    "shipping_bill_no",
    "shipping_bill_date",
    "export_country",
    "reason",
    "original_invoice_id",
    "original_invoice_number",
    "status",
    "version_id",
}

EXPORT_FIELD_NAMES = ("port_code", "shipping_bill_no", "shipping_bill_date", "export_country")


@dataclass
class SaveResult:
    document: Document
    warnings: list[ConsistencyWarning] = field(default_factory=list)
    ledger_entry: Optional[LedgerEntry] = None

    def to_dict(self) -> dict:
        return {
            "document": self.document.to_dict(),
            "warnings": [w.to_dict() for w in self.warnings],
            "ledger_entry": self.ledger_entry.to_dict() if self.ledger_entry else None,
        }


def edit_policy() -> str:
    return current_app.config.get("LEDGER_EDIT_POLICY", ledger_service.EDIT_POLICY_DELTA)


def _require_kind(kind: str) -> None:
    if kind not in DOCUMENT_KINDS:
        raise ValidationError(f"Unknown document kind: {kind}", details={"allowed": list(DOCUMENT_KINDS)})


def _coerce_lines(lines: Any) -> list[LineItem]:
    if isinstance(lines, list) and lines and all(isinstance(line, LineItem) for line in lines):
        return list(lines)
    items = parse_line_items(lines)
    if not any(item.description for item in items):
        raise ValidationError("Add at least one item with a description")
    return items


def _coerce_date(value: Any, name: str, default: Optional[date] = None) -> Optional[date]:
    try:
        parsed = parse_iso_date(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be a date (YYYY-MM-DD)", details={name: value})
    return parsed if parsed is not None else default


def _clean_text(value: Any, max_len: int | None = None) -> Optional[str]:
    if value is None:
        return None
    s = str(value).strip()
    if not s:
        return None
    if max_len is not None and len(s) > max_len:
        raise ValidationError(f"Value exceeds max length {max_len}", details={"value": s[:max_len]})
    return s


def _as_id(value: Any, name: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be an integer", details={name: value})
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be an integer", details={name: value})


def _load_profile(account_id: int) -> BusinessProfile:
    profile = db.session.query(BusinessProfile).filter_by(account_id=account_id).first()
    if profile is None:
        raise NotFoundError(f"Account {account_id} not found")
    return profile


def _load_customer(account_id: int, customer_id: Any) -> Customer:
    if not customer_id:
        raise ValidationError("Please select a customer")
    customer = db.session.query(Customer).filter_by(id=customer_id, account_id=account_id).first()
    if customer is None:
        raise ValidationError("Customer not found in this account", details={"customer_id": customer_id})
    return customer


def _resolve_original_invoice(account_id: int, original_invoice_id: Any) -> Optional[Document]:
    if not original_invoice_id:
        return None
    invoice = (
        db.session.query(Document)
        .filter_by(id=original_invoice_id, account_id=account_id, kind=KIND_INVOICE)
        .first()
    )
    if invoice is None:
        raise ValidationError(
            "Original invoice not found in this account",
            details={"original_invoice_id": original_invoice_id},
        )
    return invoice


def _check_status(status: Any) -> str:
    if status not in INVOICE_STATUSES:
        raise ValidationError(
            "status must be one of: " + ", ".join(INVOICE_STATUSES),
            details={"status": status},
        )
    return status


def _check_override(value: Any) -> Optional[str]:
    """Blank means auto-detect; anything else must be a known supply type."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    supply_type = normalize_supply_type(value)
    if supply_type is None:
        raise ValidationError("Unknown supply type", details={"supply_type": value})
    return supply_type


def _require_nonzero(tax: TaxResult) -> None:
    if tax.is_zero:
        raise ValidationError("Total cannot be zero")


def _build_lines(items: list[LineItem]) -> list[DocumentLine]:
    return [
        DocumentLine(
            position=idx,
            description=item.description[:255],
            hsn_code=item.hsn_code[:16],
            quantity=item.quantity,
            rate_paise=item.rate_paise,
            gst_rate_bps=item.gst_rate_bps,
            taxable_paise=item.taxable_paise,
        )
        for idx, item in enumerate(items)
    ]


def _apply_tax(document: Document, tax: TaxResult) -> None:
    document.gst_type = tax.gst_type
    document.subtotal_paise = tax.subtotal_paise
    document.tax_paise = tax.tax_paise
    document.cgst_paise = tax.cgst_paise
    document.sgst_paise = tax.sgst_paise
    document.igst_paise = tax.igst_paise
    document.grand_total_paise = tax.grand_total_paise


def _collect_warnings(kind: str, items: list[LineItem], annual_turnover: str, supply_type, export_fields: dict) -> list:
    warnings = hsn_warnings(items, annual_turnover)
    if kind == KIND_INVOICE:
        warnings.extend(export_field_warnings(supply_type, **export_fields))
    return warnings


def _number_reuse_warnings(
    account_id: int, kind: str, number: Optional[str], exclude_id: Optional[int] = None
) -> list[ConsistencyWarning]:
    """A printed number already used in the series, deleted documents included."""
    if not number:
        return []
    q = db.session.query(Document.id).filter(
        Document.account_id == account_id,
        Document.kind == kind,
        Document.document_number == number,
    )
    if exclude_id is not None:
        q = q.filter(Document.id != exclude_id)
    if q.first() is None:
        return []
    return [
        ConsistencyWarning(
            code="document_number_reused",
            message=f"{number} is already used by another document in this series",
            field="document_number",
            context={"document_number": number},
        )
    ]


def load_document_lines(document: Document) -> list[LineItem]:
    return [
        LineItem(
            description=line.description,
            hsn_code=line.hsn_code,
            quantity=line.quantity,
            rate_paise=line.rate_paise,
            gst_rate_bps=line.gst_rate_bps,
        )
        for line in document.lines
    ]


# =============================================================================
# Create
# =============================================================================

def create_document(
    *,
    account_id: int,
    kind: str,
    customer_id: Optional[int] = None,
    lines: Any = None,
    document_date: Any = None,
    document_number: Optional[str] = None,
    supply_type: Optional[str] = None,
    reverse_charge: bool = False,
    port_code: Optional[str] = None,
    shipping_bill_no: Optional[str] = None,
    shipping_bill_date: Any = None,
    export_country: Optional[str] = None,
    reason: Optional[str] = None,
    original_invoice_id: Optional[int] = None,
    original_invoice_number: Optional[str] = None,
    status: Optional[str] = None,
) -> SaveResult:
    """
    Finalize a new document: number it, persist it and post it to the ledger.

    document_number, when given, is only the printed number; the series
    counter still advances and sequence_number comes from it.
    """
    _require_kind(kind)
    profile = _load_profile(account_id)
    customer = _load_customer(account_id, customer_id)
    items = _coerce_lines(lines)
    doc_date = _coerce_date(document_date, "document_date", default=today())
    display_number = _clean_text(document_number, DOCUMENT_NUMBER_MAX)

    tax = compute_tax(items, profile.state, customer.state)
    _require_nonzero(tax)

    is_invoice = kind == KIND_INVOICE
    override = None
    effective_supply = None
    export_fields: dict = {}
    original_invoice = None
    if is_invoice:
        override = _check_override(supply_type)
        effective_supply = classify(customer, tax.grand_total_paise, profile.state, override)
        status = _check_status(status or "Unpaid")
        export_fields = {
            "port_code": _clean_text(port_code, 16),
            "shipping_bill_no": _clean_text(shipping_bill_no, 32),
            "shipping_bill_date": _coerce_date(shipping_bill_date, "shipping_bill_date"),
            "export_country": _clean_text(export_country, 64),
        }
    else:
        reason = _clean_text(reason, 255)
        if not reason:
            raise ValidationError("Please provide a reason for this note")
        original_invoice = _resolve_original_invoice(account_id, original_invoice_id)
        original_invoice_number = _clean_text(original_invoice_number, DOCUMENT_NUMBER_MAX)
        if original_invoice is not None and not original_invoice_number:
            original_invoice_number = original_invoice.document_number

    warnings = _collect_warnings(kind, items, profile.annual_turnover, effective_supply, export_fields)
    warnings.extend(_number_reuse_warnings(account_id, kind, display_number))

    customer_pk = customer.id
    customer_name = customer.name
    original_invoice_pk = original_invoice.id if original_invoice is not None else None

    def _op() -> SaveResult:
        begin_write()
        reserved = reserve_next(account_id, kind, doc_date)

        document = Document(
            account_id=account_id,
            kind=kind,
            sequence_number=reserved.sequence_number,
            document_number=display_number or reserved.document_number,
            document_date=doc_date,
            customer_id=customer_pk,
            customer_name=customer_name,
            status=status if is_invoice else None,
            supply_type=effective_supply,
            supply_type_overridden=override is not None,
            reverse_charge=bool(reverse_charge) if is_invoice else False,
            reason=None if is_invoice else reason,
            original_invoice_id=original_invoice_pk,
            original_invoice_number=None if is_invoice else original_invoice_number,
            is_deleted=False,
            posted_total_paise=tax.grand_total_paise,
            **export_fields,
        )
        _apply_tax(document, tax)
        document.lines = _build_lines(items)
        db.session.add(document)
        db.session.flush()

        entry = ledger_service.post_document(document)
        db.session.commit()
        return SaveResult(document=document, warnings=warnings, ledger_entry=entry)

    return run_with_retry(_op)


# =============================================================================
# Edit
# =============================================================================

def update_document(*, account_id: int, document_id: int, patch: dict) -> SaveResult:
    """
    Edit a saved document. The number never changes.

    patch keys (all optional): see EDITABLE_FIELDS. version_id, when given,
    must match the stored version (stale edits are rejected).
    The customer of a posted document cannot be changed.
    """
    if not isinstance(patch, dict):
        raise ValidationError("Invalid JSON payload")
    unknown = sorted(set(patch) - EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(unknown)}")

    new_items = _coerce_lines(patch["lines"]) if "lines" in patch else None
    policy = edit_policy()

    def _op() -> SaveResult:
        begin_write()
        document = lock_for_update(
            db.session.query(Document).filter_by(id=document_id, account_id=account_id)
        ).first()
        if document is None:
            raise NotFoundError(f"Document {document_id} not found")
        if document.is_deleted:
            raise ConflictError("Deleted documents cannot be edited; restore it first")
        if "version_id" in patch and patch["version_id"] != document.version_id:
            raise ConflictError("Document was modified by someone else; reload and retry")
        if "customer_id" in patch and _as_id(patch["customer_id"], "customer_id") != document.customer_id:
            raise ConflictError("The customer of a saved document cannot be changed")

        profile = _load_profile(account_id)
        customer = db.session.query(Customer).filter_by(id=document.customer_id).first()
        items = new_items if new_items is not None else load_document_lines(document)
        tax = compute_tax(items, profile.state, customer.state if customer else None)
        _require_nonzero(tax)

        # Validate every remaining field before touching the document
        is_invoice = document.kind == KIND_INVOICE
        doc_date = _coerce_date(patch.get("document_date"), "document_date", default=document.document_date)
        display_number = document.document_number
        if "document_number" in patch:
            display_number = _clean_text(patch["document_number"], DOCUMENT_NUMBER_MAX) or display_number
        reuse_warnings = []
        if display_number != document.document_number:
            reuse_warnings = _number_reuse_warnings(
                account_id, document.kind, display_number, exclude_id=document.id
            )

        override_set = "supply_type" in patch
        override = _check_override(patch.get("supply_type")) if override_set else None
        export_fields = {}
        if is_invoice:
            status = _check_status(patch["status"]) if "status" in patch else document.status
            for key in EXPORT_FIELD_NAMES:
                if key in patch:
                    if key == "shipping_bill_date":
                        export_fields[key] = _coerce_date(patch[key], key)
                    else:
                        export_fields[key] = _clean_text(patch[key], 64)
                else:
                    export_fields[key] = getattr(document, key)
        else:
            if "status" in patch:
                raise ValidationError("Only invoices have a payment status")
            reason = _clean_text(patch["reason"], 255) if "reason" in patch else document.reason
            if not reason:
                raise ValidationError("Please provide a reason for this note")
            original_invoice = None
            if "original_invoice_id" in patch:
                original_invoice = _resolve_original_invoice(account_id, patch["original_invoice_id"])

        # Apply. Lazy-loading the old lines must not flush half-applied
        # changes, so the edit reaches the database as one UPDATE.
        with db.session.no_autoflush:
            document.document_date = doc_date
            document.document_number = display_number
            _apply_tax(document, tax)
            if new_items is not None:
                document.lines = _build_lines(new_items)

            if is_invoice:
                if override_set:
                    document.supply_type_overridden = override is not None
                current_override = document.supply_type if document.supply_type_overridden else None
                if override_set:
                    current_override = override
                document.supply_type = classify(customer, tax.grand_total_paise, profile.state, current_override)
                document.status = status
                if "reverse_charge" in patch:
                    document.reverse_charge = bool(patch["reverse_charge"])
                for key, value in export_fields.items():
                    setattr(document, key, value)
            else:
                document.reason = reason
                if "original_invoice_id" in patch:
                    document.original_invoice_id = original_invoice.id if original_invoice else None
                    if original_invoice is not None and "original_invoice_number" not in patch:
                        document.original_invoice_number = original_invoice.document_number
                if "original_invoice_number" in patch:
                    document.original_invoice_number = _clean_text(
                        patch["original_invoice_number"], DOCUMENT_NUMBER_MAX
                    )

        entry = ledger_service.post_revision(document, policy)
        if entry is None and document.posted_total_paise != document.grand_total_paise:
            current_app.logger.warning(
                "Document %s edited without ledger revision (policy=%s): posted %s, total %s",
                document.document_number,
                policy,
                document.posted_total_paise,
                document.grand_total_paise,
            )

        warnings = _collect_warnings(
            document.kind,
            load_document_lines(document),
            profile.annual_turnover,
            document.supply_type,
            {key: getattr(document, key) for key in EXPORT_FIELD_NAMES},
        )
        warnings.extend(reuse_warnings)
        db.session.commit()
        return SaveResult(document=document, warnings=warnings, ledger_entry=entry)

    return run_with_retry(_op)


# =============================================================================
# Delete / restore / status
# =============================================================================

def _locked_document(account_id: int, document_id: int, kind: Optional[str] = None) -> Document:
    q = db.session.query(Document).filter_by(id=document_id, account_id=account_id)
    if kind is not None:
        q = q.filter_by(kind=kind)
    document = lock_for_update(q).first()
    if document is None:
        raise NotFoundError(f"Document {document_id} not found")
    return document


def soft_delete_document(*, account_id: int, document_id: int, kind: Optional[str] = None) -> Document:
    """Hide a document. Its number stays consumed and its posting stays in the ledger."""
    def _op() -> Document:
        document = _locked_document(account_id, document_id, kind)
        if document.is_deleted:
            raise ConflictError("Document is already deleted")
        document.is_deleted = True
        document.deleted_at = utcnow()
        db.session.commit()
        return document

    return run_with_retry(_op)


def restore_document(*, account_id: int, document_id: int, kind: Optional[str] = None) -> Document:
    """Bring a deleted document back with its original number; the ledger is untouched."""
    def _op() -> Document:
        document = _locked_document(account_id, document_id, kind)
        if not document.is_deleted:
            raise ConflictError("Document is not deleted")
        document.is_deleted = False
        document.deleted_at = None
        db.session.commit()
        return document

    return run_with_retry(_op)


def set_invoice_status(*, account_id: int, document_id: int, status: str) -> Document:
    status = _check_status(status)

    def _op() -> Document:
        document = _locked_document(account_id, document_id, KIND_INVOICE)
        if document.is_deleted:
            raise ConflictError("Deleted documents cannot be edited; restore it first")
        document.status = status
        db.session.commit()
        return document

    return run_with_retry(_op)


# =============================================================================
# Queries
# =============================================================================

def get_document(*, account_id: int, document_id: int, kind: Optional[str] = None) -> Document:
    q = db.session.query(Document).filter_by(id=document_id, account_id=account_id)
    if kind is not None:
        q = q.filter_by(kind=kind)
    document = q.first()
    if document is None:
        raise NotFoundError(f"Document {document_id} not found")
    return document


def list_documents(
    *,
    account_id: int,
    kind: str,
    include_deleted: bool = False,
    only_deleted: bool = False,
) -> list[Document]:
    """
    Documents of one series, newest first.

    default          -> active only
    include_deleted  -> active and deleted
    only_deleted     -> the "recently deleted" view
    """
    _require_kind(kind)
    q = db.session.query(Document).filter(
        Document.account_id == account_id,
        Document.kind == kind,
    )
    if only_deleted:
        q = q.filter(Document.is_deleted.is_(True))
    elif not include_deleted:
        q = q.filter(Document.is_deleted.is_(False))
    return q.order_by(Document.document_date.desc(), Document.sequence_number.desc()).all()


def active_total_paise(account_id: int, customer_id: int) -> int:
    """
    Signed total of a customer's active documents (invoices and debit notes
    minus credit notes). Diverges from the ledger balance after deletes,
    payments or unreconciled edits.
    """
    documents = (
        db.session.query(Document)
        .filter_by(account_id=account_id, customer_id=customer_id, is_deleted=False)
        .all()
    )
    total = 0
    for document in documents:
        sign = 1 if ledger_service.DOCUMENT_ENTRY_TYPES[document.kind] == ENTRY_DEBIT else -1
        total += sign * document.grand_total_paise
    return total
