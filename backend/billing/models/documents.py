from __future__ import annotations

from ..extensions import db
from billing.services.tax_service import json_number
from billing.time_utils import to_utc_z, to_iso_date


KIND_INVOICE = "invoice"
KIND_CREDIT_NOTE = "credit_note"
KIND_DEBIT_NOTE = "debit_note"
DOCUMENT_KINDS = (KIND_INVOICE, KIND_CREDIT_NOTE, KIND_DEBIT_NOTE)

INVOICE_STATUSES = ("Unpaid", "Paid", "Partial")


class Document(db.Model):
    """
    Financial document: invoice, credit note or debit note.

    NUMBERING:
    - sequence_number is authoritative. It comes from DocumentSequence and
      is unique per (account, kind), including soft-deleted documents.
    - document_number is the printed value. It defaults to the formatted
      sequence but may be overridden by the user; it is never parsed.

    SOFT DELETE: is_deleted/deleted_at hide the document from active
    listings. The number stays reserved and the ledger posting stays.
    """
    __tablename__ = "documents"
    __table_args__ = (
        db.UniqueConstraint("account_id", "kind", "sequence_number", name="uq_documents_series_seq"),
        db.Index("ix_documents_account_kind_deleted", "account_id", "kind", "is_deleted"),
        db.Index("ix_documents_account_date", "account_id", "document_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    account_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=False, index=True)
    kind = db.Column(db.String(16), nullable=False, index=True)

    sequence_number = db.Column(db.Integer, nullable=False)
    document_number = db.Column(db.String(64), nullable=False)
    document_date = db.Column(db.Date, nullable=False)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    customer_name = db.Column(db.String(255), nullable=False)

    # Tax result (all amounts in paise; an intra-state half may sit on 0.5)
    gst_type = db.Column(db.String(16), nullable=False)  # CGST_SGST, IGST
    subtotal_paise = db.Column(db.Integer, nullable=False, default=0)
    tax_paise = db.Column(db.Integer, nullable=False, default=0)
    cgst_paise = db.Column(db.Numeric(16, 1), nullable=False, default=0)
    sgst_paise = db.Column(db.Numeric(16, 1), nullable=False, default=0)
    igst_paise = db.Column(db.Integer, nullable=False, default=0)
    grand_total_paise = db.Column(db.Integer, nullable=False, default=0)

    # Amount the ledger currently reflects for this document
    posted_total_paise = db.Column(db.Integer, nullable=False, default=0)

    # Invoice-only
    status = db.Column(db.String(16), nullable=True)  # Unpaid, Paid, Partial
    supply_type = db.Column(db.String(8), nullable=True)
    supply_type_overridden = db.Column(db.Boolean, nullable=False, default=False)
    reverse_charge = db.Column(db.Boolean, nullable=False, default=False)
    port_code = db.Column(db.String(16), nullable=True)
    shipping_bill_no = db.Column(db.String(32), nullable=True)
    shipping_bill_date = db.Column(db.Date, nullable=True)
    export_country = db.Column(db.String(64), nullable=True)

    # Note-only
    reason = db.Column(db.String(255), nullable=True)
    original_invoice_id = db.Column(db.Integer, db.ForeignKey("documents.id"), nullable=True)
    original_invoice_number = db.Column(db.String(64), nullable=True)

    is_deleted = db.Column(db.Boolean, nullable=False, default=False)
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    account = db.relationship("Account", backref=db.backref("documents", lazy=True))
    customer = db.relationship("Customer", backref=db.backref("documents", lazy=True))
    lines = db.relationship(
        "DocumentLine",
        backref="document",
        lazy=True,
        order_by="DocumentLine.position",
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "account_id": self.account_id,
            "kind": self.kind,
            "sequence_number": self.sequence_number,
            "document_number": self.document_number,
            "document_date": to_iso_date(self.document_date),
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "gst_type": self.gst_type,
            "subtotal_paise": self.subtotal_paise,
            "tax_paise": self.tax_paise,
            "cgst_paise": json_number(self.cgst_paise),
            "sgst_paise": json_number(self.sgst_paise),
            "igst_paise": self.igst_paise,
            "grand_total_paise": self.grand_total_paise,
            "posted_total_paise": self.posted_total_paise,
            "status": self.status,
            "supply_type": self.supply_type,
            "supply_type_overridden": self.supply_type_overridden,
            "reverse_charge": self.reverse_charge,
            "port_code": self.port_code,
            "shipping_bill_no": self.shipping_bill_no,
            "shipping_bill_date": to_iso_date(self.shipping_bill_date),
            "export_country": self.export_country,
            "reason": self.reason,
            "original_invoice_id": self.original_invoice_id,
            "original_invoice_number": self.original_invoice_number,
            "is_deleted": self.is_deleted,
            "deleted_at": to_utc_z(self.deleted_at) if self.deleted_at else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data


class DocumentLine(db.Model):
    """Line item on a document. Replaced wholesale when the document is edited."""
    __tablename__ = "document_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    document_id = db.Column(db.Integer, db.ForeignKey("documents.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    description = db.Column(db.String(255), nullable=False, default="")
    hsn_code = db.Column(db.String(16), nullable=False, default="")
    quantity = db.Column(db.Numeric(14, 3), nullable=False)  # 1.5 kg allowed
    rate_paise = db.Column(db.Integer, nullable=False)
    gst_rate_bps = db.Column(db.Integer, nullable=False)  # 1800 = 18%
    taxable_paise = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "document_id": self.document_id,
            "position": self.position,
            "description": self.description,
            "hsn_code": self.hsn_code,
            "quantity": json_number(self.quantity),
            "rate_paise": self.rate_paise,
            "gst_rate_bps": self.gst_rate_bps,
            "taxable_paise": self.taxable_paise,
        }


class DocumentSequence(db.Model):
    """
    Atomic per-series counter: one row per (account, document kind).

    issued_count only ever increases. It counts every number handed out,
    including numbers of documents that were later soft-deleted, so the
    next number is always issued_count + 1.
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("account_id", "kind", name="uq_doc_sequences_account_kind"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    account_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=False, index=True)
    kind = db.Column(db.String(16), nullable=False, index=True)
    issued_count = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    account = db.relationship("Account", backref=db.backref("document_sequences", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "account_id": self.account_id,
            "kind": self.kind,
            "issued_count": self.issued_count,
            "updated_at": to_utc_z(self.updated_at),
        }
