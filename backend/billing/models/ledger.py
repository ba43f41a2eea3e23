from __future__ import annotations

from ..extensions import db
from billing.time_utils import to_utc_z, to_iso_date


ENTRY_DEBIT = "Debit"
ENTRY_CREDIT = "Credit"
ENTRY_TYPES = (ENTRY_DEBIT, ENTRY_CREDIT)

SOURCE_INVOICE = "invoice"
SOURCE_CREDIT_NOTE = "credit_note"
SOURCE_DEBIT_NOTE = "debit_note"
SOURCE_PAYMENT = "payment"
SOURCE_REVISION = "revision"
ENTRY_SOURCES = (SOURCE_INVOICE, SOURCE_CREDIT_NOTE, SOURCE_DEBIT_NOTE, SOURCE_PAYMENT, SOURCE_REVISION)


class LedgerEntry(db.Model):
    """
    Append-only customer ledger posting.

    - Debit increases what the customer owes; Credit decreases it.
    - amount_paise is always positive; direction lives in entry_type.
    - entry_date is business date; ordering ties break on id (insertion).
    - Rows are never updated or deleted, including when the originating
      document is soft-deleted.
    """
    __tablename__ = "ledger_entries"
    __table_args__ = (
        db.CheckConstraint("amount_paise > 0", name="ck_ledger_entries_amount_positive"),
        db.Index("ix_ledger_entries_customer_date", "customer_id", "entry_date", "id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    account_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    entry_date = db.Column(db.Date, nullable=False)
    entry_type = db.Column(db.String(8), nullable=False)  # Debit, Credit
    amount_paise = db.Column(db.Integer, nullable=False)
    description = db.Column(db.String(255), nullable=False, default="")

    source = db.Column(db.String(16), nullable=False, index=True)
    document_id = db.Column(db.Integer, db.ForeignKey("documents.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    customer = db.relationship("Customer", backref=db.backref("ledger_entries", lazy=True))
    document = db.relationship("Document", backref=db.backref("ledger_entries", lazy=True))

    @property
    def signed_amount_paise(self) -> int:
        return self.amount_paise if self.entry_type == ENTRY_DEBIT else -self.amount_paise

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "account_id": self.account_id,
            "customer_id": self.customer_id,
            "entry_date": to_iso_date(self.entry_date),
            "entry_type": self.entry_type,
            "amount_paise": self.amount_paise,
            "description": self.description,
            "source": self.source,
            "document_id": self.document_id,
            "created_at": to_utc_z(self.created_at),
        }
