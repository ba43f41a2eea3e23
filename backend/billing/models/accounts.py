from __future__ import annotations

from ..extensions import db
from billing.time_utils import to_utc_z


TURNOVER_BELOW_5CR = "below5cr"
TURNOVER_ABOVE_5CR = "above5cr"
TURNOVER_BRACKETS = (TURNOVER_BELOW_5CR, TURNOVER_ABOVE_5CR)

DEFAULT_PREFIXES = {
    "invoice": "INV/",
    "credit_note": "CN/",
    "debit_note": "DN/",
}


class Account(db.Model):
    """
    Tenant root: every business using the system is an Account.

    All customers, documents, ledger entries and document sequences belong
    to exactly one account. Queries must be scoped by account_id.
    """
    __tablename__ = "accounts"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def __repr__(self) -> str:
        return f"<Account id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "is_active": self.is_active,
            "profile": self.profile.to_dict() if self.profile else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class BusinessProfile(db.Model):
    """
    Supplier-side facts the tax engine needs.

    - state: place of business; decides intra vs inter-state supply
    - annual_turnover: decides the minimum HSN length (4 or 6 digits)
    - *_prefix: numbering prefix per document series
    """
    __tablename__ = "business_profiles"
    __table_args__ = (
        db.UniqueConstraint("account_id", name="uq_business_profiles_account"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    account_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=False, index=True)

    legal_name = db.Column(db.String(255), nullable=False)
    gstin = db.Column(db.String(15), nullable=True)
    state = db.Column(db.String(64), nullable=False)
    annual_turnover = db.Column(db.String(16), nullable=False, default=TURNOVER_BELOW_5CR)

    invoice_prefix = db.Column(db.String(32), nullable=False, default=DEFAULT_PREFIXES["invoice"])
    credit_note_prefix = db.Column(db.String(32), nullable=False, default=DEFAULT_PREFIXES["credit_note"])
    debit_note_prefix = db.Column(db.String(32), nullable=False, default=DEFAULT_PREFIXES["debit_note"])

    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    account = db.relationship("Account", backref=db.backref("profile", uselist=False, lazy=True))

    def prefix_for(self, kind: str) -> str:
        value = {
            "invoice": self.invoice_prefix,
            "credit_note": self.credit_note_prefix,
            "debit_note": self.debit_note_prefix,
        }.get(kind)
        if value is None:
            raise ValueError(f"Unknown document kind: {kind}")
        return value

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "account_id": self.account_id,
            "legal_name": self.legal_name,
            "gstin": self.gstin,
            "state": self.state,
            "annual_turnover": self.annual_turnover,
            "invoice_prefix": self.invoice_prefix,
            "credit_note_prefix": self.credit_note_prefix,
            "debit_note_prefix": self.debit_note_prefix,
            "updated_at": to_utc_z(self.updated_at),
        }
