from __future__ import annotations

from ..extensions import db
from billing.time_utils import to_utc_z


class Customer(db.Model):
    """
    Customer (bill-to party) of an account.

    gstin present -> registered (B2B); blank -> consumer (B2CS/B2CL).
    state may be blank; the tax engine then assumes intra-state supply.

    balance_paise is a denormalized cache of the customer's ledger:
    sum(Debit) - sum(Credit). It is only written together with a new
    ledger entry, in the same transaction. version_id makes concurrent
    balance updates fail loudly instead of losing a write.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_account_name", "account_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    account_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    gstin = db.Column(db.String(15), nullable=True)
    state = db.Column(db.String(64), nullable=False, default="")
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)

    # Positive = customer owes the business ("Dr")
    balance_paise = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    account = db.relationship("Account", backref=db.backref("customers", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_registered(self) -> bool:
        return bool(self.gstin)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "account_id": self.account_id,
            "name": self.name,
            "gstin": self.gstin,
            "state": self.state,
            "email": self.email,
            "phone": self.phone,
            "balance_paise": self.balance_paise,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
