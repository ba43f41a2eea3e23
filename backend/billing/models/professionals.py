from __future__ import annotations

from ..extensions import db
from billing.time_utils import to_utc_z


class IdentifierCounter(db.Model):
    """
    Named global counter (e.g. "professionals").

    Incremented with a single UPDATE inside a transaction; never decremented.
    """
    __tablename__ = "identifier_counters"
    __table_args__ = (
        db.UniqueConstraint("name", name="uq_identifier_counters_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False)
    count = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "count": self.count,
            "updated_at": to_utc_z(self.updated_at),
        }


class Professional(db.Model):
    """
    Registered tax professional (CA, GST practitioner, ...).

    professional_id is BHP<designation code><5 digits>. When the counter
    store was unavailable the id came from the random fallback and
    id_is_authoritative is False; such ids may need reissuing.
    """
    __tablename__ = "professionals"
    __table_args__ = (
        db.UniqueConstraint("professional_id", name="uq_professionals_professional_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    professional_id = db.Column(db.String(16), nullable=False, index=True)
    id_is_authoritative = db.Column(db.Boolean, nullable=False, default=True)

    first_name = db.Column(db.String(128), nullable=False)
    last_name = db.Column(db.String(128), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    designation = db.Column(db.String(64), nullable=False)
    firm_name = db.Column(db.String(255), nullable=True)

    # professional_id of the referrer, when a valid referral code was given
    referred_by = db.Column(db.String(16), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "professional_id": self.professional_id,
            "id_is_authoritative": self.id_is_authoritative,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "email": self.email,
            "designation": self.designation,
            "firm_name": self.firm_name,
            "referral_code": self.professional_id,
            "referred_by": self.referred_by,
            "created_at": to_utc_z(self.created_at),
        }
