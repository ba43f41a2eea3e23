# Overview: Service-layer operations for professional identifiers; atomic global counter with a flagged fallback.

"""
Identifier Service - professional IDs (BHP<code><5 digits>)

WHY: IDs double as referral codes, so two registrations must never get the
same value. A single shared counter row is incremented with one UPDATE in
its own transaction; scanning existing IDs for a max would race.

FALLBACK: if the counter cannot be incremented after retries, a random
suffix (10000-99999) is used. Such IDs are NOT authoritative: they can
collide, and callers persist that flag with the professional.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Optional

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import IdentifierCounter, Professional
from ..validation import ConflictError, ValidationError
from .concurrency import ConcurrencyError, CounterRaceError, begin_write, run_with_retry

PROFESSIONAL_COUNTER = "professionals"
ID_PREFIX = "BHP"
ID_PAD = 5

DESIGNATION_CODES = {
    "Chartered Accountant": "CA",
    "Tax Consultant": "TC",
    "Accountant": "AC",
    "GST Practitioner": "GP",
    "Company Secretary": "CS",
    "Staff": "ST",
    "Other": "OT",
}

FALLBACK_MIN = 10000
FALLBACK_MAX = 99999

_random = random.SystemRandom()


@dataclass(frozen=True)
class AllocatedIdentifier:
    value: str
    counter: Optional[int]
    authoritative: bool


def designation_code(designation: str) -> str:
    """Full designation name or its two-letter code (case-insensitive)."""
    raw = (designation or "").strip()
    for name, code in DESIGNATION_CODES.items():
        if raw.casefold() in (name.casefold(), code.casefold()):
            return code
    raise ValidationError(
        f"Unknown designation: {designation}",
        details={"allowed": list(DESIGNATION_CODES)},
    )


def format_identifier(code: str, number: int) -> str:
    return f"{ID_PREFIX}{code}{number:0{ID_PAD}d}"


def _increment_counter(name: str) -> int:
    stmt = (
        update(IdentifierCounter)
        .where(IdentifierCounter.name == name)
        .values(count=IdentifierCounter.count + 1)
    )
    result = db.session.execute(stmt)
    if result.rowcount:
        db.session.flush()
        return db.session.query(IdentifierCounter.count).filter_by(name=name).scalar()

    db.session.add(IdentifierCounter(name=name, count=1))
    try:
        db.session.flush()
    except IntegrityError as exc:
        raise CounterRaceError("Identifier counter was created concurrently", details={"name": name}) from exc
    return 1


def current_count(name: str = PROFESSIONAL_COUNTER) -> int:
    return db.session.query(IdentifierCounter.count).filter_by(name=name).scalar() or 0


def allocate(designation: str) -> AllocatedIdentifier:
    """
    Allocate the next professional ID.

    The counter increment commits on its own, so an ID is consumed even if
    the registration that requested it later fails. IDs are never reused.
    """
    code = designation_code(designation)

    def _op() -> int:
        begin_write()
        value = _increment_counter(PROFESSIONAL_COUNTER)
        db.session.commit()
        return value

    try:
        number = run_with_retry(_op)
    except ConcurrencyError as exc:
        if not current_app.config.get("IDENTIFIER_FALLBACK_ENABLED", True):
            raise
        number = _random.randint(FALLBACK_MIN, FALLBACK_MAX)
        current_app.logger.warning(
            "Identifier counter unavailable (%s); issued non-authoritative id %s",
            exc.details.get("cause", exc.__class__.__name__),
            format_identifier(code, number),
        )
        return AllocatedIdentifier(value=format_identifier(code, number), counter=None, authoritative=False)

    return AllocatedIdentifier(value=format_identifier(code, number), counter=number, authoritative=True)


def lookup_referrer(referral_code: str | None) -> str | None:
    """professional_id owning a referral code, or None."""
    normalized = (referral_code or "").strip().upper()
    if not normalized:
        return None
    return (
        db.session.query(Professional.professional_id)
        .filter_by(professional_id=normalized)
        .scalar()
    )


def register_professional(
    *,
    first_name: str,
    last_name: str,
    email: str,
    designation: str,
    firm_name: str | None = None,
    referral_code: str | None = None,
) -> Professional:
    first_name = (first_name or "").strip()
    last_name = (last_name or "").strip()
    email = (email or "").strip().lower()
    if not first_name or not last_name:
        raise ValidationError("first_name and last_name are required")
    if not email or "@" not in email:
        raise ValidationError("A valid email is required")

    # Validate before consuming a counter value
    code = designation_code(designation)
    canonical = next(name for name, c in DESIGNATION_CODES.items() if c == code)
    referred_by = lookup_referrer(referral_code)

    allocated = allocate(designation)
    professional = Professional(
        professional_id=allocated.value,
        id_is_authoritative=allocated.authoritative,
        first_name=first_name,
        last_name=last_name,
        email=email,
        designation=canonical,
        firm_name=(firm_name or "").strip() or None,
        referred_by=referred_by,
    )
    db.session.add(professional)
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise ConflictError(f"Professional ID {allocated.value} is already taken; please retry") from exc
    return professional
