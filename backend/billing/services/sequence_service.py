# Overview: Service-layer operations for document numbering; atomic per-series counters.

"""
Sequence Service - document numbers that are never reused

RULES:
- One counter row per (account, kind). issued_count only increases.
- reserve_next increments the counter with a single UPDATE inside the
  caller's transaction. If that transaction rolls back, the reservation
  rolls back with it, so a number is only "used" once its document exists.
- The next number is always issued_count + 1. It is never derived from the
  number of active documents or from parsing printed document numbers.
- Soft delete / restore never touch the counter.

FORMAT: <prefix><yy>/<seq:03d>, e.g. INV/26/001. yy is the two-digit year of
the document date; the sequence does not reset per year.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import BusinessProfile, Document, DocumentSequence
from ..models.documents import DOCUMENT_KINDS
from ..models.accounts import DEFAULT_PREFIXES
from ..validation import ValidationError
from billing.time_utils import today
from .concurrency import CounterRaceError

SEQUENCE_PAD = 3


@dataclass(frozen=True)
class ReservedNumber:
    sequence_number: int
    document_number: str


def _require_kind(kind: str) -> None:
    if kind not in DOCUMENT_KINDS:
        raise ValidationError(
            f"Unknown document kind: {kind}",
            details={"allowed": list(DOCUMENT_KINDS)},
        )


def format_document_number(prefix: str, doc_date: date, sequence_number: int, pad: int = SEQUENCE_PAD) -> str:
    return f"{prefix}{doc_date.year % 100:02d}/{sequence_number:0{pad}d}"


def series_prefix(account_id: int, kind: str) -> str:
    profile = db.session.query(BusinessProfile).filter_by(account_id=account_id).first()
    if profile is None:
        return DEFAULT_PREFIXES[kind]
    return profile.prefix_for(kind)


def ensure_sequences(account_id: int) -> list[DocumentSequence]:
    """
    Create the counter rows for every series of an account.

    Idempotent. Called when the account is created so that reserve_next
    normally only ever UPDATEs.
    """
    rows = []
    for kind in DOCUMENT_KINDS:
        seq = db.session.query(DocumentSequence).filter_by(account_id=account_id, kind=kind).first()
        if seq is None:
            seq = DocumentSequence(account_id=account_id, kind=kind, issued_count=0)
            db.session.add(seq)
        rows.append(seq)
    db.session.flush()
    return rows


def issued_count(account_id: int, kind: str) -> int:
    _require_kind(kind)
    value = (
        db.session.query(DocumentSequence.issued_count)
        .filter_by(account_id=account_id, kind=kind)
        .scalar()
    )
    return value or 0


def preview_next(account_id: int, kind: str, doc_date: date | None = None) -> ReservedNumber:
    """
    Number the next saved document of this series will get, without reserving it.

    Two users previewing at the same time see the same value; only
    reserve_next decides who actually gets it.
    """
    _require_kind(kind)
    next_seq = issued_count(account_id, kind) + 1
    return ReservedNumber(
        sequence_number=next_seq,
        document_number=format_document_number(series_prefix(account_id, kind), doc_date or today(), next_seq),
    )


def reserve_next(account_id: int, kind: str, doc_date: date | None = None) -> ReservedNumber:
    """
    Atomically reserve the next number of a series.

    Must run inside the transaction that also writes the document; does not
    commit. Raises CounterRaceError when two writers create the first
    counter row at the same time (callers retry the whole unit of work).
    """
    _require_kind(kind)
    if not account_id:
        raise ValidationError("account_id is required")

    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.account_id == account_id,
            DocumentSequence.kind == kind,
        )
        .values(issued_count=DocumentSequence.issued_count + 1)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        db.session.flush()
        next_seq = (
            db.session.query(DocumentSequence.issued_count)
            .filter_by(account_id=account_id, kind=kind)
            .scalar()
        )
    else:
        # Counter row missing (legacy account): seed it from every document
        # ever issued in the series, deleted ones included.
        seeded = (
            db.session.query(func.max(Document.sequence_number))
            .filter_by(account_id=account_id, kind=kind)
            .scalar()
        ) or 0
        seq = DocumentSequence(account_id=account_id, kind=kind, issued_count=seeded + 1)
        db.session.add(seq)
        try:
            db.session.flush()
        except IntegrityError as exc:
            raise CounterRaceError(
                "Document sequence was created concurrently",
                details={"account_id": account_id, "kind": kind},
            ) from exc
        next_seq = seeded + 1

    prefix = series_prefix(account_id, kind)
    return ReservedNumber(
        sequence_number=next_seq,
        document_number=format_document_number(prefix, doc_date or today(), next_seq),
    )


def count(account_id: int, kind: str, include_deleted: bool = False) -> int:
    """
    Number of documents in a series.

    include_deleted=False -> active documents (what listings show)
    include_deleted=True  -> every document ever issued
    """
    _require_kind(kind)
    q = db.session.query(func.count(Document.id)).filter(
        Document.account_id == account_id,
        Document.kind == kind,
    )
    if not include_deleted:
        q = q.filter(Document.is_deleted.is_(False))
    return q.scalar() or 0

