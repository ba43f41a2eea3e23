# Overview: Service-layer operations for the customer ledger; encapsulates business logic and database work.

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Iterable, Optional

from flask import current_app

from ..extensions import db
from ..models import Customer, Document, LedgerEntry
from ..models.documents import KIND_CREDIT_NOTE, KIND_DEBIT_NOTE, KIND_INVOICE
from ..models.ledger import (
    ENTRY_CREDIT,
    ENTRY_DEBIT,
    ENTRY_TYPES,
    ENTRY_SOURCES,
    SOURCE_PAYMENT,
    SOURCE_REVISION,
)
from ..validation import NotFoundError, ValidationError
from billing.time_utils import today
from .concurrency import begin_write, lock_for_update, run_with_retry

"""
Customer Ledger Invariants (authoritative)

- Append-only: entries are never updated or deleted, including when the
  originating document is soft-deleted or restored.
- Debit adds to the customer's balance, Credit subtracts. Positive = "Dr"
  (customer owes the business), negative = "Cr".
- customer.balance_paise changes only in post_entry, in the same
  transaction as the entry it reflects.
- Running balance order: entry_date ascending, then insertion (id).
"""

EDIT_POLICY_DELTA = "delta"
EDIT_POLICY_NONE = "none"
EDIT_POLICIES = (EDIT_POLICY_DELTA, EDIT_POLICY_NONE)

# Ledger direction of each document kind's posting
DOCUMENT_ENTRY_TYPES = {
    KIND_INVOICE: ENTRY_DEBIT,
    KIND_CREDIT_NOTE: ENTRY_CREDIT,
    KIND_DEBIT_NOTE: ENTRY_DEBIT,
}


@dataclass(frozen=True)
class RunningEntry:
    entry: LedgerEntry
    running_balance_paise: int

    def to_dict(self) -> dict:
        data = self.entry.to_dict()
        data["running_balance_paise"] = self.running_balance_paise
        data["balance_label"] = balance_label(self.running_balance_paise)
        return data


def signed_amount(entry_type: str, amount_paise: int) -> int:
    return amount_paise if entry_type == ENTRY_DEBIT else -amount_paise


def balance_label(balance_paise: int) -> str:
    return "Dr" if balance_paise >= 0 else "Cr"


def running_balance(entries: Iterable[LedgerEntry]) -> list[RunningEntry]:
    """
    Cumulative balance per entry.

    Order is entry_date, then id. Unsaved entries (no id yet) sort after
    saved ones of the same date and keep the order they were passed in.
    """
    ordered = sorted(entries, key=lambda e: (e.entry_date, e.id is None, e.id or 0))
    balance = 0
    out = []
    for entry in ordered:
        balance += signed_amount(entry.entry_type, entry.amount_paise)
        out.append(RunningEntry(entry=entry, running_balance_paise=balance))
    return out


def closing_balance(entries: Iterable[LedgerEntry]) -> int:
    return sum(e.signed_amount_paise for e in entries)


def _document_description(document: Document) -> str:
    if document.kind == KIND_CREDIT_NOTE:
        label = "Credit Note"
    elif document.kind == KIND_DEBIT_NOTE:
        label = "Debit Note"
    else:
        return f"Sale - {document.document_number}"
    ref = f" (Ref: {document.original_invoice_number})" if document.original_invoice_number else ""
    return f"{label} - {document.document_number}{ref}"


def post_entry(
    *,
    customer_id: int,
    entry_date: date,
    entry_type: str,
    amount_paise: int,
    description: str,
    source: str,
    document: Optional[Document] = None,
) -> LedgerEntry:
    """
    Append one entry and apply it to the customer's cached balance.

    Runs inside the caller's transaction and does not commit, so the entry
    and the balance change are persisted together or not at all.
    """
    if entry_type not in ENTRY_TYPES:
        raise ValidationError(f"entry_type must be one of {', '.join(ENTRY_TYPES)}")
    if source not in ENTRY_SOURCES:
        raise ValidationError(f"Unknown ledger source: {source}")
    if not isinstance(amount_paise, int) or isinstance(amount_paise, bool) or amount_paise <= 0:
        raise ValidationError("Ledger amount must be greater than zero", details={"amount_paise": amount_paise})

    customer = lock_for_update(db.session.query(Customer).filter_by(id=customer_id)).first()
    if customer is None:
        raise NotFoundError(f"Customer {customer_id} not found")

    entry = LedgerEntry(
        account_id=customer.account_id,
        customer_id=customer.id,
        entry_date=entry_date,
        entry_type=entry_type,
        amount_paise=amount_paise,
        description=(description or "")[:255],
        source=source,
        document_id=document.id if document is not None else None,
    )
    db.session.add(entry)
    customer.balance_paise = (customer.balance_paise or 0) + signed_amount(entry_type, amount_paise)
    db.session.flush()
    return entry


def post_document(document: Document) -> LedgerEntry:
    """Initial posting for a newly finalized document (grand total)."""
    document.posted_total_paise = document.grand_total_paise
    return post_entry(
        customer_id=document.customer_id,
        entry_date=document.document_date,
        entry_type=DOCUMENT_ENTRY_TYPES[document.kind],
        amount_paise=document.grand_total_paise,
        description=_document_description(document),
        source=document.kind,
        document=document,
    )


def post_revision(document: Document, policy: str) -> Optional[LedgerEntry]:
    """
    Bring the ledger in line with an edited document.

    delta: append one entry for (new grand total - posted total), in the
           direction that moves the balance to the new total.
    none:  leave ledger and balance untouched; posted_total_paise keeps
           the stale amount so the gap stays visible.
    """
    if policy not in EDIT_POLICIES:
        raise ValidationError(f"Unknown ledger edit policy: {policy}")
    if policy == EDIT_POLICY_NONE:
        return None

    delta = document.grand_total_paise - (document.posted_total_paise or 0)
    if delta == 0:
        return None

    base_type = DOCUMENT_ENTRY_TYPES[document.kind]
    if delta > 0:
        entry_type = base_type
    else:
        entry_type = ENTRY_CREDIT if base_type == ENTRY_DEBIT else ENTRY_DEBIT

    document.posted_total_paise = document.grand_total_paise
    return post_entry(
        customer_id=document.customer_id,
        entry_date=today(),
        entry_type=entry_type,
        amount_paise=abs(delta),
        description=f"Revision - {_document_description(document)}",
        source=SOURCE_REVISION,
        document=document,
    )


def record_payment(
    *,
    customer_id: int,
    amount_paise: int,
    entry_date: Optional[date] = None,
    description: Optional[str] = None,
    account_id: Optional[int] = None,
) -> LedgerEntry:
    """Manual payment received: Credit posting, committed on its own."""
    if not isinstance(amount_paise, int) or amount_paise <= 0:
        raise ValidationError("Payment amount must be greater than zero")

    def _op() -> LedgerEntry:
        begin_write()
        customer = db.session.query(Customer).filter_by(id=customer_id).first()
        if customer is None or (account_id is not None and customer.account_id != account_id):
            raise NotFoundError(f"Customer {customer_id} not found")
        entry = post_entry(
            customer_id=customer_id,
            entry_date=entry_date or today(),
            entry_type=ENTRY_CREDIT,
            amount_paise=amount_paise,
            description=(description or "").strip() or "Payment received",
            source=SOURCE_PAYMENT,
        )
        db.session.commit()
        return entry

    return run_with_retry(_op)


def get_entries(customer_id: int) -> list[LedgerEntry]:
    return (
        db.session.query(LedgerEntry)
        .filter_by(customer_id=customer_id)
        .order_by(LedgerEntry.entry_date.asc(), LedgerEntry.id.asc())
        .all()
    )


def customer_statement(customer_id: int, account_id: Optional[int] = None) -> dict:
    customer = db.session.query(Customer).filter_by(id=customer_id).first()
    if customer is None or (account_id is not None and customer.account_id != account_id):
        raise NotFoundError(f"Customer {customer_id} not found")

    entries = get_entries(customer_id)
    rows = running_balance(entries)
    total_debit = sum(e.amount_paise for e in entries if e.entry_type == ENTRY_DEBIT)
    total_credit = sum(e.amount_paise for e in entries if e.entry_type == ENTRY_CREDIT)
    closing = total_debit - total_credit
    return {
        "customer": customer.to_dict(),
        "entries": [r.to_dict() for r in rows],
        "total_debit_paise": total_debit,
        "total_credit_paise": total_credit,
        "closing_balance_paise": closing,
        "closing_balance_label": balance_label(closing),
    }


def reconcile_customer_balance(customer_id: int, fix: bool = False) -> dict:
    """
    Compare the cached customer balance with the ledger.

    fix=True overwrites the cache with the ledger sum (the ledger is the
    source of truth). Does not commit.
    """
    customer = db.session.query(Customer).filter_by(id=customer_id).first()
    if customer is None:
        raise NotFoundError(f"Customer {customer_id} not found")

    ledger_total = closing_balance(get_entries(customer_id))
    cached = customer.balance_paise or 0
    result = {
        "customer_id": customer.id,
        "cached_balance_paise": cached,
        "ledger_balance_paise": ledger_total,
        "difference_paise": cached - ledger_total,
        "fixed": False,
    }
    if fix and cached != ledger_total:
        customer.balance_paise = ledger_total
        db.session.flush()
        result["fixed"] = True
        current_app.logger.warning(
            "Repaired cached balance for customer %s: %s -> %s", customer.id, cached, ledger_total
        )
    return result


def reconcile_account(account_id: int, fix: bool = False) -> list[dict]:
    """Mismatched customers of an account (all of them are repaired when fix=True)."""
    customers = db.session.query(Customer).filter_by(account_id=account_id).order_by(Customer.id).all()
    mismatches = []
    for customer in customers:
        result = reconcile_customer_balance(customer.id, fix=fix)
        if result["difference_paise"]:
            mismatches.append(result)
    if fix:
        db.session.commit()
    return mismatches
