# Overview: Service-layer operations for accounts, business profiles and customers.

from __future__ import annotations

from ..extensions import db
from ..models import Account, BusinessProfile, Customer
from ..models.accounts import DEFAULT_PREFIXES, TURNOVER_BELOW_5CR, TURNOVER_BRACKETS
from ..validation import ConflictError, NotFoundError, ValidationError, normalize_gstin, normalize_state
from .concurrency import lock_for_update, run_with_retry
from .sequence_service import ensure_sequences


def _check_turnover(value: str) -> str:
    if value not in TURNOVER_BRACKETS:
        raise ValidationError(
            "annual_turnover must be one of: " + ", ".join(TURNOVER_BRACKETS),
            details={"annual_turnover": value},
        )
    return value


def create_account(
    *,
    name: str,
    state: str,
    legal_name: str | None = None,
    gstin: str | None = None,
    annual_turnover: str = TURNOVER_BELOW_5CR,
    invoice_prefix: str | None = None,
    credit_note_prefix: str | None = None,
    debit_note_prefix: str | None = None,
) -> Account:
    """
    Create an account with its business profile and numbering series.

    The three series counters are created up front so the first document
    of each kind only ever increments an existing row.
    """
    name = (name or "").strip()
    state = normalize_state(state)
    if not name:
        raise ValidationError("Account name is required")
    if not state:
        raise ValidationError("Business state is required")
    gstin = normalize_gstin(gstin)
    _check_turnover(annual_turnover)

    def _op() -> Account:
        account = Account(name=name, is_active=True)
        db.session.add(account)
        db.session.flush()

        db.session.add(
            BusinessProfile(
                account_id=account.id,
                legal_name=(legal_name or name).strip(),
                gstin=gstin,
                state=state,
                annual_turnover=annual_turnover,
                invoice_prefix=invoice_prefix or DEFAULT_PREFIXES["invoice"],
                credit_note_prefix=credit_note_prefix or DEFAULT_PREFIXES["credit_note"],
                debit_note_prefix=debit_note_prefix or DEFAULT_PREFIXES["debit_note"],
            )
        )
        ensure_sequences(account.id)
        db.session.commit()
        return account

    return run_with_retry(_op)


def get_account(account_id: int) -> Account:
    account = db.session.query(Account).filter_by(id=account_id).first()
    if account is None:
        raise NotFoundError(f"Account {account_id} not found")
    return account


def list_accounts() -> list[Account]:
    return db.session.query(Account).order_by(Account.id.asc()).all()


def get_profile(account_id: int) -> BusinessProfile:
    profile = db.session.query(BusinessProfile).filter_by(account_id=account_id).first()
    if profile is None:
        raise NotFoundError(f"Business profile for account {account_id} not found")
    return profile


def update_profile(account_id: int, patch: dict) -> BusinessProfile:
    """
    Apply a validated profile patch.

    Prefix changes only affect numbers formatted afterwards; issued
    numbers and the series counters are left alone.
    """
    if "gstin" in patch:
        patch["gstin"] = normalize_gstin(patch["gstin"])
    if "state" in patch:
        patch["state"] = normalize_state(patch["state"])
        if not patch["state"]:
            raise ValidationError("state cannot be blank")
    if "annual_turnover" in patch:
        _check_turnover(patch["annual_turnover"])

    def _op() -> BusinessProfile:
        profile = get_profile(account_id)
        for key, value in patch.items():
            setattr(profile, key, value)
        db.session.commit()
        return profile

    return run_with_retry(_op)


# =============================================================================
# Customers
# =============================================================================

def _normalize_customer_patch(patch: dict) -> dict:
    if "gstin" in patch:
        patch["gstin"] = normalize_gstin(patch["gstin"])
    if "state" in patch:
        patch["state"] = normalize_state(patch["state"])
    if "name" in patch:
        patch["name"] = (patch["name"] or "").strip()
        if not patch["name"]:
            raise ValidationError("name cannot be blank")
    return patch


def create_customer(account_id: int, patch: dict) -> Customer:
    get_account(account_id)
    patch = _normalize_customer_patch(dict(patch))

    def _op() -> Customer:
        customer = Customer(account_id=account_id, balance_paise=0, **patch)
        if customer.state is None:
            customer.state = ""
        db.session.add(customer)
        db.session.commit()
        return customer

    return run_with_retry(_op)


def get_customer(account_id: int, customer_id: int) -> Customer:
    customer = db.session.query(Customer).filter_by(id=customer_id, account_id=account_id).first()
    if customer is None:
        raise NotFoundError(f"Customer {customer_id} not found")
    return customer


def list_customers(account_id: int) -> list[Customer]:
    return (
        db.session.query(Customer)
        .filter_by(account_id=account_id)
        .order_by(Customer.name.asc(), Customer.id.asc())
        .all()
    )


def update_customer(account_id: int, customer_id: int, patch: dict) -> Customer:
    """balance_paise is never writable here; it only moves with ledger postings."""
    if "balance_paise" in patch:
        raise ConflictError("balance_paise is maintained by the ledger and cannot be edited")
    patch = _normalize_customer_patch(dict(patch))

    def _op() -> Customer:
        customer = lock_for_update(
            db.session.query(Customer).filter_by(id=customer_id, account_id=account_id)
        ).first()
        if customer is None:
            raise NotFoundError(f"Customer {customer_id} not found")
        for key, value in patch.items():
            setattr(customer, key, value)
        if customer.state is None:
            customer.state = ""
        db.session.commit()
        return customer

    return run_with_retry(_op)
