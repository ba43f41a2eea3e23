# Overview: Flask API routes for the customer ledger; parses input and returns JSON responses.

from flask import Blueprint, current_app

from ..services import ledger_service
from ..validation import ValidationError, parse_money_paise
from billing.time_utils import parse_iso_date
from . import HANDLED_ERRORS, error_response, json_payload

"""
Ledger semantics:
- Entries are append-only; the statement shows them in entry_date order
  (ties by insertion) with a running balance.
- Positive balance = "Dr" (customer owes the business).
- Payments are Credit entries; amount is rupees in the request body.
"""

ledger_bp = Blueprint("ledger", __name__, url_prefix="/api/accounts/<int:account_id>")


@ledger_bp.get("/customers/<int:customer_id>/ledger")
def customer_statement_route(account_id: int, customer_id: int):
    try:
        statement = ledger_service.customer_statement(customer_id, account_id=account_id)
    except HANDLED_ERRORS as e:
        return error_response(e)
    return statement


@ledger_bp.post("/customers/<int:customer_id>/payments")
def record_payment_route(account_id: int, customer_id: int):
    try:
        payload = json_payload()
        amount_paise = parse_money_paise(payload.get("amount"), "amount")
        if amount_paise <= 0:
            raise ValidationError("amount must be greater than zero")
        try:
            entry_date = parse_iso_date(payload.get("date"))
        except ValueError:
            raise ValidationError("date must be YYYY-MM-DD")

        entry = ledger_service.record_payment(
            customer_id=customer_id,
            amount_paise=amount_paise,
            entry_date=entry_date,
            description=payload.get("description"),
            account_id=account_id,
        )
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to record payment")
        return {"error": "Failed to record payment"}, 500

    return entry.to_dict(), 201


@ledger_bp.get("/ledger/reconcile")
def reconcile_route(account_id: int):
    """Report customers whose cached balance differs from their ledger. Read-only."""
    try:
        mismatches = ledger_service.reconcile_account(account_id, fix=False)
    except HANDLED_ERRORS as e:
        return error_response(e)

    return {"mismatches": mismatches, "fixed": False}


@ledger_bp.post("/ledger/reconcile")
def repair_balances_route(account_id: int):
    """Rewrite each mismatched cached balance from the ledger."""
    try:
        mismatches = ledger_service.reconcile_account(account_id, fix=True)
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to reconcile ledger")
        return {"error": "Failed to reconcile ledger"}, 500

    return {"mismatches": mismatches, "fixed": True}
