# Overview: Flask API routes for accounts, business profiles and customers; parses input and returns JSON responses.

"""
Account and customer routes.

MULTI-TENANT: every customer route is scoped by the account_id in the URL;
a customer id from another account is reported as not found.

balance_paise is read-only here. It changes only through ledger postings.
"""
from flask import Blueprint, current_app

from ..models import BusinessProfile, Customer
from ..models.accounts import TURNOVER_BELOW_5CR
from ..services import account_service
from ..validation import ModelValidationPolicy, validate_payload
from . import HANDLED_ERRORS, error_response, json_payload

PROFILE_POLICY = ModelValidationPolicy(
    writable_fields={
        "legal_name", "gstin", "state", "annual_turnover",
        "invoice_prefix", "credit_note_prefix", "debit_note_prefix",
    },
    required_on_create=set(),
)

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "gstin", "state", "email", "phone"},
    required_on_create={"name"},
)

ACCOUNT_FIELDS = {
    "name", "state", "legal_name", "gstin", "annual_turnover",
    "invoice_prefix", "credit_note_prefix", "debit_note_prefix",
}

accounts_bp = Blueprint("accounts", __name__, url_prefix="/api/accounts")


@accounts_bp.post("")
def create_account_route():
    try:
        payload = json_payload(allowed=ACCOUNT_FIELDS)
        account = account_service.create_account(
            name=payload.get("name"),
            state=payload.get("state"),
            legal_name=payload.get("legal_name"),
            gstin=payload.get("gstin"),
            annual_turnover=payload.get("annual_turnover") or TURNOVER_BELOW_5CR,
            invoice_prefix=payload.get("invoice_prefix"),
            credit_note_prefix=payload.get("credit_note_prefix"),
            debit_note_prefix=payload.get("debit_note_prefix"),
        )
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create account")
        return {"error": "Failed to create account"}, 500

    return account.to_dict(), 201


@accounts_bp.get("")
def list_accounts_route():
    return {"accounts": [a.to_dict() for a in account_service.list_accounts()]}


@accounts_bp.get("/<int:account_id>")
def get_account_route(account_id: int):
    try:
        account = account_service.get_account(account_id)
    except HANDLED_ERRORS as e:
        return error_response(e)
    return account.to_dict()


@accounts_bp.patch("/<int:account_id>/profile")
def update_profile_route(account_id: int):
    try:
        payload = json_payload()
        patch = validate_payload(model=BusinessProfile, payload=payload, policy=PROFILE_POLICY, partial=True)
        profile = account_service.update_profile(account_id, patch)
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update business profile")
        return {"error": "Failed to update business profile"}, 500

    return profile.to_dict()


# =============================================================================
# Customers
# =============================================================================

@accounts_bp.get("/<int:account_id>/customers")
def list_customers_route(account_id: int):
    try:
        account_service.get_account(account_id)
    except HANDLED_ERRORS as e:
        return error_response(e)
    return {"customers": [c.to_dict() for c in account_service.list_customers(account_id)]}


@accounts_bp.post("/<int:account_id>/customers")
def create_customer_route(account_id: int):
    try:
        payload = json_payload()
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
        customer = account_service.create_customer(account_id, patch)
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create customer")
        return {"error": "Failed to create customer"}, 500

    return customer.to_dict(), 201


@accounts_bp.get("/<int:account_id>/customers/<int:customer_id>")
def get_customer_route(account_id: int, customer_id: int):
    try:
        customer = account_service.get_customer(account_id, customer_id)
    except HANDLED_ERRORS as e:
        return error_response(e)
    return customer.to_dict()


@accounts_bp.patch("/<int:account_id>/customers/<int:customer_id>")
def update_customer_route(account_id: int, customer_id: int):
    try:
        payload = json_payload()
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True)
        customer = account_service.update_customer(account_id, customer_id, patch)
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update customer")
        return {"error": "Failed to update customer"}, 500

    return customer.to_dict()
