# Overview: Flask API routes for invoices and credit/debit notes; parses input and returns JSON responses.

"""
Document routes: /api/accounts/<account_id>/documents/<series>

series is one of invoices, credit-notes, debit-notes.

Money in request bodies is rupees ("rate": "499.50", "gst_rate": 18);
responses carry integer paise.

Save responses include non-blocking compliance warnings next to the
document; they never prevent the save.
"""
from flask import Blueprint, request, current_app

from ..models.documents import KIND_CREDIT_NOTE, KIND_DEBIT_NOTE, KIND_INVOICE
from ..services import document_service, sequence_service
from ..validation import ValidationError
from billing.time_utils import parse_iso_date
from . import HANDLED_ERRORS, arg_flag, error_response, json_payload

SERIES_KINDS = {
    "invoices": KIND_INVOICE,
    "credit-notes": KIND_CREDIT_NOTE,
    "debit-notes": KIND_DEBIT_NOTE,
}

CREATE_FIELDS = {
    "customer_id", "lines", "document_date", "document_number", "supply_type",
    "reverse_charge", "port_code", "shipping_bill_no", "shipping_bill_date",
    "export_country", "reason", "original_invoice_id", "original_invoice_number", "status",
}

documents_bp = Blueprint("documents", __name__, url_prefix="/api/accounts/<int:account_id>/documents")


def _kind(series: str) -> str:
    kind = SERIES_KINDS.get(series)
    if kind is None:
        raise ValidationError(f"Unknown document series: {series}", details={"allowed": list(SERIES_KINDS)})
    return kind


@documents_bp.get("/<series>")
def list_documents_route(account_id: int, series: str):
    """
    Query params:
    - include_deleted: 1 to list active and deleted documents
    - only_deleted: 1 for the recently-deleted view
    """
    try:
        kind = _kind(series)
        documents = document_service.list_documents(
            account_id=account_id,
            kind=kind,
            include_deleted=arg_flag(request.args.get("include_deleted")),
            only_deleted=arg_flag(request.args.get("only_deleted")),
        )
    except HANDLED_ERRORS as e:
        return error_response(e)

    return {
        "documents": [d.to_dict(include_lines=False) for d in documents],
        "active_count": sequence_service.count(account_id, kind),
        "issued_count": sequence_service.count(account_id, kind, include_deleted=True),
    }


@documents_bp.get("/<series>/next-number")
def next_number_route(account_id: int, series: str):
    """Preview only; the number is reserved when the document is saved."""
    try:
        kind = _kind(series)
        try:
            doc_date = parse_iso_date(request.args.get("date"))
        except ValueError:
            raise ValidationError("date must be YYYY-MM-DD")
        preview = sequence_service.preview_next(account_id, kind, doc_date)
    except HANDLED_ERRORS as e:
        return error_response(e)

    return {"sequence_number": preview.sequence_number, "document_number": preview.document_number}


@documents_bp.post("/<series>")
def create_document_route(account_id: int, series: str):
    try:
        payload = json_payload(allowed=CREATE_FIELDS)
        result = document_service.create_document(account_id=account_id, kind=_kind(series), **payload)
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create document")
        return {"error": "Failed to create document"}, 500

    return result.to_dict(), 201


@documents_bp.get("/<series>/<int:document_id>")
def get_document_route(account_id: int, series: str, document_id: int):
    try:
        document = document_service.get_document(
            account_id=account_id, document_id=document_id, kind=_kind(series)
        )
    except HANDLED_ERRORS as e:
        return error_response(e)
    return document.to_dict()


@documents_bp.put("/<series>/<int:document_id>")
def update_document_route(account_id: int, series: str, document_id: int):
    try:
        payload = json_payload()
        document_service.get_document(account_id=account_id, document_id=document_id, kind=_kind(series))
        result = document_service.update_document(account_id=account_id, document_id=document_id, patch=payload)
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update document")
        return {"error": "Failed to update document"}, 500

    return result.to_dict()


@documents_bp.delete("/<series>/<int:document_id>")
def delete_document_route(account_id: int, series: str, document_id: int):
    """Soft delete. The number is not released and the ledger is not reversed."""
    try:
        document = document_service.soft_delete_document(
            account_id=account_id, document_id=document_id, kind=_kind(series)
        )
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete document")
        return {"error": "Failed to delete document"}, 500

    return document.to_dict(include_lines=False)


@documents_bp.post("/<series>/<int:document_id>/restore")
def restore_document_route(account_id: int, series: str, document_id: int):
    try:
        document = document_service.restore_document(
            account_id=account_id, document_id=document_id, kind=_kind(series)
        )
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to restore document")
        return {"error": "Failed to restore document"}, 500

    return document.to_dict(include_lines=False)


@documents_bp.post("/invoices/<int:document_id>/status")
def set_invoice_status_route(account_id: int, document_id: int):
    try:
        payload = json_payload()
        document = document_service.set_invoice_status(
            account_id=account_id, document_id=document_id, status=payload.get("status")
        )
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update invoice status")
        return {"error": "Failed to update invoice status"}, 500

    return document.to_dict(include_lines=False)
