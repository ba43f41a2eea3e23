# Overview: Flask API routes for GSTR-1 and the period registers; parses input and returns JSON or .xlsx responses.

from io import BytesIO

from flask import Blueprint, request, current_app, send_file

from ..models.documents import KIND_CREDIT_NOTE, KIND_DEBIT_NOTE
from ..services import gstr1_service, register_service
from ..validation import ValidationError
from . import HANDLED_ERRORS, error_response

reports_bp = Blueprint("reports", __name__, url_prefix="/api/accounts/<int:account_id>/reports")

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

REGISTER_NAMES = ("sales", "credit-notes", "debit-notes", "hsn")


@reports_bp.get("/gstr1")
def gstr1_json_route(account_id: int):
    """Query params: period=MMYYYY (required)."""
    try:
        report = gstr1_service.build_gstr1(account_id, request.args.get("period", ""))
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to build GSTR-1")
        return {"error": "Failed to build GSTR-1"}, 500
    return report


@reports_bp.get("/gstr1.xlsx")
def gstr1_workbook_route(account_id: int):
    period = request.args.get("period", "")
    try:
        report = gstr1_service.build_gstr1(account_id, period)
        data = gstr1_service.export_gstr1_workbook(report)
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to export GSTR-1 workbook")
        return {"error": "Failed to export GSTR-1 workbook"}, 500

    filename = f"GSTR1_{report['gstin'] or 'export'}_{period}.xlsx"
    return send_file(BytesIO(data), mimetype=XLSX_MIMETYPE, as_attachment=True, download_name=filename)


def _build_register(account_id: int, name: str, start, end) -> dict:
    if name == "sales":
        return register_service.build_sales_register(account_id, start, end)
    if name == "credit-notes":
        return register_service.build_notes_register(account_id, KIND_CREDIT_NOTE, start, end)
    if name == "debit-notes":
        return register_service.build_notes_register(account_id, KIND_DEBIT_NOTE, start, end)
    if name == "hsn":
        return register_service.build_hsn_summary(account_id, start, end)
    raise ValidationError(f"Unknown register: {name}", details={"allowed": list(REGISTER_NAMES)})


@reports_bp.get("/registers/<name>")
def register_route(account_id: int, name: str):
    """
    Query params:
    - start, end: inclusive YYYY-MM-DD bounds (optional)
    - format: xlsx for a workbook download, JSON otherwise
    """
    start = request.args.get("start")
    end = request.args.get("end")
    as_workbook = request.args.get("format", "").lower() == "xlsx"
    try:
        register = _build_register(account_id, name, start, end)
        data = register_service.export_register_workbook(register) if as_workbook else None
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to build %s register", name)
        return {"error": "Failed to build register"}, 500

    if data is None:
        register["columns"] = [{"key": key, "label": label} for key, label in register["columns"]]
        return register

    period = "_".join(p for p in (register["start"], register["end"]) if p) or "all"
    filename = f"{register['title'].replace(' ', '_')}_{period}.xlsx"
    return send_file(BytesIO(data), mimetype=XLSX_MIMETYPE, as_attachment=True, download_name=filename)
