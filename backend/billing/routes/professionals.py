# Overview: Flask API routes for professional registration; parses input and returns JSON responses.

from flask import Blueprint, current_app

from ..extensions import db
from ..models import Professional
from ..services import identifier_service
from . import HANDLED_ERRORS, error_response, json_payload

professionals_bp = Blueprint("professionals", __name__, url_prefix="/api/professionals")


@professionals_bp.post("")
def register_professional_route():
    """
    Register a professional and allocate their BHP id.

    id_is_authoritative is false when the id came from the fallback path.
    """
    try:
        payload = json_payload()
        professional = identifier_service.register_professional(
            first_name=payload.get("first_name"),
            last_name=payload.get("last_name"),
            email=payload.get("email"),
            designation=payload.get("designation"),
            firm_name=payload.get("firm_name"),
            referral_code=payload.get("referral_code"),
        )
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to register professional")
        return {"error": "Failed to register professional"}, 500

    return professional.to_dict(), 201


@professionals_bp.get("/<professional_id>")
def get_professional_route(professional_id: str):
    professional = (
        db.session.query(Professional)
        .filter_by(professional_id=professional_id.strip().upper())
        .first()
    )
    if professional is None:
        return {"error": "Professional not found"}, 404
    return professional.to_dict()


@professionals_bp.get("/referrals/<code>")
def lookup_referral_route(code: str):
    referrer = identifier_service.lookup_referrer(code)
    if referrer is None:
        return {"error": "Referral code not found"}, 404
    return {"referral_code": code.strip().upper(), "professional_id": referrer}
