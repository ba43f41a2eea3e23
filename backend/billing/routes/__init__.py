# Overview: Shared request parsing and error mapping for the JSON API blueprints.

from flask import request

from ..services.concurrency import ConcurrencyError
from ..validation import ConflictError, NotFoundError, ValidationError

# Errors every route maps to a client-facing status
HANDLED_ERRORS = (ValidationError, NotFoundError, ConflictError, ConcurrencyError)


def json_payload(allowed=None) -> dict:
    """
    Request body as a JSON object. A missing or unparseable body is {}.

    allowed, when given, is the set of keys the route accepts.
    """
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    if allowed is not None:
        unknown = sorted(set(payload) - set(allowed))
        if unknown:
            raise ValidationError(f"Field not allowed: {', '.join(unknown)}")
    return payload


def error_response(exc: Exception):
    """
    400 validation (user-fixable), 404 missing, 409 conflict.

    Concurrency failures are 409 with retry=True: nothing was saved and the
    whole request can be repeated.
    """
    if isinstance(exc, ValidationError):
        return {"error": str(exc), "details": exc.details}, 400
    if isinstance(exc, NotFoundError):
        return {"error": str(exc)}, 404
    if isinstance(exc, ConcurrencyError):
        return {"error": str(exc), "details": exc.details, "retry": True}, 409
    return {"error": str(exc)}, 409


def arg_flag(value) -> bool:
    return str(value or "").strip().lower() in {"1", "true", "yes", "on"}
