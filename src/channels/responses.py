"""Error responses for the HTTP surface.

Public error codes map to fixed HTTP statuses. Outside development only the
code and a generic German message leave the service; validation messages
are always returned because they are meant for the customer.
"""

from __future__ import annotations

from fastapi.responses import JSONResponse

from src.config import settings
from src.errors import SwitchError, ValidationFailedError

STATUS_BY_CODE: dict[str, int] = {
    "VALIDATION_ERROR": 400,
    "CONFIG_ERROR": 503,
    "AUTH_ERROR": 502,
    "TIMEOUT_ERROR": 408,
    "PROVIDER_ERROR": 503,
    "PROCESSING_ERROR": 500,
}

GENERIC_MESSAGES: dict[str, str] = {
    "VALIDATION_ERROR": "Bitte überprüfen Sie Ihre Angaben.",
    "CONFIG_ERROR": "Der Dienst ist vorübergehend nicht verfügbar. Bitte versuchen Sie es später erneut.",
    "AUTH_ERROR": "Die Verbindung zum Signaturdienst ist fehlgeschlagen.",
    "TIMEOUT_ERROR": "Die Anfrage hat zu lange gedauert. Bitte versuchen Sie es erneut.",
    "PROVIDER_ERROR": "Der Signaturdienst ist vorübergehend nicht erreichbar.",
    "PROCESSING_ERROR": "Die Dokumente konnten nicht erstellt werden.",
}


def error_body(code: str, detail: str | None = None) -> dict[str, object]:
    message = detail if detail and settings.is_development else GENERIC_MESSAGES[code]
    return {"code": code, "message": message}


def error_response(exc: SwitchError) -> JSONResponse:
    """JSON error response for a workflow failure."""
    body = error_body(exc.code, exc.message)
    if isinstance(exc, ValidationFailedError):
        body["message"] = GENERIC_MESSAGES[exc.code]
        body["violations"] = exc.violations
    return JSONResponse(status_code=STATUS_BY_CODE[exc.code], content=body)


def unexpected_error_response(exc: Exception) -> JSONResponse:
    """Anything that is not a SwitchError is reported as a processing error."""
    return JSONResponse(status_code=500, content=error_body("PROCESSING_ERROR", repr(exc)))
