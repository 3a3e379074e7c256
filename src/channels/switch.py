"""Switch trigger endpoints: called by the comparison site's checkout.

Handles:
- POST /api/switch                           → run the full switch workflow
- GET  /api/switch/documents/{id}            → provider document status
- GET  /api/switch/sessions/{id}             → provider session status
- GET  /api/switch/documents/{id}/signed     → signed PDF download
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse

from src.channels.responses import error_response, unexpected_error_response
from src.compliance.validator import parse_switch_request
from src.config import settings
from src.db.engine import async_session_factory
from src.errors import SwitchError
from src.schemas.signing import SigningSession, SkribbleDocument
from src.security.rate_limiter import rate_limiter
from src.signing.store import SigningStore
from src.signing.workflow import SwitchWorkflow, build_workflow

logger = logging.getLogger(__name__)

switch_router = APIRouter(prefix="/api/switch", tags=["switch"])

_workflow: SwitchWorkflow | None = None


def get_workflow() -> SwitchWorkflow:
    """Lazily built workflow singleton.

    Raises:
        ConfigError: If the provider is not configured.
    """
    global _workflow
    if _workflow is None:
        _workflow = build_workflow()
    return _workflow


def _client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


# ── Endpoints ────────────────────────────────────────────────────────


@switch_router.post("")
async def start_switch(request: Request) -> Response:
    """Validate, render both documents and open the sequential signing session.

    The body is parsed here rather than by FastAPI so an unusable value is
    answered like any other violation: 400 VALIDATION_ERROR with the list.
    """
    allowed, retry_after = await rate_limiter.check(
        f"rate:{_client_ip(request)}:switch",
        limit=settings.workflow.switch_rate_limit,
        window=settings.workflow.switch_rate_window,
    )
    if not allowed:
        logger.warning("Switch rate limit hit for %s", _client_ip(request))
        return JSONResponse(
            status_code=429,
            content={"code": "RATE_LIMITED", "message": "Zu viele Anfragen. Bitte versuchen Sie es später erneut."},
            headers={"Retry-After": str(retry_after)},
        )

    try:
        body = parse_switch_request(await request.body())
        workflow = get_workflow()
        async with async_session_factory() as db:
            result = await workflow.process_switch(body.user_data, body.selected_insurance, store=SigningStore(db))
            await db.commit()
    except SwitchError as exc:
        return error_response(exc)
    except Exception as exc:
        logger.exception("Unexpected error in switch workflow")
        return unexpected_error_response(exc)

    return JSONResponse(content=result.model_dump(mode="json", by_alias=True))


@switch_router.get("/documents/{document_id}")
async def document_status(document_id: str) -> Response:
    try:
        document: SkribbleDocument = await get_workflow().orchestrator.get_document_status(document_id)
    except SwitchError as exc:
        return error_response(exc)
    return JSONResponse(content=document.model_dump(mode="json"))


@switch_router.get("/sessions/{session_id}")
async def session_status(session_id: str) -> Response:
    try:
        session: SigningSession = await get_workflow().orchestrator.get_session_status(session_id)
    except SwitchError as exc:
        return error_response(exc)
    return JSONResponse(content=session.model_dump(mode="json"))


@switch_router.get("/documents/{document_id}/signed")
async def signed_document(document_id: str) -> Response:
    """Signed PDF; X-Audit-Trail tells whether the provider's audit trail was available."""
    try:
        artifact = await get_workflow().orchestrator.download_signed_document(document_id)
    except SwitchError as exc:
        return error_response(exc)
    return Response(
        content=artifact.content,
        media_type="application/pdf",
        headers={
            "Content-Disposition": f'attachment; filename="{document_id}.pdf"',
            "X-Audit-Trail": "available" if artifact.audit_trail_available else "synthesized",
        },
    )
