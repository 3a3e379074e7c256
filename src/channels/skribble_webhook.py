"""Skribble webhook endpoint.

Handles:
- POST /webhook/skribble → signing callbacks (document.signed, session.completed, ...)

Any recognized or unrecognized event is answered 200 so the provider stops
retrying; only a bad signature (401) or an unusable body (400) is refused.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from src.db.engine import async_session_factory
from src.errors import InvalidSignatureError, MalformedWebhookError
from src.signing.store import SigningStore
from src.signing.webhook import SIGNATURE_HEADER, webhook_processor

logger = logging.getLogger(__name__)

skribble_router = APIRouter(prefix="/webhook", tags=["skribble"])


@skribble_router.post("/skribble")
async def receive_webhook(request: Request) -> JSONResponse:
    """Verify the HMAC over the raw body, then advance stored state."""
    body = await request.body()
    signature = request.headers.get(SIGNATURE_HEADER, "")

    try:
        async with async_session_factory() as db:
            result = await webhook_processor.handle_event(body, signature, SigningStore(db))
            await db.commit()
    except InvalidSignatureError:
        return JSONResponse(status_code=401, content={"success": False, "error": "Invalid signature"})
    except MalformedWebhookError as exc:
        logger.warning("Malformed Skribble webhook: %s", exc)
        return JSONResponse(status_code=400, content={"success": False, "error": "Malformed payload"})

    logger.info("Skribble webhook %s processed=%s", result.action, result.processed)
    return JSONResponse(content={"success": True, "processed": result.processed, "action": result.action})
