"""Inbound Skribble webhooks: verification and state advancement.

Callbacks arrive later than, and independently of, the switch request, in
any order and possibly more than once. Every handler is idempotent: a
repeated event changes nothing and emits nothing. Unknown ids are created
on the fly because a callback can beat the trigger path's commit.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone

from pydantic import ValidationError

from src.admin.events import emit
from src.config import settings
from src.errors import InvalidSignatureError, MalformedWebhookError
from src.integrations.skribble.schemas import WebhookPayload
from src.models.enums import DocumentStatus, SessionStatus, WebhookEventType
from src.schemas.events import EventType, SystemEvent
from src.schemas.signing import WebhookResult
from src.signing.state import advance_document, advance_session
from src.signing.store import SigningStore

logger = logging.getLogger(__name__)

_SOURCE = "signing.webhook"
SIGNATURE_HEADER = "X-Skribble-Signature"


def compute_signature(secret: str, payload: bytes) -> str:
    """Hex HMAC-SHA256 of the raw body."""
    return hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()


def _now() -> datetime:
    return datetime.now(timezone.utc)


class WebhookProcessor:
    """Verifies provider callbacks and applies them to the signing store."""

    def __init__(self, secret: str | None = None, allow_unsigned: bool | None = None) -> None:
        self.secret = settings.skribble.skribble_webhook_secret if secret is None else secret
        self.allow_unsigned = settings.is_development if allow_unsigned is None else allow_unsigned
        self._handlers: dict[str, Callable[[WebhookPayload, SigningStore], Awaitable[None]]] = {
            WebhookEventType.DOCUMENT_SIGNED.value: self._on_document_signed,
            WebhookEventType.DOCUMENT_DECLINED.value: self._on_document_declined,
            WebhookEventType.SESSION_COMPLETED.value: self._on_session_completed,
            WebhookEventType.SESSION_EXPIRED.value: self._on_session_expired,
        }

    # ── Trust ────────────────────────────────────────────────────────

    def verify_signature(self, payload: bytes, signature_header: str | None) -> bool:
        """Constant-time HMAC check; accepts an optional `sha256=` prefix.

        Without a configured secret, verification is skipped only when
        unsigned callbacks are allowed (development).
        """
        if not self.secret:
            if self.allow_unsigned:
                logger.warning("Webhook signature verification skipped: no secret configured")
                return True
            return False

        if not signature_header:
            return False
        received = signature_header.strip().removeprefix("sha256=")
        return hmac.compare_digest(compute_signature(self.secret, payload).encode(), received.encode())

    @staticmethod
    def parse(payload: bytes) -> WebhookPayload:
        """Decode the callback envelope.

        Raises:
            MalformedWebhookError: If the body is not JSON or lacks an event type.
        """
        try:
            body = json.loads(payload)
        except ValueError as exc:
            msg = "Webhook body is not valid JSON"
            raise MalformedWebhookError(msg) from exc
        if not isinstance(body, dict):
            msg = "Webhook body must be a JSON object"
            raise MalformedWebhookError(msg)
        try:
            return WebhookPayload.model_validate(body)
        except ValidationError as exc:
            msg = f"Webhook payload rejected: {exc.error_count()} error(s)"
            raise MalformedWebhookError(msg) from exc

    # ── Entry point ──────────────────────────────────────────────────

    async def handle_event(
        self,
        raw_payload: bytes,
        signature_header: str | None,
        store: SigningStore,
    ) -> WebhookResult:
        """Verify, parse and dispatch one callback.

        Raises:
            InvalidSignatureError: Signature mismatch; nothing is changed.
            MalformedWebhookError: Body unusable; nothing is changed.
        """
        if not self.verify_signature(raw_payload, signature_header):
            logger.warning("Skribble webhook signature verification failed")
            await emit(SystemEvent(
                event_type=EventType.WEBHOOK_REJECTED,
                actor="provider",
                data={"reason": "invalid_signature", "size": len(raw_payload)},
                source_module=_SOURCE,
            ))
            msg = "Invalid webhook signature"
            raise InvalidSignatureError(msg)

        payload = self.parse(raw_payload)
        await emit(SystemEvent(
            event_type=EventType.WEBHOOK_RECEIVED,
            signing_session_id=payload.session_id,
            document_id=payload.document_id,
            actor="provider",
            data={"event_type": payload.event_type},
            source_module=_SOURCE,
        ))

        handler = self._handlers.get(payload.event_type)
        if handler is None:
            logger.info("Ignoring unknown Skribble event %s", payload.event_type)
            await emit(SystemEvent(
                event_type=EventType.WEBHOOK_IGNORED,
                actor="provider",
                data={"event_type": payload.event_type},
                source_module=_SOURCE,
            ))
            return WebhookResult(processed=False, action=payload.event_type)

        await handler(payload, store)
        return WebhookResult(processed=True, action=payload.event_type)

    # ── Handlers ─────────────────────────────────────────────────────

    @staticmethod
    def _require(value: str | None, name: str) -> str:
        if not value:
            msg = f"Webhook data is missing {name}"
            raise MalformedWebhookError(msg)
        return value

    async def _on_document_signed(self, payload: WebhookPayload, store: SigningStore) -> None:
        document_id = self._require(payload.document_id, "document_id")
        record = await store.get_or_create_document(document_id)
        if not advance_document(record, DocumentStatus.SIGNED):
            logger.debug("Document %s already %s, signed event ignored", document_id, record.status)
            return

        record.signed_at = payload.data.signed_at or _now()
        if payload.data.signer_email:
            record.signer_email = payload.data.signer_email
        logger.info("Document %s signed", document_id)
        await emit(SystemEvent(
            event_type=EventType.DOCUMENT_SIGNED,
            signing_session_id=record.provider_session_id,
            document_id=document_id,
            actor=record.signer_email,
            data={"kind": record.kind, "signed_at": record.signed_at.isoformat()},
            source_module=_SOURCE,
        ))

    async def _on_document_declined(self, payload: WebhookPayload, store: SigningStore) -> None:
        document_id = self._require(payload.document_id, "document_id")
        record = await store.get_or_create_document(document_id)
        if not advance_document(record, DocumentStatus.DECLINED):
            return

        record.declined_at = payload.data.declined_at or _now()
        logger.warning("Document %s declined by signer", document_id)
        await emit(SystemEvent(
            event_type=EventType.DOCUMENT_DECLINED,
            signing_session_id=record.provider_session_id,
            document_id=document_id,
            actor=payload.data.signer_email or record.signer_email,
            data={"kind": record.kind, "title": record.title, "reason": payload.data.reason},
            source_module=_SOURCE,
        ))

    async def _on_session_completed(self, payload: WebhookPayload, store: SigningStore) -> None:
        """Completion states that every document in the session is signed."""
        session_id = self._require(payload.session_id, "session_id")
        session = await store.get_or_create_session(session_id)
        session_changed = advance_session(session, SessionStatus.COMPLETED)
        if session_changed:
            session.completed_at = _now()

        documents = await store.documents_for_session(session_id)
        known = {document.provider_document_id for document in documents}
        for document_id in payload.data.document_ids:
            if document_id not in known:
                record = await store.get_or_create_document(document_id)
                record.provider_session_id = session_id
                documents.append(record)

        signed_now: list[str] = []
        for record in documents:
            if advance_document(record, DocumentStatus.SIGNED):
                record.signed_at = record.signed_at or session.completed_at or _now()
                signed_now.append(record.provider_document_id)
                await emit(SystemEvent(
                    event_type=EventType.DOCUMENT_SIGNED,
                    signing_session_id=session_id,
                    document_id=record.provider_document_id,
                    actor=record.signer_email,
                    data={"kind": record.kind, "via": "session.completed"},
                    source_module=_SOURCE,
                ))

        if session_changed:
            logger.info("Signing session %s completed", session_id)
            await emit(SystemEvent(
                event_type=EventType.SESSION_COMPLETED,
                signing_session_id=session_id,
                actor=session.signer_email,
                data={"document_ids": [record.provider_document_id for record in documents]},
                source_module=_SOURCE,
            ))
        elif signed_now:
            logger.info("Session %s already completed, marked %d document(s) signed", session_id, len(signed_now))

    async def _on_session_expired(self, payload: WebhookPayload, store: SigningStore) -> None:
        session_id = self._require(payload.session_id, "session_id")
        session = await store.get_or_create_session(session_id)
        if not advance_session(session, SessionStatus.EXPIRED):
            return

        session.expired_at = _now()
        logger.info("Signing session %s expired, customer may start a new switch", session_id)
        await emit(SystemEvent(
            event_type=EventType.SESSION_EXPIRED,
            signing_session_id=session_id,
            actor=session.signer_email,
            data={"expires_at": session.expires_at.isoformat() if session.expires_at else None},
            source_module=_SOURCE,
        ))


# Module-level singleton
webhook_processor = WebhookProcessor()
