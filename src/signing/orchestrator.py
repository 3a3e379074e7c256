"""Signing orchestrator: documents and sequential sessions at the provider.

Shapes the jurisdiction-specific payloads (Swiss KVG, qualified signatures,
10-year retention) and maps provider answers onto internal schemas.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx

from src.admin.events import emit
from src.config import SkribbleSettings, WorkflowSettings, settings
from src.errors import (
    ConfigError,
    ProviderAuthError,
    ProviderDocumentError,
    ProviderError,
    ProviderQueryError,
    ProviderSessionError,
    WorkflowTimeoutError,
)
from src.integrations.skribble.client import SkribbleClient
from src.integrations.skribble.schemas import (
    WireDocument,
    WireSession,
    synthesized_audit_metadata,
    to_document_status,
    to_session_status,
)
from src.models.enums import DocumentKind
from src.schemas.events import EventType, SystemEvent
from src.schemas.signing import (
    SessionDocumentRef,
    SignedArtifact,
    SigningSession,
    SkribbleDocument,
    SkribbleSigner,
)
from src.schemas.switch import UserFormData

logger = logging.getLogger(__name__)

_SOURCE = "signing.orchestrator"

LEGAL_FRAMEWORK = "CH-KVG"
LOCALE = "de-CH"
TIMEZONE = "Europe/Zurich"

SIGNING_INSTRUCTIONS: dict[DocumentKind, str] = {
    DocumentKind.CANCELLATION: (
        "Bitte unterzeichnen Sie zuerst die Kündigung Ihrer bisherigen Grundversicherung."
    ),
    DocumentKind.APPLICATION: (
        "Bitte unterzeichnen Sie anschliessend den Antrag für Ihre neue Krankenversicherung."
    ),
}


def build_signer(user: UserFormData, role: str = "customer") -> SkribbleSigner:
    """Qualified-signature signer with a `{role}_{unix ms}` idempotency id."""
    return SkribbleSigner(
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        idempotency_id=f"{role}_{int(time.time() * 1000)}",
    )


def _signer_payload(signer: SkribbleSigner) -> dict[str, Any]:
    return {
        "email": signer.email,
        "first_name": signer.first_name,
        "last_name": signer.last_name,
        "language": signer.language,
        "signature_level": signer.signature_level.value,
        "idempotency_id": signer.idempotency_id,
    }


class SigningOrchestrator:
    """Creates provider documents and sessions for one configured account."""

    def __init__(
        self,
        config: SkribbleSettings,
        workflow: WorkflowSettings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not config.skribble_api_key:
            msg = "Skribble API key is not configured"
            raise ConfigError(msg)
        self._config = config
        self._workflow = workflow or settings.workflow
        self._client = SkribbleClient(config, transport=transport)

    @property
    def client(self) -> SkribbleClient:
        return self._client

    # ── Documents ────────────────────────────────────────────────────

    def document_settings(self) -> dict[str, Any]:
        return {
            "retention_years": self._workflow.retention_years,
            "expires_in_days": self._workflow.signing_expiry_days,
            "allow_decline": True,
            "legal_framework": LEGAL_FRAMEWORK,
        }

    async def create_document(
        self,
        title: str,
        pdf_bytes: bytes,
        signer: SkribbleSigner,
        document_type: DocumentKind,
    ) -> SkribbleDocument:
        """Upload one PDF for qualified signature.

        Raises:
            ProviderDocumentError: On any non-2xx answer, with the raw body.
        """
        metadata = {
            "title": title,
            "document_type": document_type.value,
            "signers": [_signer_payload(signer)],
            "settings": self.document_settings(),
        }
        raw = await self._client.upload_document(title, pdf_bytes, metadata, error_cls=ProviderDocumentError)
        wire = self._parse(WireDocument, raw, ProviderDocumentError)

        document = SkribbleDocument(
            id=wire.id,
            title=wire.title or title,
            status=to_document_status(wire.status),
            kind=document_type,
            signers=[signer],
            download_url=wire.download_url,
            created_at=wire.created_at,
        )
        logger.info("Created %s document %s", document_type.value, document.id)
        await emit(SystemEvent(
            event_type=EventType.DOCUMENT_CREATED,
            document_id=document.id,
            data={"kind": document_type.value, "size": len(pdf_bytes)},
            source_module=_SOURCE,
        ))
        return document

    # ── Sessions ─────────────────────────────────────────────────────

    def _redirect_urls(self) -> dict[str, str]:
        base = self._workflow.public_base_url.rstrip("/")
        return {
            "success_url": f"{base}/insurance/signing/success",
            "error_url": f"{base}/insurance/signing/error",
            "cancel_url": f"{base}/insurance/signing/cancelled",
            "decline_url": f"{base}/insurance/signing/declined",
        }

    def session_payload(self, documents: Sequence[SessionDocumentRef], user: UserFormData) -> dict[str, Any]:
        """Sequential session request; documents must already be sorted."""
        return {
            "title": f"Krankenversicherungswechsel {user.first_name} {user.last_name}",
            "workflow": "sequential",
            "signer": {
                "email": user.email,
                "first_name": user.first_name,
                "last_name": user.last_name,
                "language": "de",
                "signature_level": "QES",
            },
            "documents": [
                {
                    "document_id": ref.document_id,
                    "order": ref.order,
                    "title": ref.title,
                    "instructions": SIGNING_INSTRUCTIONS.get(ref.kind, "Bitte unterzeichnen Sie dieses Dokument."),
                }
                for ref in documents
            ],
            "settings": {
                "locale": LOCALE,
                "timezone": TIMEZONE,
                **self._redirect_urls(),
                "reminders": {"frequency": "daily", "max_count": self._workflow.reminder_max_count},
                "expires_in_days": self._workflow.signing_expiry_days,
            },
        }

    async def create_sequential_session(
        self,
        documents: Sequence[SessionDocumentRef],
        user: UserFormData,
    ) -> SigningSession:
        """Create a session where order 2 only opens after order 1 is signed.

        The sort here is what guarantees the order, whatever the caller passes.

        Raises:
            ProviderSessionError: On any non-2xx answer.
        """
        ordered = sorted(documents, key=lambda ref: ref.order)
        raw = await self._client.create_signing_session(
            self.session_payload(ordered, user),
            error_cls=ProviderSessionError,
        )
        wire = self._parse(WireSession, raw, ProviderSessionError)

        expires_at = wire.expires_at or datetime.now(timezone.utc) + timedelta(
            days=self._workflow.signing_expiry_days
        )
        session = SigningSession(
            id=wire.id,
            signing_url=wire.signing_url,
            status=to_session_status(wire.status),
            expires_at=expires_at,
            documents=ordered,
        )
        logger.info("Created signing session %s with %d documents", session.id, len(ordered))
        await emit(SystemEvent(
            event_type=EventType.SESSION_CREATED,
            signing_session_id=session.id,
            data={"document_ids": [ref.document_id for ref in ordered]},
            source_module=_SOURCE,
        ))
        return session

    # ── Queries ──────────────────────────────────────────────────────

    async def get_document_status(self, document_id: str) -> SkribbleDocument:
        """Fresh remote read, never cached."""
        raw = await self._client.get_document(document_id, error_cls=ProviderQueryError)
        wire = self._parse(WireDocument, raw, ProviderQueryError)
        return SkribbleDocument(
            id=wire.id,
            title=wire.title,
            status=to_document_status(wire.status),
            download_url=wire.download_url,
            created_at=wire.created_at,
            signed_at=wire.signed_at,
        )

    async def get_session_status(self, session_id: str) -> SigningSession:
        """Fresh remote read, never cached."""
        raw = await self._client.get_signing_session(session_id, error_cls=ProviderQueryError)
        wire = self._parse(WireSession, raw, ProviderQueryError)
        return SigningSession(
            id=wire.id,
            signing_url=wire.signing_url,
            status=to_session_status(wire.status),
            expires_at=wire.expires_at,
            documents=sorted(
                (SessionDocumentRef(document_id=d.document_id, order=d.order, title=d.title) for d in wire.documents),
                key=lambda ref: ref.order,
            ),
        )

    async def download_signed_document(self, document_id: str) -> SignedArtifact:
        """Signed PDF plus audit trail.

        The PDF is what matters: if only the audit trail fails, minimal
        metadata is synthesized instead of failing the download.
        """
        content = await self._client.download_content(document_id, error_cls=ProviderQueryError)
        try:
            metadata = await self._client.get_audit_trail(document_id, error_cls=ProviderQueryError)
            available = True
        except (ProviderError, ProviderAuthError, WorkflowTimeoutError) as exc:
            logger.warning("Audit trail for %s unavailable, using synthesized metadata: %s", document_id, exc)
            metadata = synthesized_audit_metadata(document_id, str(exc))
            available = False
        return SignedArtifact(
            document_id=document_id,
            content=content,
            metadata=metadata,
            audit_trail_available=available,
        )

    async def test_connection(self) -> bool:
        return await self._client.ping()

    # ── Helpers ──────────────────────────────────────────────────────

    @staticmethod
    def _parse[T](model: type[T], raw: Any, error_cls: type[ProviderError]) -> T:
        """Validate a provider answer; a 2xx with an unusable body is still a provider error."""
        try:
            return model.model_validate(raw)  # type: ignore[attr-defined]
        except ValueError as exc:
            msg = f"Unexpected Skribble response: {exc}"
            raise error_cls(msg, body=str(raw)[:500]) from exc


def build_orchestrator(
    config: SkribbleSettings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> SigningOrchestrator:
    """Factory used at startup; fails fast with ConfigError when unconfigured."""
    return SigningOrchestrator(config or settings.skribble, settings.workflow, transport=transport)
