"""Pydantic schemas for provider-side documents, signers and signing sessions.

Internal vocabulary only; the provider's wire format lives in
src.integrations.skribble.schemas and is mapped onto these.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel

from src.models.enums import DocumentKind, DocumentStatus, SessionStatus, SignatureLevel


class SkribbleSigner(BaseModel):
    """The person who signs. Only qualified signatures are legally valid here."""

    email: str
    first_name: str
    last_name: str
    language: str = "de"
    signature_level: SignatureLevel = SignatureLevel.QES
    idempotency_id: str  # "{role}_{unix ms}"

    model_config = {"frozen": True}

    @field_validator("signature_level")
    @classmethod
    def require_qualified(cls, v: SignatureLevel) -> SignatureLevel:
        if v != SignatureLevel.QES:
            msg = f"Signature level {v.value} is not legally sufficient, QES required"
            raise ValueError(msg)
        return v


class SkribbleDocument(BaseModel):
    """Handle to a document held by the provider."""

    id: str
    title: str
    status: DocumentStatus = DocumentStatus.DRAFT
    kind: DocumentKind | None = None
    signers: list[SkribbleSigner] = Field(default_factory=list)
    download_url: str | None = None
    created_at: datetime | None = None
    signed_at: datetime | None = None


class SessionDocumentRef(BaseModel):
    """A document's slot in a sequential session."""

    document_id: str
    order: int = Field(ge=1)
    title: str = ""
    kind: DocumentKind | None = None


class SigningSession(BaseModel):
    """Sequential signing session; documents are presented in ascending order."""

    id: str
    signing_url: str
    status: SessionStatus = SessionStatus.ACTIVE
    expires_at: datetime | None = None
    documents: list[SessionDocumentRef] = Field(default_factory=list)


class SignedArtifact(BaseModel):
    """Final signed PDF plus its audit-trail metadata."""

    document_id: str
    content: bytes
    metadata: dict[str, Any] = Field(default_factory=dict)
    audit_trail_available: bool = True


class SwitchResult(BaseModel):
    """Outcome of a successful workflow run, camelCase at the HTTP boundary."""

    model_config = {"alias_generator": to_camel, "populate_by_name": True}

    redirect_url: str
    session_id: str
    cancellation_document_id: str
    application_document_id: str
    document_ids: list[str]
    expires_at: datetime | None = None


class WebhookResult(BaseModel):
    """What the webhook processor did with one callback."""

    processed: bool
    action: str
