"""Pydantic schemas for the Skribble e-signature API wire format.

The provider answers with snake_case JSON and is loose about key names
across API versions, so ids and URLs accept a few aliases. Anything we do
not read is ignored.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, Field

from src.models.enums import DocumentStatus, SessionStatus

logger = logging.getLogger(__name__)

_WIRE_CONFIG = {"extra": "ignore", "populate_by_name": True}


class WireDocument(BaseModel):
    """Document resource as returned by upload and status endpoints."""

    model_config = _WIRE_CONFIG

    id: str = Field(validation_alias=AliasChoices("id", "document_id"))
    title: str = ""
    status: str = "draft"
    download_url: str | None = None
    created_at: datetime | None = None
    signed_at: datetime | None = None


class WireSessionDocument(BaseModel):
    model_config = _WIRE_CONFIG

    document_id: str = Field(validation_alias=AliasChoices("document_id", "id"))
    order: int = 1
    title: str = ""


class WireSession(BaseModel):
    """Signing session resource."""

    model_config = _WIRE_CONFIG

    id: str = Field(validation_alias=AliasChoices("id", "session_id"))
    signing_url: str = Field(default="", validation_alias=AliasChoices("signing_url", "sign_url", "url"))
    status: str = "active"
    expires_at: datetime | None = None
    documents: list[WireSessionDocument] = Field(default_factory=list)


class WebhookData(BaseModel):
    """`data` object of a webhook callback. Only the ids are guaranteed."""

    model_config = _WIRE_CONFIG

    document_id: str | None = None
    session_id: str | None = None
    id: str | None = None
    document_ids: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("document_ids", "completed_documents"),
    )
    signer_email: str | None = None
    signed_at: datetime | None = None
    declined_at: datetime | None = None
    reason: str | None = None


class WebhookPayload(BaseModel):
    """Webhook envelope: `{event_type, data: {...}}`."""

    model_config = _WIRE_CONFIG

    event_type: str
    data: WebhookData = Field(default_factory=WebhookData)
    timestamp: datetime | None = None

    # A bare `data.id` names the event's subject, so it only stands in for
    # the id of the matching kind.

    @property
    def document_id(self) -> str | None:
        if self.data.document_id:
            return self.data.document_id
        return self.data.id if self.event_type.startswith("document.") else None

    @property
    def session_id(self) -> str | None:
        if self.data.session_id:
            return self.data.session_id
        return self.data.id if self.event_type.startswith("session.") else None


# ── Status vocabulary ────────────────────────────────────────────────

DOCUMENT_STATUS_MAP: dict[str, DocumentStatus] = {
    "draft": DocumentStatus.DRAFT,
    "created": DocumentStatus.DRAFT,
    "open": DocumentStatus.PENDING,
    "pending": DocumentStatus.PENDING,
    "signing": DocumentStatus.PENDING,
    "signed": DocumentStatus.SIGNED,
    "completed": DocumentStatus.SIGNED,
    "declined": DocumentStatus.DECLINED,
    "cancelled": DocumentStatus.CANCELLED,
    "withdrawn": DocumentStatus.CANCELLED,
}

SESSION_STATUS_MAP: dict[str, SessionStatus] = {
    "active": SessionStatus.ACTIVE,
    "open": SessionStatus.ACTIVE,
    "completed": SessionStatus.COMPLETED,
    "expired": SessionStatus.EXPIRED,
    "cancelled": SessionStatus.CANCELLED,
    "withdrawn": SessionStatus.CANCELLED,
}


def to_document_status(raw: str) -> DocumentStatus:
    """Map a provider document status; unknown values count as pending."""
    status = DOCUMENT_STATUS_MAP.get(raw.lower())
    if status is None:
        logger.warning("Unknown provider document status %r, treating as pending", raw)
        return DocumentStatus.PENDING
    return status


def to_session_status(raw: str) -> SessionStatus:
    """Map a provider session status; unknown values count as active."""
    status = SESSION_STATUS_MAP.get(raw.lower())
    if status is None:
        logger.warning("Unknown provider session status %r, treating as active", raw)
        return SessionStatus.ACTIVE
    return status


def synthesized_audit_metadata(document_id: str, reason: str) -> dict[str, Any]:
    """Minimal metadata used when the audit trail cannot be fetched."""
    return {
        "document_id": document_id,
        "audit_trail": None,
        "audit_trail_error": reason,
        "signature_level": "QES",
        "legal_framework": "CH-KVG",
    }
