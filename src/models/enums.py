"""Domain enums used across SQLAlchemy models and Pydantic schemas.

All enums use str mixin for JSON serialization and plain VARCHAR storage.
"""

from __future__ import annotations

from enum import Enum


class DocumentKind(str, Enum):
    """The two documents produced by one switch, in signing order."""

    CANCELLATION = "cancellation"
    APPLICATION = "application"


class DocumentStatus(str, Enum):
    """Provider-side document lifecycle: draft → pending → terminal."""

    DRAFT = "draft"
    PENDING = "pending"
    SIGNED = "signed"
    DECLINED = "declined"
    CANCELLED = "cancelled"


class SessionStatus(str, Enum):
    """Signing session lifecycle: active → terminal."""

    ACTIVE = "active"
    COMPLETED = "completed"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class SignatureLevel(str, Enum):
    """Electronic signature assurance levels (ZertES / eIDAS)."""

    SES = "SES"  # simple
    AES = "AES"  # advanced
    QES = "QES"  # qualified, required for KVG paperwork


class WebhookEventType(str, Enum):
    """Provider callback vocabulary we act on. Anything else is acknowledged only."""

    DOCUMENT_SIGNED = "document.signed"
    DOCUMENT_DECLINED = "document.declined"
    SESSION_COMPLETED = "session.completed"
    SESSION_EXPIRED = "session.expired"
