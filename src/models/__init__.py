"""SQLAlchemy ORM models for the switch service.

Import all models here so Alembic and Base.metadata.create_all() discover them.
"""

from __future__ import annotations

from src.models.audit import AuditLog
from src.models.base import Base
from src.models.enums import (
    DocumentKind,
    DocumentStatus,
    SessionStatus,
    SignatureLevel,
    WebhookEventType,
)
from src.models.signing import SigningDocumentRecord, SigningSessionRecord

__all__ = [
    # Base
    "Base",
    # Models
    "AuditLog",
    "SigningDocumentRecord",
    "SigningSessionRecord",
    # Enums
    "DocumentKind",
    "DocumentStatus",
    "SessionStatus",
    "SignatureLevel",
    "WebhookEventType",
]
