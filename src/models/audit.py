"""AuditLog model: append-only trail of every workflow and webhook event.

Switch requests, provider calls and inbound callbacks all emit a SystemEvent
which is persisted here. Rows are never updated or deleted.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from src.models.base import Base, TimestampMixin


class AuditLog(TimestampMixin, Base):
    """Immutable audit trail entry."""

    __tablename__ = "audit_log"

    event_type: Mapped[str] = mapped_column(String(100), nullable=False, index=True)

    # Provider ids are opaque strings, not UUIDs
    signing_session_id: Mapped[str | None] = mapped_column(String(100), index=True)
    document_id: Mapped[str | None] = mapped_column(String(100), index=True)
    actor: Mapped[str | None] = mapped_column(String(100), comment="'provider', 'system' or a signer email")

    data: Mapped[dict[str, Any] | None] = mapped_column(JSONB)

    def __repr__(self) -> str:
        return f"<AuditLog event={self.event_type} session={self.signing_session_id}>"
