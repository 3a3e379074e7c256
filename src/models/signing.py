"""Signing records: persisted status flags for provider documents and sessions.

The provider owns the documents; these rows only mirror the ids and the
lifecycle state so webhooks arriving later can be reconciled.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from src.models.base import Base, TimestampMixin
from src.models.enums import DocumentStatus, SessionStatus


class SigningSessionRecord(TimestampMixin, Base):
    """One sequential signing session (cancellation first, then application)."""

    __tablename__ = "signing_sessions"

    provider_session_id: Mapped[str] = mapped_column(String(100), nullable=False, unique=True, index=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=SessionStatus.ACTIVE.value)
    signing_url: Mapped[str | None] = mapped_column(String(1000))
    signer_email: Mapped[str | None] = mapped_column(String(255))

    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    expired_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    def __repr__(self) -> str:
        return f"<SigningSessionRecord provider_id={self.provider_session_id} status={self.status}>"


class SigningDocumentRecord(TimestampMixin, Base):
    """A document uploaded to the provider as part of a switch."""

    __tablename__ = "signing_documents"

    provider_document_id: Mapped[str] = mapped_column(String(100), nullable=False, unique=True, index=True)
    provider_session_id: Mapped[str | None] = mapped_column(
        String(100), index=True, comment="Set once the document joins a session"
    )
    kind: Mapped[str | None] = mapped_column(String(20), comment="cancellation | application")
    title: Mapped[str | None] = mapped_column(String(255))
    sequence_order: Mapped[int | None] = mapped_column(Integer, comment="Position in the signing session")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=DocumentStatus.PENDING.value)

    signer_email: Mapped[str | None] = mapped_column(String(255))
    signed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    declined_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    def __repr__(self) -> str:
        return f"<SigningDocumentRecord provider_id={self.provider_document_id} status={self.status}>"
