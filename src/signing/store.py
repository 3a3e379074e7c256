"""Persistence of signing status flags.

Only ids and lifecycle state are stored; the provider keeps the documents.
Callbacks may arrive before the trigger path has persisted anything, so
lookups by provider id create missing rows on demand.

Rows read for a state change are locked (SELECT ... FOR UPDATE) until the
caller commits, so two deliveries of the same callback are applied one
after the other and the second sees the first one's result.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.enums import DocumentStatus, SessionStatus
from src.models.signing import SigningDocumentRecord, SigningSessionRecord
from src.schemas.signing import SigningSession, SkribbleDocument

logger = logging.getLogger(__name__)


class SigningStore:
    """Repository over signing_sessions and signing_documents for one DB session."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    # ── Documents ────────────────────────────────────────────────────

    async def get_document(
        self, provider_document_id: str, *, for_update: bool = False
    ) -> SigningDocumentRecord | None:
        query = select(SigningDocumentRecord).where(
            SigningDocumentRecord.provider_document_id == provider_document_id
        )
        if for_update:
            query = query.with_for_update()
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_or_create_document(self, provider_document_id: str) -> SigningDocumentRecord:
        """Locked document row, inserted as pending when missing."""
        record = await self.get_document(provider_document_id, for_update=True)
        if record is not None:
            return record

        logger.info("Creating signing document record %s on first callback", provider_document_id)
        inserted = await self._insert(SigningDocumentRecord(
            provider_document_id=provider_document_id,
            status=DocumentStatus.PENDING.value,
        ))
        if inserted is not None:
            return inserted

        logger.info("Document record %s was created concurrently, re-reading", provider_document_id)
        record = await self.get_document(provider_document_id, for_update=True)
        if record is None:
            msg = f"Signing document record {provider_document_id} vanished after a duplicate insert"
            raise RuntimeError(msg)
        return record

    async def documents_for_session(self, provider_session_id: str) -> list[SigningDocumentRecord]:
        result = await self.db.execute(
            select(SigningDocumentRecord)
            .where(SigningDocumentRecord.provider_session_id == provider_session_id)
            .order_by(SigningDocumentRecord.sequence_order)
            .with_for_update()
        )
        return list(result.scalars().all())

    # ── Sessions ─────────────────────────────────────────────────────

    async def get_session(
        self, provider_session_id: str, *, for_update: bool = False
    ) -> SigningSessionRecord | None:
        query = select(SigningSessionRecord).where(
            SigningSessionRecord.provider_session_id == provider_session_id
        )
        if for_update:
            query = query.with_for_update()
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_or_create_session(self, provider_session_id: str) -> SigningSessionRecord:
        """Locked session row, inserted as active when missing."""
        record = await self.get_session(provider_session_id, for_update=True)
        if record is not None:
            return record

        logger.info("Creating signing session record %s on first callback", provider_session_id)
        inserted = await self._insert(SigningSessionRecord(
            provider_session_id=provider_session_id,
            status=SessionStatus.ACTIVE.value,
        ))
        if inserted is not None:
            return inserted

        logger.info("Session record %s was created concurrently, re-reading", provider_session_id)
        record = await self.get_session(provider_session_id, for_update=True)
        if record is None:
            msg = f"Signing session record {provider_session_id} vanished after a duplicate insert"
            raise RuntimeError(msg)
        return record

    async def _insert[R](self, record: R) -> R | None:
        """Insert inside a savepoint; None when a concurrent insert won the unique key."""
        try:
            async with self.db.begin_nested():
                self.db.add(record)
                await self.db.flush()
        except IntegrityError:
            return None
        return record

    # ── Trigger path ─────────────────────────────────────────────────

    async def record_switch(
        self,
        session: SigningSession,
        documents: list[SkribbleDocument],
        signer_email: str,
    ) -> SigningSessionRecord:
        """Persist a freshly created session and its documents as pending/active.

        Rows a fast callback already created are updated, never duplicated.
        """
        session_record = await self.get_or_create_session(session.id)
        session_record.signing_url = session.signing_url
        session_record.signer_email = signer_email
        session_record.expires_at = session.expires_at

        order_by_id = {ref.document_id: ref.order for ref in session.documents}
        for document in documents:
            record = await self.get_or_create_document(document.id)
            record.provider_session_id = session.id
            record.kind = document.kind.value if document.kind else None
            record.title = document.title
            record.sequence_order = order_by_id.get(document.id)
            record.signer_email = signer_email

        await self.db.flush()
        return session_record
