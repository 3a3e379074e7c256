"""Audit log subscriber: persists every SystemEvent to the audit_log table.

Registered as a global subscriber (receives ALL events). Signed KVG
paperwork must be traceable, so this trail covers every workflow step,
provider call and callback.

Never raises. Failures are logged but never propagate to the event system.
"""

from __future__ import annotations

import logging

from src.db.engine import async_session_factory
from src.models.audit import AuditLog
from src.schemas.events import SystemEvent

logger = logging.getLogger(__name__)


def to_audit_row(event: SystemEvent) -> AuditLog:
    """Map an event onto an audit row; the source module travels in data."""
    data = dict(event.data)
    if event.source_module:
        data.setdefault("source_module", event.source_module)
    return AuditLog(
        event_type=event.event_type.value,
        signing_session_id=event.signing_session_id,
        document_id=event.document_id,
        actor=event.actor,
        data=data,
    )


async def audit_on_event(event: SystemEvent) -> None:
    """Write a SystemEvent to the audit_log table.

    Failures are logged and swallowed; audit logging must never
    crash the switch workflow or a webhook.
    """
    try:
        async with async_session_factory() as db:
            db.add(to_audit_row(event))
            await db.commit()
    except Exception:
        logger.exception(
            "Failed to persist audit event: %s (session=%s, document=%s)",
            event.event_type.value,
            event.signing_session_id,
            event.document_id,
        )
