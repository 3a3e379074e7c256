"""SystemEvent schema: the event type that flows through the switch service.

Every workflow step, provider call and webhook emits a SystemEvent.
Subscribers (audit logger, alert engine) consume them asynchronously.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class EventType(str, Enum):
    """All event types emitted by the system."""

    # Switch workflow
    SWITCH_REQUESTED = "switch.requested"
    SWITCH_VALIDATION_FAILED = "switch.validation_failed"
    SWITCH_COMPLETED = "switch.completed"
    SWITCH_FAILED = "switch.failed"
    COMPLIANCE_ADVISORY = "compliance.advisory"

    # Documents
    DOCUMENT_RENDERED = "document.rendered"
    DOCUMENT_CREATED = "document.created"
    DOCUMENT_SIGNED = "document.signed"
    DOCUMENT_DECLINED = "document.declined"

    # Signing sessions
    SESSION_CREATED = "session.created"
    SESSION_COMPLETED = "session.completed"
    SESSION_EXPIRED = "session.expired"

    # Provider webhooks
    WEBHOOK_RECEIVED = "webhook.received"
    WEBHOOK_REJECTED = "webhook.rejected"
    WEBHOOK_IGNORED = "webhook.ignored"

    # External APIs
    EXTERNAL_API_CALL = "external.api_call"
    EXTERNAL_API_RESPONSE = "external.api_response"

    # System
    SYSTEM_STARTUP = "system.startup"
    SYSTEM_SHUTDOWN = "system.shutdown"
    SYSTEM_ERROR = "system.error"


class SystemEvent(BaseModel):
    """Core event that flows through the switch service.

    Immutable once created. Consumed by:
    - audit_on_event → writes to audit_log table
    - AlertEngine → checks rules and notifies operators
    """

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    event_type: EventType
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    # Context (optional, not every event belongs to a session or document)
    signing_session_id: str | None = None
    document_id: str | None = None
    actor: str | None = None

    # Flexible payload
    data: dict[str, Any] = Field(default_factory=dict)

    # Metadata
    source_module: str | None = Field(default=None, description="Module that emitted this event")

    model_config = {"frozen": True}
