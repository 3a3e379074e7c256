"""Alert engine: turns signing problems into German operator notifications.

Rules decide which events deserve a human look (declined signatures,
expired sessions, failed switches, rejected webhooks). Delivery goes
through an injected send function; by default alerts are posted as JSON
to the configured ops webhook with httpx.

Never raises. Delivery failures are logged but never reach the event system.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from typing import Any

import httpx

from src.config import settings
from src.schemas.events import EventType, SystemEvent

logger = logging.getLogger(__name__)

SendFn = Callable[[str, str], Coroutine[Any, Any, None]]


@dataclass(frozen=True)
class AlertRule:
    """Maps an event condition to an operator message."""

    name: str
    event_types: list[EventType]
    condition: Callable[[SystemEvent], bool]
    template: str  # format string over event.data plus context keys
    level: str  # "info", "warning", "critical"


ALERT_RULES: list[AlertRule] = [
    AlertRule(
        name="Dokument abgelehnt",
        event_types=[EventType.DOCUMENT_DECLINED],
        condition=lambda _: True,
        template=(
            "Dokument abgelehnt\n"
            "Dokument: {document_id} ({kind})\n"
            "Session: {signing_session_id}\n"
            "Kunde: {actor}"
        ),
        level="warning",
    ),
    AlertRule(
        name="Signatur-Session abgelaufen",
        event_types=[EventType.SESSION_EXPIRED],
        condition=lambda _: True,
        template=(
            "Signatur-Session abgelaufen\n"
            "Session: {signing_session_id}\n"
            "Kunde: {actor}\n"
            "Ein neuer Wechsel kann gestartet werden."
        ),
        level="info",
    ),
    AlertRule(
        name="Wechsel fehlgeschlagen",
        event_types=[EventType.SWITCH_FAILED],
        # Timeouts are retried by the customer; only alert on other failures
        condition=lambda e: e.data.get("code") != "TIMEOUT_ERROR",
        template=(
            "Versicherungswechsel fehlgeschlagen\n"
            "Code: {code}\n"
            "Fehler: {message}\n"
            "Verwaiste Dokumente: {orphaned_document_ids}"
        ),
        level="critical",
    ),
    AlertRule(
        name="Webhook abgewiesen",
        event_types=[EventType.WEBHOOK_REJECTED],
        condition=lambda _: True,
        template=(
            "Skribble-Webhook mit ungültiger Signatur abgewiesen\n"
            "Grund: {reason}"
        ),
        level="critical",
    ),
    AlertRule(
        name="Systemfehler",
        event_types=[EventType.SYSTEM_ERROR],
        condition=lambda _: True,
        template=(
            "Systemfehler\n"
            "Fehler: {error}\n"
            "Modul: {source_module}"
        ),
        level="critical",
    ),
]


async def post_to_ops_webhook(level: str, message: str) -> None:
    """Default delivery: JSON POST to the ops webhook, if one is configured."""
    url = settings.alerts.ops_webhook_url
    if not url:
        logger.info("Alert (%s, no ops webhook configured): %s", level, message)
        return
    async with httpx.AsyncClient(timeout=httpx.Timeout(10.0, connect=5.0)) as client:
        response = await client.post(url, json={"level": level, "text": message})
        response.raise_for_status()


class AlertEngine:
    """Evaluates events against ALERT_RULES and pushes matching alerts."""

    def __init__(self, send_fn: SendFn | None = None) -> None:
        self._send_fn: SendFn = send_fn or post_to_ops_webhook

    @property
    def watched_types(self) -> list[EventType]:
        """Event types this engine cares about, for targeted subscription."""
        types: set[EventType] = set()
        for rule in ALERT_RULES:
            types.update(rule.event_types)
        return list(types)

    def set_send_fn(self, fn: SendFn) -> None:
        self._send_fn = fn

    def render(self, rule: AlertRule, event: SystemEvent) -> str:
        ctx: dict[str, Any] = {
            "signing_session_id": event.signing_session_id or "-",
            "document_id": event.document_id or "-",
            "actor": event.actor or "-",
            "source_module": event.source_module or "-",
        }
        ctx.update({k: ("-" if v is None else v) for k, v in event.data.items()})
        try:
            return rule.template.format(**ctx)
        except (KeyError, IndexError, ValueError):
            # Missing keys in template, send what we have
            return f"{rule.name}\n\n(unvollständige Daten: {ctx})"

    async def on_event(self, event: SystemEvent) -> None:
        """Evaluate one event against every rule. Never raises."""
        for rule in ALERT_RULES:
            if event.event_type not in rule.event_types:
                continue
            try:
                if not rule.condition(event):
                    continue
            except Exception:
                logger.exception("Alert rule condition failed: %s", rule.name)
                continue

            message = self.render(rule, event)
            try:
                await self._send_fn(rule.level, message)
            except Exception:
                logger.exception("Failed to deliver alert %s", rule.name)


# Module-level singleton
alert_engine = AlertEngine()
