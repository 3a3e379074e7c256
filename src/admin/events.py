"""In-process event bus for SystemEvents.

Workflow steps, provider calls and webhooks publish events here; the audit
subscriber and the alert engine consume them in a background worker so a
slow subscriber never delays a customer request or a provider callback.

Usage:
    from src.admin.events import emit

    await emit(SystemEvent(
        event_type=EventType.DOCUMENT_SIGNED,
        document_id=record.provider_document_id,
        data={"kind": "cancellation"},
    ))

    # At startup:
    subscribe(audit_on_event)                                   # all events
    subscribe(alert_engine.on_event, alert_engine.watched_types)  # some events
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any

from src.schemas.events import EventType, SystemEvent

logger = logging.getLogger(__name__)

EventHandler = Callable[[SystemEvent], Coroutine[Any, Any, None]]

# ── Internal state ───────────────────────────────────────────────────

_subscribers: list[EventHandler] = []
_type_subscribers: dict[EventType, list[EventHandler]] = {}
_queue: asyncio.Queue[SystemEvent] | None = None
_worker_task: asyncio.Task[None] | None = None


# ── Subscription ─────────────────────────────────────────────────────


def subscribe(handler: EventHandler, event_types: list[EventType] | None = None) -> None:
    """Register an async handler for all events, or only for event_types."""
    if event_types is None:
        _subscribers.append(handler)
        logger.info("Registered global event subscriber: %s", getattr(handler, "__name__", handler))
        return
    for et in event_types:
        _type_subscribers.setdefault(et, []).append(handler)
    logger.info(
        "Registered event subscriber %s for: %s",
        getattr(handler, "__name__", handler),
        sorted(t.value for t in event_types),
    )


def unsubscribe(handler: EventHandler) -> None:
    if handler in _subscribers:
        _subscribers.remove(handler)
    for handlers in _type_subscribers.values():
        if handler in handlers:
            handlers.remove(handler)


def clear_subscribers() -> None:
    """Drop every registration. Used on shutdown so a restart starts clean."""
    _subscribers.clear()
    _type_subscribers.clear()


def handlers_for(event_type: EventType) -> list[EventHandler]:
    return [*_subscribers, *_type_subscribers.get(event_type, [])]


# ── Publishing ───────────────────────────────────────────────────────


async def emit(event: SystemEvent) -> None:
    """Queue an event for the background worker. Never blocks on subscribers."""
    global _queue
    if _queue is None:
        _queue = asyncio.Queue()
        _ensure_worker()

    await _queue.put(event)
    logger.debug(
        "Event emitted: %s (session=%s, document=%s)",
        event.event_type.value,
        event.signing_session_id,
        event.document_id,
    )


async def dispatch(event: SystemEvent) -> None:
    """Deliver one event to every matching handler, isolating failures."""
    handlers = handlers_for(event.event_type)
    if not handlers:
        return

    results = await asyncio.gather(*(handler(event) for handler in handlers), return_exceptions=True)
    for handler, result in zip(handlers, results, strict=True):
        if isinstance(result, Exception):
            logger.error(
                "Event handler %s failed for %s: %s",
                getattr(handler, "__name__", handler),
                event.event_type.value,
                result,
            )


# ── Background worker ────────────────────────────────────────────────


def _ensure_worker() -> None:
    global _worker_task
    if _worker_task is None or _worker_task.done():
        _worker_task = asyncio.create_task(_event_worker())
        logger.info("Event worker started")


async def _event_worker() -> None:
    """Drain the queue forever; one failing event never stops the worker."""
    if _queue is None:
        return

    while True:
        try:
            event = await _queue.get()
        except asyncio.CancelledError:
            logger.info("Event worker shutting down")
            break
        try:
            await dispatch(event)
        except Exception:
            logger.exception("Error dispatching %s", event.event_type.value)
        finally:
            _queue.task_done()


# ── Lifecycle ────────────────────────────────────────────────────────


async def start_event_system() -> None:
    """Create the queue and worker. Call during FastAPI lifespan startup."""
    global _queue
    _queue = asyncio.Queue()
    _ensure_worker()
    logger.info(
        "Event system started with %d global + %d typed subscribers",
        len(_subscribers),
        sum(len(v) for v in _type_subscribers.values()),
    )


async def stop_event_system() -> None:
    """Drain pending events, then stop the worker. Call during shutdown."""
    global _worker_task, _queue

    if _queue is not None:
        await _queue.join()

    if _worker_task is not None and not _worker_task.done():
        _worker_task.cancel()
        try:
            await _worker_task
        except asyncio.CancelledError:
            pass

    _worker_task = None
    _queue = None
    logger.info("Event system stopped")
