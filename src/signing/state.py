"""Document and session state machines.

    document: draft → pending → {signed | declined | cancelled}
    session:  active → {completed | expired | cancelled}

Terminal states never move. Re-applying the current state is a no-op, so
duplicate provider callbacks are harmless.
"""

from __future__ import annotations

from typing import Protocol

from src.models.enums import DocumentStatus, SessionStatus

DOCUMENT_TRANSITIONS: dict[DocumentStatus, frozenset[DocumentStatus]] = {
    DocumentStatus.DRAFT: frozenset({
        DocumentStatus.PENDING,
        DocumentStatus.SIGNED,
        DocumentStatus.DECLINED,
        DocumentStatus.CANCELLED,
    }),
    DocumentStatus.PENDING: frozenset({
        DocumentStatus.SIGNED,
        DocumentStatus.DECLINED,
        DocumentStatus.CANCELLED,
    }),
    DocumentStatus.SIGNED: frozenset(),
    DocumentStatus.DECLINED: frozenset(),
    DocumentStatus.CANCELLED: frozenset(),
}

SESSION_TRANSITIONS: dict[SessionStatus, frozenset[SessionStatus]] = {
    SessionStatus.ACTIVE: frozenset({
        SessionStatus.COMPLETED,
        SessionStatus.EXPIRED,
        SessionStatus.CANCELLED,
    }),
    SessionStatus.COMPLETED: frozenset(),
    SessionStatus.EXPIRED: frozenset(),
    SessionStatus.CANCELLED: frozenset(),
}


class _HasStatus(Protocol):
    status: str


def is_terminal_document(status: DocumentStatus) -> bool:
    return not DOCUMENT_TRANSITIONS[status]


def is_terminal_session(status: SessionStatus) -> bool:
    return not SESSION_TRANSITIONS[status]


def can_transition_document(current: DocumentStatus, target: DocumentStatus) -> bool:
    return target in DOCUMENT_TRANSITIONS[current]


def can_transition_session(current: SessionStatus, target: SessionStatus) -> bool:
    return target in SESSION_TRANSITIONS[current]


def advance_document(record: _HasStatus, target: DocumentStatus) -> bool:
    """Move a document record to target if allowed.

    Returns:
        True if the status changed; False for repeats and blocked moves.
    """
    current = DocumentStatus(record.status)
    if current == target or not can_transition_document(current, target):
        return False
    record.status = target.value
    return True


def advance_session(record: _HasStatus, target: SessionStatus) -> bool:
    """Move a session record to target if allowed. Returns True on change."""
    current = SessionStatus(record.status)
    if current == target or not can_transition_session(current, target):
        return False
    record.status = target.value
    return True
