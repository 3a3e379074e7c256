"""Tests for the switch workflow.

Covers:
- Happy path: two documents rendered and uploaded, one ordered session
- Validation failure stops before any provider call
- Partial failure reports orphaned provider documents
- Overall time ceiling → WorkflowTimeoutError
- Persistence through the signing store
"""

from __future__ import annotations

import asyncio
from datetime import date, datetime, timezone
from decimal import Decimal
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from src.config import WorkflowSettings, settings
from src.documents.composer import DocumentComposer
from src.errors import (
    ProviderDocumentError,
    TemplateMissingError,
    ValidationFailedError,
    WorkflowTimeoutError,
)
from src.models.enums import DocumentKind, DocumentStatus
from src.schemas.signing import SigningSession, SkribbleDocument
from src.schemas.switch import SelectedInsurance, UserFormData
from src.signing.workflow import SwitchWorkflow

TEMPLATE_PATH = Path(settings.workflow.application_template_path)
TODAY = date(2024, 10, 15)


@pytest.fixture(autouse=True)
def _mock_emit():
    with patch("src.signing.workflow.emit", new_callable=AsyncMock) as mock_emit:
        yield mock_emit


def _emitted(mock_emit: AsyncMock) -> list[str]:
    return [call.args[0].event_type.value for call in mock_emit.call_args_list]


USER = UserFormData(
    first_name="Anna",
    last_name="Muster",
    birth_date=date(1985, 4, 12),
    email="anna.muster@example.ch",
    address="Bahnhofstrasse 1",
    postal_code="8001",
    city="Zürich",
    current_insurer="CSS",
    insurance_start_date=date(2025, 1, 1),
)
INSURANCE = SelectedInsurance(insurer="Sanitas", tariff_name="Compact One", premium=Decimal("350.00"))


class FakeOrchestrator:
    """Stands in for SigningOrchestrator; records what the workflow asks for."""

    def __init__(self, fail_on: int | None = None, delay: float = 0.0) -> None:
        self.fail_on = fail_on
        self.delay = delay
        self.uploads: list[tuple[str, bytes, DocumentKind]] = []
        self.sessions: list[list] = []

    async def create_document(self, title, pdf_bytes, signer, document_type):
        if self.delay:
            await asyncio.sleep(self.delay)
        number = len(self.uploads) + 1
        if number == self.fail_on:
            raise ProviderDocumentError("upload rejected", status_code=422, body="bad pdf")
        self.uploads.append((title, pdf_bytes, document_type))
        return SkribbleDocument(id=f"doc-{number}", title=title, status=DocumentStatus.PENDING, kind=document_type)

    async def create_sequential_session(self, documents, user):
        ordered = sorted(documents, key=lambda ref: ref.order)
        self.sessions.append(ordered)
        return SigningSession(
            id="sess-1",
            signing_url="https://sign.test/s/1",
            expires_at=datetime(2024, 11, 14, tzinfo=timezone.utc),
            documents=ordered,
        )


def _workflow(orchestrator: FakeOrchestrator, **config) -> SwitchWorkflow:
    return SwitchWorkflow(
        orchestrator,  # type: ignore[arg-type]
        DocumentComposer(TEMPLATE_PATH),
        WorkflowSettings(**config),
    )


class TestHappyPath:
    @pytest.mark.asyncio()
    async def test_switch_produces_ordered_session(self, _mock_emit):
        orchestrator = FakeOrchestrator()

        result = await _workflow(orchestrator).process_switch(USER, INSURANCE, today=TODAY)

        assert result.redirect_url == "https://sign.test/s/1"
        assert result.session_id == "sess-1"
        assert result.cancellation_document_id == "doc-1"
        assert result.application_document_id == "doc-2"
        assert result.document_ids == ["doc-1", "doc-2"]

        kinds = [kind for _, _, kind in orchestrator.uploads]
        assert kinds == [DocumentKind.CANCELLATION, DocumentKind.APPLICATION]
        assert all(content.startswith(b"%PDF") for _, content, _ in orchestrator.uploads)
        assert [ref.order for ref in orchestrator.sessions[0]] == [1, 2]

        events = _emitted(_mock_emit)
        assert events[0] == "switch.requested"
        assert events.count("document.rendered") == 2
        assert events[-1] == "switch.completed"

    @pytest.mark.asyncio()
    async def test_result_is_camel_case_on_the_wire(self):
        result = await _workflow(FakeOrchestrator()).process_switch(USER, INSURANCE, today=TODAY)
        body = result.model_dump(mode="json", by_alias=True)
        assert body["redirectUrl"] == "https://sign.test/s/1"
        assert body["documentIds"] == ["doc-1", "doc-2"]

    @pytest.mark.asyncio()
    async def test_store_records_session_and_documents(self):
        store = AsyncMock()

        await _workflow(FakeOrchestrator()).process_switch(USER, INSURANCE, store=store, today=TODAY)

        store.record_switch.assert_awaited_once()
        session, documents, email = store.record_switch.await_args.args
        assert session.id == "sess-1"
        assert [document.id for document in documents] == ["doc-1", "doc-2"]
        assert email == "anna.muster@example.ch"

    @pytest.mark.asyncio()
    async def test_late_request_emits_advisory_but_succeeds(self, _mock_emit):
        await _workflow(FakeOrchestrator()).process_switch(USER, INSURANCE, today=date(2024, 12, 10))
        assert "compliance.advisory" in _emitted(_mock_emit)


class TestFailures:
    @pytest.mark.asyncio()
    async def test_validation_failure_makes_no_provider_calls(self, _mock_emit):
        orchestrator = FakeOrchestrator()
        invalid = USER.model_copy(update={"email": "", "postal_code": ""})

        with pytest.raises(ValidationFailedError) as exc_info:
            await _workflow(orchestrator).process_switch(invalid, INSURANCE, today=TODAY)

        assert len(exc_info.value.violations) == 2
        assert orchestrator.uploads == []
        assert orchestrator.sessions == []
        events = _emitted(_mock_emit)
        assert "switch.validation_failed" in events
        assert "switch.failed" not in events

    @pytest.mark.asyncio()
    async def test_second_upload_failure_reports_orphan(self, _mock_emit):
        orchestrator = FakeOrchestrator(fail_on=2)

        with pytest.raises(ProviderDocumentError):
            await _workflow(orchestrator).process_switch(USER, INSURANCE, today=TODAY)

        assert orchestrator.sessions == []
        failed = _mock_emit.call_args.args[0]
        assert failed.event_type.value == "switch.failed"
        assert failed.data["code"] == "PROVIDER_ERROR"
        assert failed.data["orphaned_document_ids"] == ["doc-1"]

    @pytest.mark.asyncio()
    async def test_missing_template_fails_before_upload(self, tmp_path):
        orchestrator = FakeOrchestrator()
        composer = DocumentComposer(tmp_path / "missing.pdf")
        workflow = SwitchWorkflow(orchestrator, composer, WorkflowSettings())  # type: ignore[arg-type]

        with pytest.raises(TemplateMissingError) as exc_info:
            await workflow.process_switch(USER, INSURANCE, today=TODAY)

        assert exc_info.value.code == "PROCESSING_ERROR"
        assert orchestrator.uploads == []

    @pytest.mark.asyncio()
    async def test_overall_timeout(self, _mock_emit):
        orchestrator = FakeOrchestrator(delay=1.0)

        with pytest.raises(WorkflowTimeoutError):
            await _workflow(orchestrator, workflow_timeout=0.05).process_switch(USER, INSURANCE, today=TODAY)

        failed = _mock_emit.call_args.args[0]
        assert failed.data["code"] == "TIMEOUT_ERROR"
