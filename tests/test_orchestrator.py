"""Tests for the signing orchestrator: payload shaping and response mapping."""

from __future__ import annotations

import json
from datetime import date
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from src.config import SkribbleSettings, WorkflowSettings
from src.errors import (
    ConfigError,
    ProviderAuthError,
    ProviderDocumentError,
    ProviderQueryError,
    ProviderSessionError,
)
from src.models.enums import DocumentKind, DocumentStatus, SessionStatus, SignatureLevel
from src.schemas.signing import SessionDocumentRef
from src.schemas.switch import UserFormData
from src.signing.orchestrator import LEGAL_FRAMEWORK, SigningOrchestrator, build_signer


@pytest.fixture(autouse=True)
def _mock_emit():
    with (
        patch("src.signing.orchestrator.emit", new_callable=AsyncMock) as mock_emit,
        patch("src.integrations.skribble.client.emit", new_callable=AsyncMock),
    ):
        yield mock_emit


USER = UserFormData(
    first_name="Anna",
    last_name="Muster",
    birth_date=date(1985, 4, 12),
    email="anna.muster@example.ch",
    address="Bahnhofstrasse 1",
    postal_code="8001",
    city="Zürich",
    current_insurer="CSS",
)


def _orchestrator(handler) -> SigningOrchestrator:
    config = SkribbleSettings(skribble_api_key="api-key-123", skribble_base_url="https://api.skribble.test")
    workflow = WorkflowSettings(public_base_url="https://findbetter.test/", reminder_max_count=3)
    return SigningOrchestrator(config, workflow, transport=httpx.MockTransport(handler))


class TestConfiguration:
    def test_missing_api_key_fails_fast(self):
        with pytest.raises(ConfigError) as exc_info:
            SigningOrchestrator(SkribbleSettings(skribble_api_key=""))
        assert exc_info.value.code == "CONFIG_ERROR"

    def test_signer_is_qualified_with_idempotency_id(self):
        signer = build_signer(USER)
        assert signer.signature_level == SignatureLevel.QES
        assert signer.idempotency_id.startswith("customer_")
        assert signer.idempotency_id.removeprefix("customer_").isdigit()


class TestCreateDocument:
    @pytest.mark.asyncio()
    async def test_upload_carries_legal_settings(self, _mock_emit):
        seen: list[bytes] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.content)
            return httpx.Response(201, json={"id": "doc-1", "status": "open"})

        orchestrator = _orchestrator(handler)
        document = await orchestrator.create_document(
            "KVG Kündigung 2024 - Anna Muster", b"%PDF-1.4", build_signer(USER), DocumentKind.CANCELLATION
        )

        assert document.id == "doc-1"
        assert document.status == DocumentStatus.PENDING
        assert document.kind == DocumentKind.CANCELLATION
        assert LEGAL_FRAMEWORK.encode() in seen[0]
        assert b'"retention_years": 10' in seen[0]
        assert b'"signature_level": "QES"' in seen[0]
        assert _mock_emit.call_args.args[0].event_type.value == "document.created"

    @pytest.mark.asyncio()
    async def test_rejected_upload(self):
        orchestrator = _orchestrator(lambda request: httpx.Response(422, text="bad pdf"))

        with pytest.raises(ProviderDocumentError) as exc_info:
            await orchestrator.create_document("t", b"x", build_signer(USER), DocumentKind.APPLICATION)
        assert exc_info.value.status_code == 422
        assert exc_info.value.body == "bad pdf"

    @pytest.mark.asyncio()
    async def test_answer_without_id(self):
        orchestrator = _orchestrator(lambda request: httpx.Response(200, json={"title": "no id"}))

        with pytest.raises(ProviderDocumentError):
            await orchestrator.create_document("t", b"x", build_signer(USER), DocumentKind.APPLICATION)


class TestCreateSession:
    @pytest.mark.asyncio()
    async def test_documents_sorted_and_payload_localized(self):
        bodies: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(201, json={"id": "sess-1", "signing_url": "https://sign.test/s/1"})

        refs = [
            SessionDocumentRef(document_id="doc-2", order=2, kind=DocumentKind.APPLICATION),
            SessionDocumentRef(document_id="doc-1", order=1, kind=DocumentKind.CANCELLATION),
        ]
        session = await _orchestrator(handler).create_sequential_session(refs, USER)

        body = bodies[0]
        assert body["workflow"] == "sequential"
        assert [d["document_id"] for d in body["documents"]] == ["doc-1", "doc-2"]
        assert [d["order"] for d in body["documents"]] == [1, 2]
        assert body["settings"]["locale"] == "de-CH"
        assert body["settings"]["timezone"] == "Europe/Zurich"
        assert body["settings"]["reminders"] == {"frequency": "daily", "max_count": 3}
        assert body["settings"]["success_url"] == "https://findbetter.test/insurance/signing/success"
        assert body["signer"]["signature_level"] == "QES"

        assert session.id == "sess-1"
        assert session.signing_url == "https://sign.test/s/1"
        assert session.status == SessionStatus.ACTIVE
        assert [ref.document_id for ref in session.documents] == ["doc-1", "doc-2"]
        assert session.expires_at is not None

    @pytest.mark.asyncio()
    async def test_session_failure(self):
        orchestrator = _orchestrator(lambda request: httpx.Response(500, text="boom"))
        refs = [SessionDocumentRef(document_id="doc-1", order=1)]

        with pytest.raises(ProviderSessionError):
            await orchestrator.create_sequential_session(refs, USER)


class TestQueries:
    @pytest.mark.asyncio()
    async def test_document_status_mapping(self):
        orchestrator = _orchestrator(
            lambda request: httpx.Response(200, json={"id": "doc-1", "status": "completed"})
        )
        document = await orchestrator.get_document_status("doc-1")
        assert document.status == DocumentStatus.SIGNED

    @pytest.mark.asyncio()
    async def test_unknown_status_is_pending(self):
        orchestrator = _orchestrator(lambda request: httpx.Response(200, json={"id": "doc-1", "status": "weird"}))
        document = await orchestrator.get_document_status("doc-1")
        assert document.status == DocumentStatus.PENDING

    @pytest.mark.asyncio()
    async def test_unknown_document(self):
        orchestrator = _orchestrator(lambda request: httpx.Response(404, text="not found"))
        with pytest.raises(ProviderQueryError) as exc_info:
            await orchestrator.get_document_status("missing")
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio()
    async def test_session_status_orders_documents(self):
        orchestrator = _orchestrator(lambda request: httpx.Response(200, json={
            "id": "sess-1",
            "url": "https://sign.test/s/1",
            "status": "expired",
            "documents": [{"id": "doc-2", "order": 2}, {"id": "doc-1", "order": 1}],
        }))
        session = await orchestrator.get_session_status("sess-1")
        assert session.status == SessionStatus.EXPIRED
        assert session.signing_url == "https://sign.test/s/1"
        assert [ref.document_id for ref in session.documents] == ["doc-1", "doc-2"]


class TestDownload:
    @pytest.mark.asyncio()
    async def test_signed_pdf_with_audit_trail(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/content"):
                return httpx.Response(200, content=b"%PDF-signed")
            return httpx.Response(200, json={"events": ["signed"]})

        artifact = await _orchestrator(handler).download_signed_document("doc-1")
        assert artifact.content == b"%PDF-signed"
        assert artifact.metadata == {"events": ["signed"]}
        assert artifact.audit_trail_available is True

    @pytest.mark.asyncio()
    async def test_audit_trail_failure_synthesizes_metadata(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/content"):
                return httpx.Response(200, content=b"%PDF-signed")
            return httpx.Response(500, text="audit down")

        artifact = await _orchestrator(handler).download_signed_document("doc-1")
        assert artifact.content == b"%PDF-signed"
        assert artifact.audit_trail_available is False
        assert artifact.metadata["document_id"] == "doc-1"
        assert artifact.metadata["legal_framework"] == "CH-KVG"

    @pytest.mark.asyncio()
    async def test_audit_trail_timeout_synthesizes_metadata(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/content"):
                return httpx.Response(200, content=b"%PDF-signed")
            raise httpx.ReadTimeout("audit trail too slow", request=request)

        artifact = await _orchestrator(handler).download_signed_document("doc-1")
        assert artifact.content == b"%PDF-signed"
        assert artifact.audit_trail_available is False
        assert artifact.metadata["document_id"] == "doc-1"

    @pytest.mark.asyncio()
    async def test_audit_trail_auth_failure_synthesizes_metadata(self):
        orchestrator = _orchestrator(lambda request: httpx.Response(200, content=b"%PDF-signed"))
        orchestrator._client.get_audit_trail = AsyncMock(side_effect=ProviderAuthError("re-login rejected"))

        artifact = await orchestrator.download_signed_document("doc-1")
        assert artifact.content == b"%PDF-signed"
        assert artifact.audit_trail_available is False

    @pytest.mark.asyncio()
    async def test_content_failure_is_an_error(self):
        orchestrator = _orchestrator(lambda request: httpx.Response(404, text="gone"))
        with pytest.raises(ProviderQueryError):
            await orchestrator.download_signed_document("doc-1")


class TestConnection:
    @pytest.mark.asyncio()
    async def test_connection_ok(self):
        assert await _orchestrator(lambda request: httpx.Response(200, json={})).test_connection() is True
