"""Tests for the HTTP surface: switch trigger, status queries, signed download, webhook."""

from __future__ import annotations

import json
from datetime import date, datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.channels.skribble_webhook import skribble_router
from src.channels.switch import switch_router
from src.compliance.validator import MSG_BIRTH_DATE_FORMAT, MSG_EMAIL, MSG_PREMIUM, validate_switch_request
from src.errors import (
    ConfigError,
    InvalidSignatureError,
    MalformedWebhookError,
    ProviderAuthError,
    ProviderQueryError,
    ProviderSessionError,
    ValidationFailedError,
    WorkflowTimeoutError,
)
from src.models.enums import DocumentStatus, SessionStatus
from src.models.signing import SigningDocumentRecord, SigningSessionRecord
from src.schemas.signing import SignedArtifact, SkribbleDocument, SwitchResult, WebhookResult
from src.signing.webhook import SIGNATURE_HEADER, WebhookProcessor, compute_signature

SWITCH_BODY = {
    "userData": {
        "firstName": "Anna",
        "lastName": "Muster",
        "birthDate": "12.04.1985",
        "email": "anna.muster@example.ch",
        "address": "Bahnhofstrasse 1",
        "postalCode": "8001",
        "city": "Zürich",
        "currentInsurer": "CSS",
        "insuranceStartDate": "2025-01-01",
    },
    "selectedInsurance": {"insurer": "Sanitas", "tariffName": "Compact One", "premium": "350.00"},
}

RESULT = SwitchResult(
    redirect_url="https://sign.test/s/1",
    session_id="sess-1",
    cancellation_document_id="doc-1",
    application_document_id="doc-2",
    document_ids=["doc-1", "doc-2"],
    expires_at=datetime(2024, 11, 14, tzinfo=timezone.utc),
)


def _validating(user, insurance, **kwargs) -> SwitchResult:
    validate_switch_request(user, insurance, today=date(2025, 6, 1))
    return RESULT


def _make_app() -> FastAPI:
    app = FastAPI()
    app.include_router(switch_router)
    app.include_router(skribble_router)
    return app


def _session_factory(db: AsyncMock) -> MagicMock:
    factory = MagicMock()
    factory.return_value.__aenter__.return_value = db
    factory.return_value.__aexit__.return_value = False
    return factory


@pytest.fixture()
def db() -> AsyncMock:
    return AsyncMock()


@pytest.fixture()
def workflow() -> MagicMock:
    mock = MagicMock()
    mock.process_switch = AsyncMock(return_value=RESULT)
    mock.orchestrator = MagicMock()
    return mock


@pytest.fixture()
def client(workflow, db):
    limiter = MagicMock()
    limiter.check = AsyncMock(return_value=(True, 0))
    production = MagicMock(is_development=False)
    with (
        patch("src.channels.switch.get_workflow", return_value=workflow),
        patch("src.channels.switch.async_session_factory", _session_factory(db)),
        patch("src.channels.switch.rate_limiter", limiter),
        patch("src.channels.responses.settings", production),
    ):
        yield TestClient(_make_app())


# ── Switch trigger ───────────────────────────────────────────────────


class TestStartSwitch:
    def test_success_is_camel_case(self, client, workflow, db):
        response = client.post("/api/switch", json=SWITCH_BODY)

        assert response.status_code == 200
        body = response.json()
        assert body["redirectUrl"] == "https://sign.test/s/1"
        assert body["cancellationDocumentId"] == "doc-1"
        assert body["documentIds"] == ["doc-1", "doc-2"]
        db.commit.assert_awaited_once()

        user, insurance = workflow.process_switch.await_args.args
        assert user.first_name == "Anna"
        assert user.birth_date.year == 1985
        assert insurance.tariff_name == "Compact One"

    def test_validation_error_lists_violations(self, client, workflow, db):
        workflow.process_switch.side_effect = ValidationFailedError(["E-Mail fehlt", "PLZ fehlt"])

        response = client.post("/api/switch", json=SWITCH_BODY)

        assert response.status_code == 400
        body = response.json()
        assert body["code"] == "VALIDATION_ERROR"
        assert body["violations"] == ["E-Mail fehlt", "PLZ fehlt"]
        db.commit.assert_not_awaited()

    def test_impossible_birth_date_reported_with_other_violations(self, client, workflow, db):
        workflow.process_switch.side_effect = _validating
        body = {**SWITCH_BODY, "userData": {**SWITCH_BODY["userData"], "birthDate": "31.02.1985", "email": ""}}

        response = client.post("/api/switch", json=body)

        assert response.status_code == 400
        payload = response.json()
        assert payload["code"] == "VALIDATION_ERROR"
        assert payload["violations"] == [MSG_EMAIL, MSG_BIRTH_DATE_FORMAT]
        assert "detail" not in payload
        db.commit.assert_not_awaited()

    def test_negative_premium_is_a_violation(self, client, workflow):
        workflow.process_switch.side_effect = _validating
        body = {**SWITCH_BODY, "selectedInsurance": {**SWITCH_BODY["selectedInsurance"], "premium": "-1"}}

        response = client.post("/api/switch", json=body)

        assert response.status_code == 400
        payload = response.json()
        assert payload["code"] == "VALIDATION_ERROR"
        assert payload["violations"] == [MSG_PREMIUM]
        assert "detail" not in payload

    def test_unusable_body_never_reaches_workflow(self, client, workflow):
        body = {**SWITCH_BODY, "selectedInsurance": {**SWITCH_BODY["selectedInsurance"], "premium": "viel"}}

        response = client.post("/api/switch", json=body)

        assert response.status_code == 400
        payload = response.json()
        assert payload["code"] == "VALIDATION_ERROR"
        assert payload["violations"] == ["Prämie: ungültiger Wert"]
        assert "detail" not in payload
        workflow.process_switch.assert_not_awaited()

    def test_non_json_body(self, client, workflow):
        response = client.post("/api/switch", content=b"{oops", headers={"Content-Type": "application/json"})

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"
        workflow.process_switch.assert_not_awaited()

    @pytest.mark.parametrize(
        ("error", "status", "code"),
        [
            (WorkflowTimeoutError("too slow"), 408, "TIMEOUT_ERROR"),
            (ProviderSessionError("boom", status_code=500, body="internal"), 503, "PROVIDER_ERROR"),
            (ProviderAuthError("bad key"), 502, "AUTH_ERROR"),
        ],
    )
    def test_workflow_errors_map_to_status(self, client, workflow, error, status, code):
        workflow.process_switch.side_effect = error

        response = client.post("/api/switch", json=SWITCH_BODY)

        assert response.status_code == status
        assert response.json()["code"] == code

    def test_generic_message_hides_provider_body(self, client, workflow):
        workflow.process_switch.side_effect = ProviderSessionError("secret detail", status_code=500, body="x")

        response = client.post("/api/switch", json=SWITCH_BODY)

        assert "secret detail" not in response.text

    def test_details_exposed_in_development(self, client, workflow):
        workflow.process_switch.side_effect = WorkflowTimeoutError("Switch exceeded 55s")

        with patch("src.channels.responses.settings", MagicMock(is_development=True)):
            response = client.post("/api/switch", json=SWITCH_BODY)

        assert response.json()["message"] == "Switch exceeded 55s"

    def test_missing_configuration(self, client):
        with patch("src.channels.switch.get_workflow", side_effect=ConfigError("no key")):
            response = client.post("/api/switch", json=SWITCH_BODY)

        assert response.status_code == 503
        assert response.json()["code"] == "CONFIG_ERROR"

    def test_unexpected_error_is_processing_error(self, client, workflow):
        workflow.process_switch.side_effect = RuntimeError("bug")

        response = client.post("/api/switch", json=SWITCH_BODY)

        assert response.status_code == 500
        assert response.json()["code"] == "PROCESSING_ERROR"

    def test_rate_limited(self, client, workflow):
        limiter = MagicMock()
        limiter.check = AsyncMock(return_value=(False, 120))

        with patch("src.channels.switch.rate_limiter", limiter):
            response = client.post("/api/switch", json=SWITCH_BODY, headers={"X-Forwarded-For": "203.0.113.7"})

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "120"
        assert response.json()["code"] == "RATE_LIMITED"
        assert limiter.check.await_args.args[0] == "rate:203.0.113.7:switch"
        workflow.process_switch.assert_not_awaited()


# ── Status and download ──────────────────────────────────────────────


class TestQueries:
    def test_document_status(self, client, workflow):
        workflow.orchestrator.get_document_status = AsyncMock(
            return_value=SkribbleDocument(id="doc-1", title="Kündigung", status=DocumentStatus.SIGNED)
        )

        response = client.get("/api/switch/documents/doc-1")

        assert response.status_code == 200
        assert response.json()["status"] == "signed"

    def test_session_status_error(self, client, workflow):
        workflow.orchestrator.get_session_status = AsyncMock(
            side_effect=ProviderQueryError("not found", status_code=404)
        )

        response = client.get("/api/switch/sessions/missing")

        assert response.status_code == 503

    @pytest.mark.parametrize(("available", "header"), [(True, "available"), (False, "synthesized")])
    def test_signed_download(self, client, workflow, available, header):
        workflow.orchestrator.download_signed_document = AsyncMock(return_value=SignedArtifact(
            document_id="doc-1",
            content=b"%PDF-signed",
            audit_trail_available=available,
        ))

        response = client.get("/api/switch/documents/doc-1/signed")

        assert response.status_code == 200
        assert response.content == b"%PDF-signed"
        assert response.headers["content-type"] == "application/pdf"
        assert response.headers["X-Audit-Trail"] == header
        assert 'filename="doc-1.pdf"' in response.headers["Content-Disposition"]


# ── Webhook ──────────────────────────────────────────────────────────


class TestWebhookRouter:
    @pytest.fixture()
    def webhook_client(self, db):
        with patch("src.channels.skribble_webhook.async_session_factory", _session_factory(db)):
            yield TestClient(_make_app())

    def test_processed(self, webhook_client, db):
        processor = MagicMock()
        processor.handle_event = AsyncMock(return_value=WebhookResult(processed=True, action="document.signed"))

        with patch("src.channels.skribble_webhook.webhook_processor", processor):
            response = webhook_client.post(
                "/webhook/skribble", content=b'{"event_type": "document.signed"}', headers={SIGNATURE_HEADER: "abc"}
            )

        assert response.status_code == 200
        assert response.json() == {"success": True, "processed": True, "action": "document.signed"}
        raw, signature, _ = processor.handle_event.await_args.args
        assert raw == b'{"event_type": "document.signed"}'
        assert signature == "abc"
        db.commit.assert_awaited_once()

    def test_invalid_signature(self, webhook_client, db):
        processor = MagicMock()
        processor.handle_event = AsyncMock(side_effect=InvalidSignatureError("bad"))

        with patch("src.channels.skribble_webhook.webhook_processor", processor):
            response = webhook_client.post("/webhook/skribble", content=b"{}")

        assert response.status_code == 401
        assert response.json() == {"success": False, "error": "Invalid signature"}
        db.commit.assert_not_awaited()

    def test_malformed(self, webhook_client):
        processor = MagicMock()
        processor.handle_event = AsyncMock(side_effect=MalformedWebhookError("not json"))

        with patch("src.channels.skribble_webhook.webhook_processor", processor):
            response = webhook_client.post("/webhook/skribble", content=b"{oops")

        assert response.status_code == 400

    def test_real_processor_completes_session(self, webhook_client):
        session = SigningSessionRecord(provider_session_id="sess-1", status=SessionStatus.ACTIVE.value)
        documents = [
            SigningDocumentRecord(
                provider_document_id=f"doc-{n}",
                provider_session_id="sess-1",
                sequence_order=n,
                status=DocumentStatus.PENDING.value,
            )
            for n in (1, 2)
        ]
        store = MagicMock()
        store.get_or_create_session = AsyncMock(return_value=session)
        store.documents_for_session = AsyncMock(return_value=list(documents))

        body = json.dumps({"event_type": "session.completed", "data": {"session_id": "sess-1"}}).encode()
        signature = "sha256=" + compute_signature("whsec_test", body)

        with (
            patch("src.channels.skribble_webhook.webhook_processor", WebhookProcessor("whsec_test", False)),
            patch("src.channels.skribble_webhook.SigningStore", return_value=store),
            patch("src.signing.webhook.emit", new_callable=AsyncMock),
        ):
            response = webhook_client.post("/webhook/skribble", content=body, headers={SIGNATURE_HEADER: signature})

        assert response.status_code == 200
        assert response.json()["processed"] is True
        assert session.status == "completed"
        assert [d.status for d in documents] == ["signed", "signed"]


# ── Health ───────────────────────────────────────────────────────────


class TestHealth:
    def test_health(self):
        from src.main import app

        response = TestClient(app).get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"
        assert response.json()["signing_environment"] in {"sandbox", "production"}
