"""Switch workflow: one customer request from form data to signing link.

Fixed order: validate → render cancellation → render application → upload
cancellation → upload application → create sequential session. Any failure
aborts the rest. Documents already uploaded are left at the provider
(orphaned) and logged; the caller retries the whole workflow, since
regenerating documents is cheap and nothing is deduplicated.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date

from src.admin.events import emit
from src.compliance.validator import validate_switch_request
from src.config import SkribbleSettings, WorkflowSettings, settings
from src.documents.composer import DocumentComposer
from src.errors import SwitchError, ValidationFailedError, WorkflowTimeoutError
from src.schemas.events import EventType, SystemEvent
from src.schemas.signing import SessionDocumentRef, SkribbleDocument, SwitchResult
from src.schemas.switch import GeneratedDocument, SelectedInsurance, UserFormData
from src.signing.orchestrator import SigningOrchestrator, build_orchestrator, build_signer
from src.signing.store import SigningStore

logger = logging.getLogger(__name__)

_SOURCE = "signing.workflow"


class SwitchWorkflow:
    """Runs one insurance switch end to end under an overall time ceiling."""

    def __init__(
        self,
        orchestrator: SigningOrchestrator,
        composer: DocumentComposer | None = None,
        config: WorkflowSettings | None = None,
    ) -> None:
        self.orchestrator = orchestrator
        self.config = config or settings.workflow
        self.composer = composer or DocumentComposer(self.config.application_template_path)

    async def process_switch(
        self,
        user: UserFormData,
        insurance: SelectedInsurance,
        store: SigningStore | None = None,
        today: date | None = None,
    ) -> SwitchResult:
        """Run the full switch.

        Args:
            user: Customer form data.
            insurance: The chosen offer.
            store: When given, the new session and documents are persisted.
            today: Reference date for validation and document dates.

        Raises:
            ValidationFailedError: Before any document is rendered.
            WorkflowTimeoutError: If the overall ceiling is exceeded.
            SwitchError: Any other workflow failure, with its public code.
        """
        await emit(SystemEvent(
            event_type=EventType.SWITCH_REQUESTED,
            actor=user.email or None,
            data={"current_insurer": user.current_insurer, "new_insurer": insurance.insurer},
            source_module=_SOURCE,
        ))

        created: list[SkribbleDocument] = []
        try:
            async with asyncio.timeout(self.config.workflow_timeout):
                result = await self._run(user, insurance, created, store, today)
        except TimeoutError as exc:
            error = WorkflowTimeoutError(f"Switch exceeded {self.config.workflow_timeout:.0f}s")
            await self._fail(error, created)
            raise error from exc
        except ValidationFailedError:
            raise
        except SwitchError as exc:
            await self._fail(exc, created)
            raise

        await emit(SystemEvent(
            event_type=EventType.SWITCH_COMPLETED,
            signing_session_id=result.session_id,
            actor=user.email or None,
            data={"document_ids": result.document_ids},
            source_module=_SOURCE,
        ))
        return result

    async def _run(
        self,
        user: UserFormData,
        insurance: SelectedInsurance,
        created: list[SkribbleDocument],
        store: SigningStore | None,
        today: date | None,
    ) -> SwitchResult:
        try:
            report = validate_switch_request(user, insurance, today)
        except ValidationFailedError as exc:
            await emit(SystemEvent(
                event_type=EventType.SWITCH_VALIDATION_FAILED,
                actor=user.email or None,
                data={"violations": exc.violations},
                source_module=_SOURCE,
            ))
            raise

        for advisory in report.advisories:
            await emit(SystemEvent(
                event_type=EventType.COMPLIANCE_ADVISORY,
                actor=user.email or None,
                data={"advisory": advisory},
                source_module=_SOURCE,
            ))

        cancellation = self.composer.compose_cancellation(user, today)
        await self._rendered(cancellation)
        application = self.composer.compose_application(user, insurance, today)
        await self._rendered(application)

        signer = build_signer(user)
        refs: list[SessionDocumentRef] = []
        for generated in (cancellation, application):
            document = await self.orchestrator.create_document(
                generated.title, generated.content, signer, generated.kind
            )
            created.append(document)
            refs.append(SessionDocumentRef(
                document_id=document.id,
                order=generated.order,
                title=generated.title,
                kind=generated.kind,
            ))

        session = await self.orchestrator.create_sequential_session(refs, user)

        if store is not None:
            await store.record_switch(session, created, user.email)

        return SwitchResult(
            redirect_url=session.signing_url,
            session_id=session.id,
            cancellation_document_id=created[0].id,
            application_document_id=created[1].id,
            document_ids=[ref.document_id for ref in session.documents],
            expires_at=session.expires_at,
        )

    async def _rendered(self, document: GeneratedDocument) -> None:
        await emit(SystemEvent(
            event_type=EventType.DOCUMENT_RENDERED,
            data={"kind": document.kind.value, "title": document.title, "size": len(document.content)},
            source_module=_SOURCE,
        ))

    async def _fail(self, error: SwitchError, created: list[SkribbleDocument]) -> None:
        orphaned = [document.id for document in created]
        if orphaned:
            logger.warning("Switch aborted, provider documents left orphaned: %s", ", ".join(orphaned))
        logger.error("Switch failed with %s: %s", error.code, error.message)
        await emit(SystemEvent(
            event_type=EventType.SWITCH_FAILED,
            data={"code": error.code, "message": error.message, "orphaned_document_ids": orphaned},
            source_module=_SOURCE,
        ))


def build_workflow(config: SkribbleSettings | None = None) -> SwitchWorkflow:
    """Wire the workflow from settings.

    Raises:
        ConfigError: If the provider API key is missing, before any network call.
    """
    return SwitchWorkflow(build_orchestrator(config), config=settings.workflow)
