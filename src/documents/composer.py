"""Document composer: renders both switch documents for one workflow run."""

from __future__ import annotations

import logging
from datetime import date
from pathlib import Path

from src.config import settings
from src.documents.application import application_title, render_application
from src.documents.cancellation import cancellation_title, render_cancellation
from src.documents.pdf import load_application_template
from src.models.enums import DocumentKind
from src.schemas.switch import GeneratedDocument, SelectedInsurance, UserFormData

logger = logging.getLogger(__name__)


class DocumentComposer:
    """Produces the cancellation letter and the application form.

    The template is read on every call so a replaced file is picked up
    without a restart; a missing template fails the run.
    """

    def __init__(self, template_path: Path | str | None = None) -> None:
        self.template_path = Path(template_path or settings.workflow.application_template_path)

    def compose_cancellation(self, user: UserFormData, today: date | None = None) -> GeneratedDocument:
        today = today or date.today()
        content = render_cancellation(user, user.current_insurer, today)
        logger.info("Rendered cancellation letter (%d bytes)", len(content))
        return GeneratedDocument(
            kind=DocumentKind.CANCELLATION,
            title=cancellation_title(user, today),
            content=content,
        )

    def compose_application(
        self,
        user: UserFormData,
        insurance: SelectedInsurance,
        today: date | None = None,
    ) -> GeneratedDocument:
        today = today or date.today()
        template = load_application_template(self.template_path)
        content = render_application(user, insurance, template, today)
        logger.info("Rendered application for %s (%d bytes)", insurance.insurer, len(content))
        return GeneratedDocument(
            kind=DocumentKind.APPLICATION,
            title=application_title(user, insurance),
            content=content,
        )

    def compose(
        self,
        user: UserFormData,
        insurance: SelectedInsurance,
        today: date | None = None,
    ) -> tuple[GeneratedDocument, GeneratedDocument]:
        """Both documents, cancellation first."""
        return self.compose_cancellation(user, today), self.compose_application(user, insurance, today)
