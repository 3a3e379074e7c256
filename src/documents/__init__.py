"""Document composer: cancellation letter and application form PDFs."""

from src.documents.application import render_application
from src.documents.cancellation import render_cancellation
from src.documents.composer import DocumentComposer
from src.documents.insurers import lookup_insurer_address
from src.documents.pdf import load_application_template, overlay_template

__all__ = [
    "DocumentComposer",
    "render_cancellation",
    "render_application",
    "overlay_template",
    "load_application_template",
    "lookup_insurer_address",
]
