"""PDF painting primitives.

Synchronous, pure functions. Lines are laid out first as PlacedText, then
painted with a reportlab canvas. Template overlays draw the same way onto a
transparent page and merge it onto the base document with pypdf.
"""

from __future__ import annotations

import io
import logging
from collections.abc import Iterable
from pathlib import Path

from pypdf import PdfReader, PdfWriter
from pypdf.errors import PyPdfError
from reportlab.lib.utils import simpleSplit
from reportlab.pdfgen import canvas

from src.documents.layout import PAGE_HEIGHT, PAGE_WIDTH, PlacedText
from src.errors import TemplateMissingError

logger = logging.getLogger(__name__)


def wrap_text(text: str, font: str, size: float, max_width: float) -> list[str]:
    """Split a paragraph into lines no wider than max_width."""
    return simpleSplit(text, font, size, max_width)


def _draw(c: canvas.Canvas, lines: Iterable[PlacedText]) -> None:
    for line in lines:
        c.setFont(line.font, line.size)
        c.drawString(line.x, line.y, line.text)


def paint_page(
    lines: Iterable[PlacedText],
    title: str = "",
    pagesize: tuple[float, float] = (PAGE_WIDTH, PAGE_HEIGHT),
) -> bytes:
    """Render one page of absolutely positioned text to PDF bytes.

    `invariant=1` keeps the output byte-stable for identical input.
    """
    buffer = io.BytesIO()
    c = canvas.Canvas(buffer, pagesize=pagesize, invariant=1)
    if title:
        c.setTitle(title)
    _draw(c, lines)
    c.showPage()
    c.save()
    return buffer.getvalue()


def overlay_template(template_bytes: bytes, fields: Iterable[PlacedText], title: str = "") -> bytes:
    """Draw fields onto the first page of a base PDF and return the merged document.

    Raises:
        TemplateMissingError: If the template bytes are not a readable PDF.
    """
    try:
        reader = PdfReader(io.BytesIO(template_bytes))
        base_page = reader.pages[0]
    except (PyPdfError, IndexError, ValueError) as exc:
        msg = f"Application template is not a readable PDF: {exc}"
        raise TemplateMissingError(msg) from exc

    width = float(base_page.mediabox.width)
    height = float(base_page.mediabox.height)
    overlay_page = PdfReader(io.BytesIO(paint_page(fields, pagesize=(width, height)))).pages[0]

    writer = PdfWriter()
    page = writer.add_page(base_page)
    page.merge_page(overlay_page)
    if title:
        writer.add_metadata({"/Title": title})

    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


def load_application_template(path: Path) -> bytes:
    """Read the application base template.

    Fatal for the calling workflow run; there is no fallback layout.

    Raises:
        TemplateMissingError: If the file is absent, unreadable or not a PDF.
    """
    try:
        data = path.read_bytes()
    except OSError as exc:
        logger.error("Application template missing at %s", path)
        msg = f"Application template not found: {path.name}"
        raise TemplateMissingError(msg) from exc

    if not data.startswith(b"%PDF"):
        msg = f"Application template is not a PDF: {path.name}"
        raise TemplateMissingError(msg)
    return data
