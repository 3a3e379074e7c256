"""Fixed page geometry for the switch documents.

All coordinates are PDF points from the bottom-left corner. Every position
the composer uses is defined here so a layout change never touches logic.
"""

from __future__ import annotations

from dataclasses import dataclass

PAGE_WIDTH = 595
PAGE_HEIGHT = 842

LEFT_MARGIN = 50
RIGHT_COLUMN_X = 320
LINE_PITCH = 14
MAX_TEXT_WIDTH = PAGE_WIDTH - 2 * LEFT_MARGIN  # 495

FONT_REGULAR = "Helvetica"
FONT_BOLD = "Helvetica-Bold"

TITLE_SIZE = 12
BODY_SIZE = 11
SMALL_SIZE = 10
FOOTNOTE_SIZE = 9


@dataclass(frozen=True)
class Anchor:
    """Top-left baseline of a text block."""

    x: float
    y: float


@dataclass(frozen=True)
class PlacedText:
    """One left-aligned line of text at an absolute position."""

    x: float
    y: float
    text: str
    font: str = FONT_REGULAR
    size: float = BODY_SIZE


# ── Cancellation letter ──────────────────────────────────────────────

CANCELLATION_LAYOUT: dict[str, Anchor] = {
    "sender": Anchor(LEFT_MARGIN, 780),
    "recipient": Anchor(RIGHT_COLUMN_X, 680),
    "place_date": Anchor(RIGHT_COLUMN_X, 590),
    "title": Anchor(LEFT_MARGIN, 545),
    "greeting": Anchor(LEFT_MARGIN, 500),
    "body": Anchor(LEFT_MARGIN, 472),
    "signature": Anchor(LEFT_MARGIN, 300),
    "footnote": Anchor(LEFT_MARGIN, 80),
}

PARAGRAPH_GAP = LINE_PITCH  # one empty line between paragraphs
SIGNATURE_LINE = "_" * 40

# ── Application overlay ──────────────────────────────────────────────
# Must match the pre-printed labels of templates/application_template.pdf.

APPLICATION_LAYOUT: dict[str, Anchor] = {
    "identity": Anchor(170, 646),
    "place_date": Anchor(60, 128),
    "signer_name": Anchor(RIGHT_COLUMN_X, 128),
}
