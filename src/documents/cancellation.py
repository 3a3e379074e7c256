"""Cancellation letter for the current basic insurance (KVG Kündigung).

One A4 page, German, laid out against CANCELLATION_LAYOUT. The layout step
is pure and returns every placed line; rendering only paints them.
"""

from __future__ import annotations

from datetime import date

from src.documents.dates import cancellation_date, default_start_date, format_long, format_numeric
from src.documents.insurers import lookup_insurer_address
from src.documents.layout import (
    BODY_SIZE,
    CANCELLATION_LAYOUT,
    FONT_BOLD,
    FONT_REGULAR,
    FOOTNOTE_SIZE,
    LINE_PITCH,
    MAX_TEXT_WIDTH,
    PARAGRAPH_GAP,
    SIGNATURE_LINE,
    TITLE_SIZE,
    Anchor,
    PlacedText,
)
from src.documents.pdf import paint_page, wrap_text
from src.schemas.switch import UserFormData

TITLE_LINES = (
    "Kündigung der obligatorischen",
    "Krankenpflegeversicherung (Grundversicherung)",
)
GREETING = "Sehr geehrte Damen und Herren"
CLOSING = (
    "Bitte bestätigen Sie mir den Erhalt dieser Kündigung sowie das Ende "
    "des Versicherungsverhältnisses schriftlich."
)
REGARDS = "Freundliche Grüsse"
FOOTNOTE = (
    "Empfehlung: Senden Sie diese Kündigung per Einschreiben, damit der "
    "fristgerechte Eingang nachgewiesen werden kann."
)


def cancellation_paragraph(user: UserFormData, today: date) -> str:
    """The legal paragraph, the only place dates are written with month names."""
    start = user.insurance_start_date or default_start_date(today)
    end = cancellation_date(user.insurance_start_date, today)
    return (
        "Hiermit kündige ich meine obligatorische Krankenpflegeversicherung "
        f"fristgerecht auf den {format_long(end)}. Ab dem {format_long(start)} "
        "bin ich bei einem anderen Versicherer grundversichert."
    )


def _block(anchor: Anchor, lines: list[str], size: float = BODY_SIZE, font: str = FONT_REGULAR) -> list[PlacedText]:
    return [
        PlacedText(anchor.x, anchor.y - i * LINE_PITCH, text, font, size)
        for i, text in enumerate(lines)
    ]


def _paragraph(x: float, y: float, text: str, size: float = BODY_SIZE) -> list[PlacedText]:
    lines = wrap_text(text, FONT_REGULAR, size, MAX_TEXT_WIDTH)
    return _block(Anchor(x, y), lines, size=size)


def sender_lines(user: UserFormData) -> list[str]:
    lines: list[str] = []
    if user.current_policy_number:
        lines.append(f"Versicherten-Nr.: {user.current_policy_number}")
    lines.append(f"Name: {user.last_name}")
    lines.append(f"Vorname: {user.first_name}")
    if user.street_line:
        lines.append(user.street_line)
    lines.append(user.postal_city)
    return lines


def recipient_lines(insurer_name: str) -> list[str]:
    """Insurer name plus its mailing address when the carrier is known."""
    lines = [insurer_name]
    address = lookup_insurer_address(insurer_name)
    if address is not None:
        lines.extend([address.street, address.postal_city])
    return lines


def layout_cancellation(user: UserFormData, insurer_name: str, today: date) -> list[PlacedText]:
    """Place every line of the letter, top to bottom."""
    anchors = CANCELLATION_LAYOUT
    placed: list[PlacedText] = []

    placed += _block(anchors["sender"], sender_lines(user))
    placed += _block(anchors["recipient"], recipient_lines(insurer_name))
    placed += _block(anchors["place_date"], [f"{user.city}, {format_numeric(today)}"])
    placed += _block(anchors["title"], list(TITLE_LINES), size=TITLE_SIZE, font=FONT_BOLD)
    placed += _block(anchors["greeting"], [GREETING])

    body = anchors["body"]
    paragraph = _paragraph(body.x, body.y, cancellation_paragraph(user, today))
    placed += paragraph
    y = paragraph[-1].y - LINE_PITCH - PARAGRAPH_GAP
    closing = _paragraph(body.x, y, CLOSING)
    placed += closing
    y = closing[-1].y - LINE_PITCH - PARAGRAPH_GAP
    placed += _block(Anchor(body.x, y), [REGARDS])

    # Signature line, then the pre-filled name below it
    placed += _block(anchors["signature"], [SIGNATURE_LINE, user.full_name])

    footnote = anchors["footnote"]
    placed += _paragraph(footnote.x, footnote.y, FOOTNOTE, size=FOOTNOTE_SIZE)
    return placed


def cancellation_title(user: UserFormData, today: date) -> str:
    end = cancellation_date(user.insurance_start_date, today)
    return f"KVG Kündigung {end.year} - {user.first_name} {user.last_name}"


def render_cancellation(user: UserFormData, current_insurer_name: str, today: date | None = None) -> bytes:
    """Render the cancellation letter to PDF bytes.

    Args:
        user: Customer data; the sender block and signature come from here.
        current_insurer_name: Recipient. Unknown carriers get a name-only block.
        today: Letter date, defaults to the current date.
    """
    today = today or date.today()
    lines = layout_cancellation(user, current_insurer_name, today)
    return paint_page(lines, title=cancellation_title(user, today))
