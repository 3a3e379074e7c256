"""Application form for the new insurer.

The pre-printed base template carries the labels; we only overlay the
customer's identity and the place/date/name line at the bottom.
"""

from __future__ import annotations

from datetime import date

from src.documents.dates import format_numeric
from src.documents.layout import APPLICATION_LAYOUT, LINE_PITCH, SMALL_SIZE, PlacedText
from src.documents.pdf import overlay_template
from src.schemas.switch import SelectedInsurance, UserFormData


def layout_application(user: UserFormData, today: date) -> list[PlacedText]:
    identity = APPLICATION_LAYOUT["identity"]
    place_date = APPLICATION_LAYOUT["place_date"]
    signer = APPLICATION_LAYOUT["signer_name"]

    identity_lines = [user.full_name, user.street_line, user.postal_city]
    fields = [
        PlacedText(identity.x, identity.y - i * LINE_PITCH, text, size=SMALL_SIZE)
        for i, text in enumerate(identity_lines)
    ]
    fields.append(PlacedText(place_date.x, place_date.y, f"{user.city}, {format_numeric(today)}", size=SMALL_SIZE))
    fields.append(PlacedText(signer.x, signer.y, user.full_name, size=SMALL_SIZE))
    return fields


def application_title(user: UserFormData, insurance: SelectedInsurance) -> str:
    return f"Krankenversicherungsantrag {insurance.insurer} - {user.first_name} {user.last_name}"


def render_application(
    user: UserFormData,
    insurance: SelectedInsurance,
    template_bytes: bytes,
    today: date | None = None,
) -> bytes:
    """Overlay the customer's data onto the application template.

    Raises:
        TemplateMissingError: If template_bytes is not a readable PDF.
    """
    today = today or date.today()
    fields = layout_application(user, today)
    title = f"{application_title(user, insurance)} ({insurance.tariff_name})"
    return overlay_template(template_bytes, fields, title=title)
