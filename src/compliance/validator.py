"""Swiss KVG business rules checked before any document is produced.

Total validation: every rule runs and every violation is reported in one
ValidationFailedError, so the customer can fix the whole form at once.
Messages are German and shown to the user as-is.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date

from pydantic import ValidationError
from pydantic.alias_generators import to_snake

from src.errors import ValidationFailedError
from src.schemas.switch import SelectedInsurance, SwitchRequest, UserFormData

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
POSTAL_CODE_PATTERN = re.compile(r"^\d{4}$")
MINIMUM_AGE = 18

# Basic insurance must be cancelled by 30 November for 1 January.
CANCELLATION_DEADLINE = (11, 30)

# ── Messages ─────────────────────────────────────────────────────────

MSG_NAME = "Vor- und Nachname sind erforderlich"
MSG_EMAIL = "Gültige E-Mail-Adresse erforderlich"
MSG_BIRTH_DATE = "Geburtsdatum ist erforderlich"
MSG_BIRTH_DATE_FORMAT = "Geburtsdatum ist kein gültiges Datum (TT.MM.JJJJ)"
MSG_UNDERAGE = "Antragsteller muss mindestens 18 Jahre alt sein"
MSG_ADDRESS = "Adresse ist erforderlich"
MSG_POSTAL_CODE = "Postleitzahl ist erforderlich"
MSG_POSTAL_CODE_FORMAT = "Postleitzahl muss aus genau 4 Ziffern bestehen"
MSG_CURRENT_INSURER = "Aktuelle Krankenversicherung erforderlich"
MSG_NEW_INSURER = "Neue Versicherungsauswahl erforderlich"
MSG_START_DATE_FORMAT = "Versicherungsbeginn ist kein gültiges Datum (TT.MM.JJJJ)"
MSG_PREMIUM = "Prämie darf nicht negativ sein"
MSG_MALFORMED_REQUEST = "Ungültige Anfrage"
MSG_LATE_CANCELLATION = (
    "Die Kündigungsfrist vom 30. November ist abgelaufen. "
    "Die Kündigung wird voraussichtlich erst auf das übernächste Jahr wirksam."
)


@dataclass(frozen=True)
class ComplianceReport:
    """Result of a passing validation. Advisories are warnings, never failures."""

    advisories: list[str] = field(default_factory=list)


def age_on(birth_date: date, today: date) -> int:
    """Completed years of age on a given day."""
    years = today.year - birth_date.year
    if (today.month, today.day) < (birth_date.month, birth_date.day):
        years -= 1
    return years


def collect_violations(user: UserFormData, insurance: SelectedInsurance, today: date) -> list[str]:
    """Run every rule and return all violations, in form order."""
    violations: list[str] = []

    if not user.first_name or not user.last_name:
        violations.append(MSG_NAME)

    if not EMAIL_PATTERN.match(user.email):
        violations.append(MSG_EMAIL)

    if "birth_date" in user.invalid_dates:
        violations.append(MSG_BIRTH_DATE_FORMAT)
    elif user.birth_date is None:
        violations.append(MSG_BIRTH_DATE)
    elif age_on(user.birth_date, today) < MINIMUM_AGE:
        violations.append(MSG_UNDERAGE)

    if not user.street_line:
        violations.append(MSG_ADDRESS)

    if not user.postal_code:
        violations.append(MSG_POSTAL_CODE)
    elif not POSTAL_CODE_PATTERN.match(user.postal_code):
        violations.append(MSG_POSTAL_CODE_FORMAT)

    # The cancellation letter cannot be addressed without it
    if not user.current_insurer:
        violations.append(MSG_CURRENT_INSURER)

    if "insurance_start_date" in user.invalid_dates:
        violations.append(MSG_START_DATE_FORMAT)

    if not insurance.insurer:
        violations.append(MSG_NEW_INSURER)

    if insurance.premium < 0:
        violations.append(MSG_PREMIUM)

    return violations


FIELD_LABELS = {
    "salutation": "Anrede",
    "first_name": "Vorname",
    "last_name": "Nachname",
    "phone": "Telefon",
    "email": "E-Mail",
    "address": "Adresse",
    "street": "Strasse",
    "postal_code": "Postleitzahl",
    "city": "Ort",
    "nationality": "Nationalität",
    "ahv_number": "AHV-Nummer",
    "current_insurer": "Aktuelle Krankenversicherung",
    "current_policy_number": "Policennummer",
    "current_insurance_policy_number": "Policennummer",
    "insurer": "Neue Versicherung",
    "tariff_name": "Tarif",
    "premium": "Prämie",
    "franchise": "Franchise",
    "accident_inclusion": "Unfalldeckung",
    "age_group": "Altersgruppe",
    "region": "Prämienregion",
    "fiscal_year": "Prämienjahr",
}


def _parse_violation(error: dict) -> str:
    loc = error.get("loc") or ()
    label = FIELD_LABELS.get(to_snake(str(loc[-1]))) if loc else None
    if label is None:
        return MSG_MALFORMED_REQUEST
    return f"{label}: ungültiger Wert"


def parse_switch_request(raw: bytes | str) -> SwitchRequest:
    """Parse the switch trigger body.

    Values the form model cannot hold at all (a premium that is not a
    number, a list where a name belongs, a body that is not JSON) are
    reported the same way as business-rule violations.

    Raises:
        ValidationFailedError: With one German message per unusable field.
    """
    try:
        return SwitchRequest.model_validate_json(raw)
    except ValidationError as exc:
        violations = list(dict.fromkeys(_parse_violation(error) for error in exc.errors()))
        logger.info("Switch request body rejected: %d unusable field(s)", exc.error_count())
        raise ValidationFailedError(violations) from exc


def past_cancellation_deadline(today: date) -> bool:
    return (today.month, today.day) > CANCELLATION_DEADLINE


def validate_switch_request(
    user: UserFormData,
    insurance: SelectedInsurance,
    today: date | None = None,
) -> ComplianceReport:
    """Validate a switch request against the KVG rules.

    Args:
        user: Customer form data.
        insurance: The chosen offer.
        today: Validation date, defaults to the current date.

    Returns:
        ComplianceReport with any non-fatal advisories.

    Raises:
        ValidationFailedError: With the full list of violations.
    """
    today = today or date.today()
    violations = collect_violations(user, insurance, today)
    if violations:
        logger.info("Switch request rejected with %d violation(s)", len(violations))
        raise ValidationFailedError(violations)

    advisories: list[str] = []
    if past_cancellation_deadline(today):
        logger.warning("Switch requested after the cancellation deadline (%s)", today.isoformat())
        advisories.append(MSG_LATE_CANCELLATION)

    return ComplianceReport(advisories=advisories)
