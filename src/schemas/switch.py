"""Pydantic schemas for the switch request: customer data and the chosen offer.

Shape only: missing strings default to "" and unreadable dates are set aside
so the compliance validator, not the parser, decides what is missing and
reports it all at once.
Accepts the camelCase keys the comparison frontend sends.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field, model_validator
from pydantic.alias_generators import to_camel

from src.models.enums import DocumentKind

_FORM_CONFIG = {
    "frozen": True,
    "alias_generator": to_camel,
    "populate_by_name": True,
    "str_strip_whitespace": True,
}

DATE_FIELDS = ("birth_date", "insurance_start_date")


def _parse_swiss_date(value: object) -> date | None:
    """Accept `dd.mm.yyyy` alongside ISO; empty input means not given.

    Raises:
        ValueError: If the value is not a real calendar date.
    """
    if value is None or isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if "." in text:
            return datetime.strptime(text, "%d.%m.%Y").date()
        return date.fromisoformat(text)
    msg = f"Unsupported date value: {value!r}"
    raise ValueError(msg)


class UserFormData(BaseModel):
    """Personal data entered by the customer."""

    model_config = _FORM_CONFIG

    salutation: str = ""
    first_name: str = ""
    last_name: str = ""
    birth_date: date | None = None
    phone: str = ""
    email: str = ""
    address: str = ""  # free text, used when no structured street is given
    street: str | None = None
    postal_code: str = ""
    city: str = ""
    nationality: str = ""
    ahv_number: str | None = None  # AHV/AVS social insurance number
    current_insurer: str = ""
    current_policy_number: str | None = Field(default=None, alias="currentInsurancePolicyNumber")
    insurance_start_date: date | None = None
    # Date fields that were given but unreadable; they are parsed as None
    invalid_dates: tuple[str, ...] = Field(default=(), exclude=True)

    @model_validator(mode="before")
    @classmethod
    def set_aside_invalid_dates(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = {k: v for k, v in data.items() if k not in ("invalid_dates", "invalidDates")}
        invalid: list[str] = []
        for name in DATE_FIELDS:
            for key in (name, to_camel(name)):
                if key not in data:
                    continue
                try:
                    data[key] = _parse_swiss_date(data[key])
                except ValueError:
                    invalid.append(name)
                    data[key] = None
        data["invalid_dates"] = tuple(dict.fromkeys(invalid))
        return data

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def street_line(self) -> str:
        """Structured street, or the free-text address verbatim."""
        return self.street or self.address

    @property
    def postal_city(self) -> str:
        """`8001 Zürich`, never prefixed with a country code."""
        return f"{self.postal_code} {self.city}".strip()


class SelectedInsurance(BaseModel):
    """The offer chosen on the comparison page. Immutable once in the workflow."""

    model_config = _FORM_CONFIG

    insurer: str = ""
    tariff_name: str = ""
    premium: Decimal = Field(default=Decimal("0"), description="Monthly premium in CHF")
    franchise: str = ""  # deductible tier, e.g. "300"
    accident_inclusion: str = ""
    age_group: str = ""
    region: str = ""
    fiscal_year: str = ""


class SwitchRequest(BaseModel):
    """Body of the switch trigger endpoint."""

    model_config = {"alias_generator": to_camel, "populate_by_name": True}

    user_data: UserFormData = Field(default_factory=UserFormData)
    selected_insurance: SelectedInsurance = Field(default_factory=SelectedInsurance)


@dataclass(frozen=True)
class GeneratedDocument:
    """A rendered PDF. Produced once per workflow run, never edited."""

    kind: DocumentKind
    title: str
    content: bytes

    @property
    def order(self) -> int:
        """Signing position: the cancellation must be signed first."""
        return 1 if self.kind == DocumentKind.CANCELLATION else 2
