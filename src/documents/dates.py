"""Swiss date formatting and the cancellation-date rule."""

from __future__ import annotations

from datetime import date, timedelta

GERMAN_MONTHS: tuple[str, ...] = (
    "Januar",
    "Februar",
    "März",
    "April",
    "Mai",
    "Juni",
    "Juli",
    "August",
    "September",
    "Oktober",
    "November",
    "Dezember",
)


def format_numeric(d: date) -> str:
    """`dd.mm.yyyy`, used everywhere except the legal paragraph."""
    return d.strftime("%d.%m.%Y")


def format_long(d: date) -> str:
    """`31. Dezember 2025`. Month names are fixed; strftime would follow the process locale."""
    return f"{d.day}. {GERMAN_MONTHS[d.month - 1]} {d.year}"


def default_start_date(today: date) -> date:
    """Next insurance cycle: basic insurance switches take effect on 1 January."""
    return date(today.year + 1, 1, 1)


def cancellation_date(start_date: date | None, today: date) -> date:
    """The old policy ends the day before the new one starts."""
    start = start_date or default_start_date(today)
    return start - timedelta(days=1)
