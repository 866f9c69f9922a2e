"""Due-date display formats and conversion to/from Trello timestamps."""

from datetime import datetime, timezone
from enum import Enum


class DateFormat(str, Enum):
    ISO = "iso"
    US = "us"
    EU = "eu"

    @property
    def pattern(self) -> str:
        return _PATTERNS[self]

    @property
    def date_pattern(self) -> str:
        # date-only half of the pattern, accepted when the user omits the time
        return self.pattern.split(" ", 1)[0]

    @property
    def display(self) -> str:
        return _DISPLAY[self]


_PATTERNS = {
    DateFormat.ISO: "%Y-%m-%d %H:%M",
    DateFormat.US: "%m-%d-%Y %H:%M",
    DateFormat.EU: "%d-%m-%Y %H:%M",
}

_DISPLAY = {
    DateFormat.ISO: "International (YYYY-MM-DD)",
    DateFormat.US: "US (MM-DD-YYYY)",
    DateFormat.EU: "European (DD-MM-YYYY)",
}


def parse_remote(value: str) -> datetime:
    """Parse a Trello RFC 3339 timestamp ("2024-01-15T09:30:00.000Z") into an aware UTC datetime."""
    return datetime.fromisoformat(value.replace("Z", "+00:00")).astimezone(timezone.utc)


def format_remote(moment: datetime) -> str:
    """Render a datetime the way Trello returns due dates."""
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.000Z")


def to_text(value: str, date_format: DateFormat) -> str:
    """Remote timestamp → text-format date string."""
    return parse_remote(value).strftime(date_format.pattern)


def parse_text(value: str, date_format: DateFormat) -> datetime:
    """Text-format date (with or without time) → aware UTC datetime.

    Raises ValueError when the value matches neither pattern.
    """
    value = value.strip()
    for pattern in (date_format.pattern, date_format.date_pattern):
        try:
            return datetime.strptime(value, pattern).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    raise ValueError(f"'{value}' does not match {date_format.display} ({date_format.pattern})")


def text_to_remote(value: str, date_format: DateFormat) -> str:
    """Text-format date → Trello timestamp, e.g. "2024-01-15" → "2024-01-15T00:00:00.000Z"."""
    return format_remote(parse_text(value, date_format))
