"""Timestamp and duration parsing helpers."""

import re
from datetime import datetime, timedelta, timezone
from typing import Sequence

# Timestamps exchanged with the service and used in configuration
SERVICE_DATE_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

# Product metadata timestamps carry milliseconds
SENSING_DATE_FORMATS = ("%Y-%m-%dT%H:%M:%S.%fZ", "%Y-%m-%dT%H:%M:%SZ")

_DURATION_PATTERN = re.compile(
    r"^(?P<sign>[-+]?)P"
    r"(?:(?P<days>\d+)D)?"
    r"(?:T(?:(?P<hours>\d+)H)?(?:(?P<minutes>\d+)M)?(?:(?P<seconds>\d+(?:\.\d+)?)S)?)?$",
    re.IGNORECASE,
)


def parse_timestamp(value: str, formats: Sequence[str] = (SERVICE_DATE_FORMAT,)) -> datetime:
    """
    Parse a UTC timestamp.

    Args:
        value: Timestamp text, e.g. '2018-03-05T10:00:00Z'
        formats: strptime formats to try in order

    Returns:
        Timezone-aware datetime in UTC

    Raises:
        ValueError: If no format matches
    """
    text = value.strip()
    for fmt in formats:
        try:
            return datetime.strptime(text, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    raise ValueError(f"Invalid timestamp: {value!r}")


def parse_duration(value: str) -> timedelta:
    """
    Parse an ISO-8601 duration limited to days and time parts.

    Accepts the forms 'P30D', 'PT12H', 'P1DT2H30M', 'PT0.5S'.

    Raises:
        ValueError: If the text is not such a duration
    """
    text = value.strip()
    match = _DURATION_PATTERN.match(text)
    # a designator without any amount ('P', 'PT', 'P1DT') is not a duration
    if not match or text.upper().endswith(("P", "T")):
        raise ValueError(f"Invalid duration: {value!r}")

    parts = match.groupdict()
    duration = timedelta(
        days=int(parts["days"] or 0),
        hours=int(parts["hours"] or 0),
        minutes=int(parts["minutes"] or 0),
        seconds=float(parts["seconds"] or 0),
    )
    return -duration if parts["sign"] == "-" else duration


def utc_now() -> datetime:
    """Current time in UTC."""
    return datetime.now(timezone.utc)
