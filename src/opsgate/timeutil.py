"""
Date and timestamp helpers.

Nothing in OpsGate reads the wall clock except utc_now(), and every
evaluator that depends on time takes the current time as an argument.
"""

from datetime import UTC, date, datetime

from opsgate.errors import DateFormatError


def utc_now() -> datetime:
    return datetime.now(UTC)


def format_utc(moment: datetime) -> str:
    """Format a datetime as YYYY-MM-DDTHH:MM:SSZ."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


def is_iso8601(value: object) -> bool:
    """True if value is a non-empty ISO-8601 date or timestamp string."""
    if not isinstance(value, str) or not value.strip():
        return False
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        datetime.fromisoformat(text)
    except ValueError:
        return False
    return True


def parse_date(value: "str | date | datetime") -> date:
    """
    Parse a YYYY-MM-DD date.

    Raises:
        DateFormatError: If value is not a valid date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError as e:
        raise DateFormatError(value=str(value)) from e
