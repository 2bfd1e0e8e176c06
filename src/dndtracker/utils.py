import re
from datetime import UTC, datetime

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def is_email(value: str) -> bool:
    return bool(EMAIL_RE.fullmatch(value))


def now() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes returned by MongoDB."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value
