from datetime import datetime, timezone
from typing import Optional, Union

from logging_config import logger

Timestamp = Union[str, datetime]


def now_iso() -> str:
    """Current UTC time as an ISO-8601 string with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def to_iso(value: Optional[Timestamp]) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.isoformat().replace("+00:00", "Z")
    return str(value)


def parse_instant(value: Optional[Timestamp]) -> Optional[datetime]:
    """Parse an ISO-8601 string or datetime into an aware UTC datetime.

    Returns None when the value is missing or cannot be parsed. Naive values
    are taken to be UTC.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def is_newer(candidate: Optional[Timestamp], baseline: Optional[Timestamp]) -> bool:
    """True only when both values parse and candidate is strictly later."""
    if not candidate or not baseline:
        return False
    parsed_candidate = parse_instant(candidate)
    parsed_baseline = parse_instant(baseline)
    if parsed_candidate is None or parsed_baseline is None:
        logger.warning(
            f"Unparsable timestamp in staleness check: candidate={candidate!r}, baseline={baseline!r}"
        )
        return False
    return parsed_candidate > parsed_baseline
