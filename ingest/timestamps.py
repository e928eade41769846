from __future__ import annotations

import logging
import re
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime


logger = logging.getLogger(__name__)

_DATE_ONLY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class InvalidTimestamp(ValueError):
    def __init__(self, value: str) -> None:
        super().__init__(f"Invalid timestamp format: {value}")
        self.value = value


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


def to_iso(dt: datetime) -> str:
    return dt.astimezone(tz=UTC).isoformat(timespec="milliseconds").replace(
        "+00:00", "Z"
    )


def utc_now_iso() -> str:
    return to_iso(utc_now())


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(tz=UTC)


def parse_timestamp(value: str) -> datetime:
    """Parse one of the accepted timestamp shapes into an aware UTC datetime.

    Accepted: ISO-8601 with ``Z``, ISO-8601 without a zone (read as UTC), a
    bare ``YYYY-MM-DD`` date (UTC midnight), or an RFC 2822 date string.
    """
    text = value.strip()
    if not text:
        raise InvalidTimestamp(value)

    if _DATE_ONLY_RE.match(text):
        text = f"{text}T00:00:00Z"

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        try:
            parsed = parsedate_to_datetime(text)
        except (TypeError, ValueError, IndexError):
            raise InvalidTimestamp(value) from None

    # Offsets that push a datetime past year 1 or 9999 overflow on conversion.
    try:
        return _as_utc(parsed)
    except OverflowError:
        raise InvalidTimestamp(value) from None


def normalize_timestamp(value: str) -> str:
    result = to_iso(parse_timestamp(value))
    logger.debug("formatted timestamp: %s -> %s", value, result)
    return result


def radmap_timestamp(value: str | None) -> str:
    """Compact ``YYYYMMDDHHMM`` UTC form used by the radar map service."""
    if not value:
        return ""
    try:
        dt = parse_timestamp(value)
    except InvalidTimestamp:
        return ""
    return dt.strftime("%Y%m%d%H%M")
