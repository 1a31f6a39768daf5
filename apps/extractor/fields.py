"""
Field Extraction - Event Identity, Name and Timestamp

Raw PX items do not share a schema, so identity, display name and occurrence
time are resolved from ordered lists of FieldRule objects. Rules are tried in
order and the first one yielding a value wins.

Usage:
    from apps.extractor.fields import EventIdentifier, TimestampResolver

    event_id = EventIdentifier().extract_id(item)
    occurred = TimestampResolver().resolve(item)
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Sequence

from utils.schemas import utcnow

logger = logging.getLogger(__name__)

_MISSING = object()

MAX_SAFE_FLOAT_INT = 2**53

TIMESTAMP_FORMATS = (
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%dT%H:%M:%S.%f",
    "%Y-%m-%dT%H:%M:%SZ",
    "%Y-%m-%dT%H:%M:%S.%fZ",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%S%z",
)


def lookup(item: Any, path: str) -> Any:
    """Follow a dotted path through nested dicts, returning _MISSING on a miss."""
    node = item
    for part in path.split("."):
        if not isinstance(node, dict) or part not in node:
            return _MISSING
        node = node[part]
    return node


def as_text(value: Any) -> Optional[str]:
    """Scalar to string; containers and empty strings count as absent.

    Integral floats at or beyond 2**53 also count as absent: the decoder has
    already rounded them, so distinct ids would collapse to one string.
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer() and abs(value) >= MAX_SAFE_FLOAT_INT:
        logger.warning("Ignoring numeric value too large to represent exactly", extra={"value": value})
        return None
    if isinstance(value, (str, int, float)):
        text = str(value)
        return text or None
    return None


def parse_timestamp(value: Any) -> datetime:
    """
    Parse a timestamp against the known formats, then as epoch milliseconds.

    Naive results are taken to be UTC.

    Raises:
        ValueError: If no format matches
    """
    if isinstance(value, bool):
        raise ValueError(f"Unable to parse timestamp: {value!r}")
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)

    text = str(value).strip()
    for fmt in TIMESTAMP_FORMATS:
        try:
            parsed = datetime.strptime(text, fmt)
        except ValueError:
            continue
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)

    try:
        epoch_millis = int(text)
    except ValueError:
        raise ValueError(f"Unable to parse timestamp: {value!r}") from None
    return datetime.fromtimestamp(epoch_millis / 1000, tz=timezone.utc)


@dataclass(frozen=True)
class FieldRule:
    """A field path plus an optional parser applied to the value found there."""

    path: str
    parser: Optional[Callable[[Any], Any]] = None

    def apply(self, item: Any) -> Any:
        """
        Returns:
            Parsed value, or None when the field is absent or null

        Raises:
            ValueError: If the parser rejects the value
        """
        value = lookup(item, self.path)
        if value is _MISSING or value is None:
            return None
        if self.parser is None:
            return value
        return self.parser(value)


ID_RULES = (
    FieldRule("id", as_text),
    FieldRule("eventId", as_text),
    FieldRule("globalContext.eventId", as_text),
    FieldRule("_id", as_text),
)

NAME_RULES = (
    FieldRule("eventName", as_text),
    FieldRule("name", as_text),
    FieldRule("type", as_text),
    FieldRule("eventType", as_text),
)

TIMESTAMP_RULES = (
    FieldRule("timestamp", parse_timestamp),
    FieldRule("eventTime", parse_timestamp),
    FieldRule("createdAt", parse_timestamp),
    FieldRule("occurred", parse_timestamp),
)


def first_match(item: Any, rules: Sequence[FieldRule]) -> Any:
    """First non-null result of `rules`; rules whose parser fails are skipped."""
    for rule in rules:
        try:
            value = rule.apply(item)
        except (ValueError, TypeError, OverflowError, OSError) as e:
            logger.debug("Field rule rejected value", extra={"path": rule.path, "error": str(e)})
            continue
        if value is not None:
            return value
    return None


class EventIdentifier:
    """Derives a stable event id and a display name from a raw item."""

    DEFAULT_NAME = "unknown"

    def __init__(
        self,
        id_rules: Sequence[FieldRule] = ID_RULES,
        name_rules: Sequence[FieldRule] = NAME_RULES,
    ) -> None:
        self.id_rules = tuple(id_rules)
        self.name_rules = tuple(name_rules)

    def extract_id(self, item: Any) -> Optional[str]:
        return first_match(item, self.id_rules)

    def extract_name(self, item: Any) -> str:
        return first_match(item, self.name_rules) or self.DEFAULT_NAME


class TimestampResolver:
    """Resolves when an event occurred, falling back to ingestion time."""

    def __init__(self, rules: Sequence[FieldRule] = TIMESTAMP_RULES) -> None:
        self.rules = tuple(rules)

    def resolve(self, item: Any, now: Optional[datetime] = None) -> datetime:
        resolved = first_match(item, self.rules)
        if resolved is None:
            return now or utcnow()
        return resolved
