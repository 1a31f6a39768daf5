"""
Response Normalizer - Canonical Page Envelope

Maps the heterogeneous JSON shapes returned by the PX API into a single
Envelope (items, next cursor, has-more flag).

Item arrays are located in a fixed priority order: "data", then the
category aliases "customEvents" and "users", then the body itself when it is
an array. An object carrying neither items nor pagination fields is rejected
rather than read as an empty final page. A missing cursor always ends
pagination, whatever "hasMore" says.
"""

import logging
from typing import Any, Optional

import orjson

from utils.errors import ResponseParseError
from utils.schemas import Envelope

logger = logging.getLogger(__name__)

ITEM_FIELDS = ("data", "customEvents", "users")
CURSOR_FIELDS = ("nextCursor", "scrollId")
PAGINATION_FIELDS = CURSOR_FIELDS + ("hasMore",)


def normalize(raw_body: str | bytes, status_code: int) -> Envelope:
    """
    Decode one page response into an Envelope.

    Args:
        raw_body: Response body as returned by the API
        status_code: HTTP status of the response

    Returns:
        Normalized envelope

    Raises:
        ResponseParseError: If the body is not JSON, is a JSON scalar, or
            has neither item nor pagination fields, or carries inconsistent
            pagination fields
    """
    text = raw_body.decode("utf-8", errors="replace") if isinstance(raw_body, bytes) else raw_body

    try:
        root = orjson.loads(raw_body)
    except orjson.JSONDecodeError as e:
        raise ResponseParseError(f"Response body is not valid JSON: {e}") from e

    if isinstance(root, list):
        return Envelope(
            success=_is_success(status_code),
            status_code=status_code,
            raw_body=text,
            items=root,
        )

    if not isinstance(root, dict):
        raise ResponseParseError(f"Unexpected response body type: {type(root).__name__}")

    if not any(name in root for name in ITEM_FIELDS + PAGINATION_FIELDS):
        raise ResponseParseError(f"Unrecognized response object with keys: {sorted(root)}")

    cursor = _extract_cursor(root)
    has_more = root.get("hasMore", False)
    if has_more is None:
        has_more = False
    if not isinstance(has_more, bool):
        raise ResponseParseError(f"hasMore must be a boolean, got {has_more!r}")

    if has_more and cursor is None:
        logger.warning("Response claims more pages but carries no cursor, stopping pagination")

    return Envelope(
        success=_is_success(status_code),
        status_code=status_code,
        raw_body=text,
        items=_extract_items(root),
        next_cursor=cursor,
        has_more=has_more and cursor is not None,
    )


def _is_success(status_code: int) -> bool:
    return 200 <= status_code < 300


def _extract_items(root: dict[str, Any]) -> list[Any]:
    for name in ITEM_FIELDS:
        value = root.get(name)
        if value is None:
            continue
        if not isinstance(value, list):
            raise ResponseParseError(f"Field '{name}' must be an array, got {type(value).__name__}")
        return value
    return []


def _extract_cursor(root: dict[str, Any]) -> Optional[str]:
    for name in CURSOR_FIELDS:
        value = root.get(name)
        if value is None:
            continue
        if isinstance(value, bool) or not isinstance(value, (str, int, float)):
            raise ResponseParseError(f"Cursor field '{name}' must be a scalar, got {value!r}")
        cursor = str(value)
        return cursor or None
    return None
