"""Cursor pagination bound to a hash of the resolved parameters."""

import base64
import binascii
import hashlib
import json
from typing import Any, Generic, Sequence, TypeVar

import structlog
from pydantic import BaseModel

from dinequery.cache import canonical_key
from dinequery.config import get_settings
from dinequery.models.api import PageInfo

logger = structlog.get_logger()
settings = get_settings()

T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    """One page of candidates plus navigation cursors."""

    items: list[T]
    next_cursor: str | None = None
    prev_cursor: str | None = None
    page_info: PageInfo


def hash_params(intent: str, params: dict[str, Any]) -> str:
    """Stable hash of an intent and its parameters."""
    payload = f"{intent}|{canonical_key(params)}"
    return hashlib.sha1(payload.encode("utf-8")).hexdigest()


def clamp_limit(limit: int | None) -> int:
    if limit is None:
        return settings.default_page_size
    return max(1, min(int(limit), settings.max_page_size))


def encode_cursor(offset: int, limit: int, params_hash: str) -> str:
    """Encode ``{o, l, h}`` as unpadded base64url JSON."""
    raw = json.dumps({"o": offset, "l": limit, "h": params_hash}, separators=(",", ":"))
    return base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii").rstrip("=")


def decode_cursor(token: str | None, params_hash: str) -> tuple[int, int | None]:
    """Decode a cursor for the current parameters.

    A malformed token or one issued for different parameters restarts
    at offset 0 instead of failing.

    Returns:
        Tuple of (offset, limit or None)
    """
    if not token:
        return 0, None
    try:
        padded = token + "=" * (-len(token) % 4)
        data = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")))
        offset, limit, cursor_hash = int(data["o"]), data.get("l"), data["h"]
    except (binascii.Error, UnicodeError, ValueError, KeyError, TypeError) as e:
        logger.info("cursor_invalid", error=str(e))
        return 0, None

    if cursor_hash != params_hash:
        logger.info("cursor_params_changed")
        return 0, None
    return max(0, offset), int(limit) if isinstance(limit, int) else None


def paginate(
    items: Sequence[T],
    params_hash: str,
    limit: int | None = None,
    cursor: str | None = None,
) -> Page[T]:
    """Slice an already-sorted candidate list.

    Args:
        items: Full candidate list in display order
        params_hash: Hash of the current resolved parameters
        limit: Requested page size; a valid cursor's size applies when omitted
        cursor: Token from a previous page

    Returns:
        Page with next/previous cursors and a page-info summary
    """
    offset, cursor_limit = decode_cursor(cursor, params_hash)
    size = clamp_limit(limit if limit is not None else cursor_limit)
    total = len(items)
    offset = min(offset, max(0, total - 1))

    page_items = list(items[offset : offset + size])
    has_next = offset + size < total
    has_prev = offset > 0

    return Page(
        items=page_items,
        next_cursor=encode_cursor(offset + size, size, params_hash) if has_next else None,
        prev_cursor=encode_cursor(max(0, offset - size), size, params_hash) if has_prev else None,
        page_info=PageInfo(
            offset=offset,
            limit=size,
            total=total,
            has_next=has_next,
            has_prev=has_prev,
        ),
    )
