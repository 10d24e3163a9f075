"""Opaque keyset cursors.

A cursor is URL-safe base64 of ``{"k": [sort values], "s": signature}``.
The signature binds it to the sort it was produced under, so a cursor from
one ordering can never be replayed against another.
"""

from __future__ import annotations

import base64
import binascii
import json
from typing import Callable

from taxonomy_api.exceptions import InvalidCursorError
from taxonomy_api.models.pagination_models import PageDirection, PageInfo
from taxonomy_api.models.search_models import SortField, SortKey, SortOrder


def sort_signature(sort: list[SortKey], prefix: str = "search") -> str:
    keys = ",".join(f"{k.field.value}:{k.order.value}" for k in sort)
    return f"{prefix}|{keys}"


def with_tiebreaker(sort: list[SortKey]) -> list[SortKey]:
    """Append the unique id key unless the sort already ends on it."""
    if sort and sort[-1].field == SortField.ID:
        return list(sort)
    return [k for k in sort if k.field != SortField.ID] + [SortKey(field=SortField.ID)]


def reverse_sort(sort: list[SortKey]) -> list[SortKey]:
    return [
        SortKey(
            field=k.field,
            order=SortOrder.DESC if k.order == SortOrder.ASC else SortOrder.ASC,
        )
        for k in sort
    ]


def parse_sort(values: list[str] | None) -> list[SortKey]:
    """Parse ``field:order`` strings. Empty means relevance.

    Raises ValueError for an unknown field or order.
    """
    if not values:
        return [SortKey(field=SortField.SCORE, order=SortOrder.DESC)]
    keys: list[SortKey] = []
    for raw in values:
        field, _, order = raw.partition(":")
        keys.append(
            SortKey(
                field=SortField(field.strip()),
                order=SortOrder(order.strip() or "asc"),
            )
        )
    return keys


# Store listings and the children fast path share this order so their cursors
# stay interchangeable when one source falls back to the other
KEYSET_SORT = [
    SortKey(field=SortField.LEVEL),
    SortKey(field=SortField.LABEL),
    SortKey(field=SortField.ID),
]


def _value_fits(field: SortField, value) -> bool:
    if isinstance(value, bool):
        return False
    if field == SortField.SCORE:
        return isinstance(value, (int, float))
    if field == SortField.LEVEL:
        return isinstance(value, int)
    return isinstance(value, str)


def decode_sort_cursor(cursor: str, sort: list[SortKey], signature: str) -> list:
    """Decode a cursor and check each value against the field it sorts on."""
    values = decode_cursor(cursor, signature, len(sort))
    if not all(_value_fits(k.field, v) for k, v in zip(sort, values)):
        raise InvalidCursorError("Cursor sort values have the wrong types")
    return values


def decode_keyset(cursor: str, signature: str) -> tuple[int, str, str]:
    level, label, concept_id = decode_sort_cursor(cursor, KEYSET_SORT, signature)
    return level, label, concept_id


def encode_cursor(values: list, signature: str) -> str:
    payload = json.dumps({"k": values, "s": signature}, separators=(",", ":"))
    return base64.urlsafe_b64encode(payload.encode()).decode().rstrip("=")


def decode_cursor(cursor: str, signature: str, arity: int) -> list:
    try:
        padded = cursor + "=" * (-len(cursor) % 4)
        payload = json.loads(base64.urlsafe_b64decode(padded.encode()))
    except (binascii.Error, ValueError, UnicodeDecodeError) as e:
        raise InvalidCursorError("Cursor is not decodable") from e

    if not isinstance(payload, dict) or not isinstance(payload.get("k"), list):
        raise InvalidCursorError("Cursor payload is malformed")
    if payload.get("s") != signature:
        raise InvalidCursorError("Cursor was issued for a different sort order")
    if len(payload["k"]) != arity:
        raise InvalidCursorError("Cursor has the wrong number of sort values")
    return payload["k"]


def paginate(
    rows: list,
    page_size: int,
    direction: PageDirection,
    had_cursor: bool,
    key: Callable[[object], list],
    signature: str,
) -> tuple[list, PageInfo]:
    """Turn `page_size + 1` rows fetched in query order into a page.

    For `prev` the rows arrive in reversed sort order and are flipped back
    here, so callers always get the page in display order.
    """
    has_more = len(rows) > page_size
    rows = rows[:page_size]
    if direction == PageDirection.PREV:
        rows.reverse()

    first = encode_cursor(key(rows[0]), signature) if rows else None
    last = encode_cursor(key(rows[-1]), signature) if rows else None
    if direction == PageDirection.PREV:
        info = PageInfo(
            page_size=page_size,
            next_cursor=last,
            prev_cursor=first if has_more else None,
            has_more=has_more,
        )
    else:
        info = PageInfo(
            page_size=page_size,
            next_cursor=last if has_more else None,
            prev_cursor=first if had_cursor else None,
            has_more=has_more,
        )
    return rows, info
