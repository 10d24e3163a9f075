"""Tests for opaque keyset cursors and page assembly."""

import base64

import pytest

from taxonomy_api.exceptions import InvalidCursorError
from taxonomy_api.models.pagination_models import PageDirection
from taxonomy_api.models.search_models import SortField, SortKey, SortOrder
from taxonomy_api.services.search.cursor import (
    KEYSET_SORT,
    decode_cursor,
    decode_keyset,
    decode_sort_cursor,
    encode_cursor,
    paginate,
    parse_sort,
    reverse_sort,
    sort_signature,
    with_tiebreaker,
)

SIG = sort_signature(KEYSET_SORT, prefix="children")


def test_cursor_roundtrip():
    cursor = encode_cursor([1, "Heart", "c7"], SIG)
    assert "=" not in cursor
    assert decode_keyset(cursor, SIG) == (1, "Heart", "c7")


def test_cursor_from_other_sort_rejected():
    cursor = encode_cursor([1, "Heart", "c7"], sort_signature(KEYSET_SORT, prefix="parents"))
    with pytest.raises(InvalidCursorError):
        decode_cursor(cursor, SIG, 3)


@pytest.mark.parametrize("garbage", ["!!!", "bm90IGpzb24", base64.urlsafe_b64encode(b"[1,2]").decode()])
def test_garbage_cursor_rejected(garbage):
    with pytest.raises(InvalidCursorError):
        decode_cursor(garbage, SIG, 3)


def test_wrong_arity_rejected():
    cursor = encode_cursor([1, "Heart"], SIG)
    with pytest.raises(InvalidCursorError):
        decode_cursor(cursor, SIG, 3)


def test_wrong_value_types_rejected():
    cursor = encode_cursor(["one", "Heart", "c7"], SIG)
    with pytest.raises(InvalidCursorError):
        decode_keyset(cursor, SIG)


RELEVANCE = with_tiebreaker(parse_sort(None))
RELEVANCE_SIG = sort_signature(RELEVANCE)


@pytest.mark.parametrize(
    "values",
    [["not-a-score", "c7"], [True, "c7"], [2.5, 7], [None, "c7"]],
)
def test_relevance_cursor_values_checked_per_field(values):
    cursor = encode_cursor(values, RELEVANCE_SIG)
    with pytest.raises(InvalidCursorError):
        decode_sort_cursor(cursor, RELEVANCE, RELEVANCE_SIG)


def test_integral_score_accepted():
    cursor = encode_cursor([3, "c7"], RELEVANCE_SIG)
    assert decode_sort_cursor(cursor, RELEVANCE, RELEVANCE_SIG) == [3, "c7"]


def test_parse_sort():
    assert parse_sort([]) == [SortKey(field=SortField.SCORE, order=SortOrder.DESC)]
    assert parse_sort(["label", "level:desc"]) == [
        SortKey(field=SortField.LABEL, order=SortOrder.ASC),
        SortKey(field=SortField.LEVEL, order=SortOrder.DESC),
    ]
    with pytest.raises(ValueError):
        parse_sort(["color:asc"])


def test_tiebreaker_and_reverse():
    sort = with_tiebreaker([SortKey(field=SortField.LABEL)])
    assert [k.field for k in sort] == [SortField.LABEL, SortField.ID]
    assert with_tiebreaker(KEYSET_SORT) == KEYSET_SORT
    assert [k.order for k in reverse_sort(sort)] == [SortOrder.DESC, SortOrder.DESC]


# --- paginate ---


def _key(row):
    return [row]


def test_first_page_has_only_next_cursor():
    rows, info = paginate([1, 2, 3], 2, PageDirection.NEXT, False, _key, SIG)
    assert rows == [1, 2]
    assert info.has_more is True
    assert decode_cursor(info.next_cursor, SIG, 1) == [2]
    assert info.prev_cursor is None


def test_last_page_has_only_prev_cursor():
    rows, info = paginate([5], 2, PageDirection.NEXT, True, _key, SIG)
    assert rows == [5]
    assert info.next_cursor is None
    assert decode_cursor(info.prev_cursor, SIG, 1) == [5]


def test_prev_page_is_returned_in_display_order():
    # Rows arrive in reversed sort order for a backwards page
    rows, info = paginate([4, 3, 2], 2, PageDirection.PREV, True, _key, SIG)
    assert rows == [3, 4]
    assert decode_cursor(info.next_cursor, SIG, 1) == [4]
    assert decode_cursor(info.prev_cursor, SIG, 1) == [3]


def test_empty_page():
    rows, info = paginate([], 2, PageDirection.NEXT, True, _key, SIG)
    assert rows == []
    assert info.next_cursor is None
    assert info.prev_cursor is None
