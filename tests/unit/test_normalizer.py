"""Tests for response normalization into page envelopes."""

import orjson
import pytest

from apps.extractor.normalizer import normalize
from utils.errors import ResponseParseError


def _body(payload) -> bytes:
    return orjson.dumps(payload)


class TestItemLocation:
    def test_data_field_wins_over_aliases(self) -> None:
        body = _body({"data": [{"id": 1}], "customEvents": [{"id": 2}], "users": [{"id": 3}]})
        assert normalize(body, 200).items == [{"id": 1}]

    def test_custom_events_alias(self) -> None:
        body = _body({"customEvents": [{"id": 2}], "users": [{"id": 3}]})
        assert normalize(body, 200).items == [{"id": 2}]

    def test_users_alias(self) -> None:
        assert normalize(_body({"users": [{"id": 3}]}), 200).items == [{"id": 3}]

    def test_top_level_array(self) -> None:
        envelope = normalize(_body([{"id": 1}, {"id": 2}]), 200)
        assert envelope.items == [{"id": 1}, {"id": 2}]
        assert envelope.has_more is False
        assert envelope.next_cursor is None

    def test_null_data_falls_through_to_alias(self) -> None:
        body = _body({"data": None, "customEvents": [{"id": 2}]})
        assert normalize(body, 200).items == [{"id": 2}]

    def test_pagination_only_object_is_empty_page(self) -> None:
        envelope = normalize(_body({"hasMore": False}), 200)
        assert envelope.items == []
        assert envelope.has_more is False

    @pytest.mark.parametrize(
        "payload",
        [{"error": "scroll context expired"}, {}, {"results": [{"id": 1}], "total": 1}],
    )
    def test_unrecognized_object_is_rejected(self, payload) -> None:
        with pytest.raises(ResponseParseError, match="Unrecognized response object"):
            normalize(_body(payload), 200)

    def test_non_array_item_field_is_rejected(self) -> None:
        with pytest.raises(ResponseParseError):
            normalize(_body({"data": {"id": 1}}), 200)


class TestPagination:
    def test_cursor_and_has_more(self) -> None:
        envelope = normalize(_body({"data": [], "scrollId": "abc", "hasMore": True}), 200)
        assert envelope.next_cursor == "abc"
        assert envelope.has_more is True

    def test_next_cursor_field_preferred(self) -> None:
        envelope = normalize(_body({"data": [], "nextCursor": "n1", "scrollId": "s1", "hasMore": True}), 200)
        assert envelope.next_cursor == "n1"

    def test_missing_cursor_forces_has_more_false(self) -> None:
        envelope = normalize(_body({"data": [{"id": 1}], "hasMore": True}), 200)
        assert envelope.has_more is False
        assert envelope.next_cursor is None

    def test_null_cursor_forces_has_more_false(self) -> None:
        envelope = normalize(_body({"data": [], "scrollId": None, "hasMore": True}), 200)
        assert envelope.has_more is False

    def test_missing_has_more_defaults_false(self) -> None:
        envelope = normalize(_body({"data": [], "scrollId": "abc"}), 200)
        assert envelope.next_cursor == "abc"
        assert envelope.has_more is False

    def test_numeric_cursor_is_stringified(self) -> None:
        envelope = normalize(_body({"data": [], "scrollId": 42, "hasMore": True}), 200)
        assert envelope.next_cursor == "42"

    def test_non_boolean_has_more_is_rejected(self) -> None:
        with pytest.raises(ResponseParseError):
            normalize(_body({"data": [], "scrollId": "abc", "hasMore": "yes"}), 200)

    def test_object_cursor_is_rejected(self) -> None:
        with pytest.raises(ResponseParseError):
            normalize(_body({"data": [], "scrollId": {"v": 1}, "hasMore": True}), 200)


class TestBodyAndStatus:
    @pytest.mark.parametrize("status,success", [(200, True), (204, True), (299, True), (301, False), (404, False)])
    def test_success_reflects_2xx(self, status: int, success: bool) -> None:
        assert normalize(_body({"data": []}), status).success is success

    def test_raw_body_kept_as_text(self) -> None:
        envelope = normalize(b'{"data": []}', 200)
        assert envelope.raw_body == '{"data": []}'
        assert envelope.status_code == 200

    def test_accepts_str_body(self) -> None:
        assert normalize('{"data": [{"id": 1}]}', 200).items == [{"id": 1}]

    def test_invalid_json_raises(self) -> None:
        with pytest.raises(ResponseParseError):
            normalize(b"<html>Bad Gateway</html>", 200)

    def test_empty_body_raises(self) -> None:
        with pytest.raises(ResponseParseError):
            normalize(b"", 200)

    def test_json_scalar_raises(self) -> None:
        with pytest.raises(ResponseParseError):
            normalize(b'"ok"', 200)
