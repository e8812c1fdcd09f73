"""Tests for tolerant payload lookups."""
from musiclovely.utils.payloads import first_list, first_str, loads_or_none, parse_progress


class TestFirstStr:
    def test_skips_blank_values(self):
        payload = {"data": {"task_id": " ", "taskId": "t-1"}}
        assert first_str(payload, "data.task_id", "data.taskId") == "t-1"

    def test_non_dict_hops(self):
        assert first_str({"data": "oops"}, "data.taskId") is None

    def test_numbers_become_strings(self):
        assert first_str({"id": 42}, "id") == "42"


class TestFirstList:
    def test_first_non_empty_list(self):
        payload = {"data": {"sunoData": [], "musics": [{"id": "a"}, "junk"]}}
        assert first_list(payload, "data.sunoData", "data.musics") == [{"id": "a"}]


class TestParseProgress:
    def test_shapes(self):
        assert parse_progress(45) == 45
        assert parse_progress("45%") == 45
        assert parse_progress("abc") == 0
        assert parse_progress(150) == 100
        assert parse_progress(None) == 0


class TestLoadsOrNone:
    def test_object_only(self):
        assert loads_or_none(b'{"a": 1}') == {"a": 1}
        assert loads_or_none("[1, 2]") is None
        assert loads_or_none("not json") is None
