import pytest

from etagproxy._utils import build_url, filter_mapping, is_truthy


def test_filter_mapping_is_case_insensitive():
    assert filter_mapping({"a": 1, "B": 2, "c": 3}, ["b"]) == {"a": 1, "c": 3}


@pytest.mark.parametrize("value", ["1", "true", "Yes", " on "])
def test_is_truthy(value: str):
    assert is_truthy(value)


@pytest.mark.parametrize("value", [None, "", "0", "false", "off", "maybe"])
def test_is_not_truthy(value):
    assert not is_truthy(value)


def test_build_url():
    assert build_url("https", "example.com", None, "/a?b=1") == "https://example.com/a?b=1"
    assert build_url("http", "backend", 8080, "/") == "http://backend:8080/"
    assert build_url("http", "backend", None, "relative") == "http://backend/relative"
