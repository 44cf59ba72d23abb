import pytest

from trafstat.conv import qs_get, split


def test_split_documented_example():
    assert split(".", "..one...two....") == ["one", "two"]


def test_split_only_delimiters():
    assert split("/", "////") == []


def test_split_empty_string():
    assert split("/", "") == []


def test_split_chunks_never_contain_delimiter():
    chunks = split("/", "/a//bc///d/")
    assert all("/" not in c and c for c in chunks)
    assert "".join(chunks) == "/a//bc///d/".replace("/", "")


def test_split_join_roundtrip():
    parts = ["10.0.0.0", "8"]
    assert split("/", "/".join(parts)) == parts


def test_split_bad_delimiter():
    with pytest.raises(ValueError):
        split("ab", "xabx")


def test_qs_get_documented_examples():
    qs = "sort=in&start=20"
    assert qs_get(qs, "sort") == "in"
    assert qs_get(qs, "start") == "20"
    assert qs_get(qs, "end") is None


def test_qs_get_none_query():
    assert qs_get(None, "sort") is None


def test_qs_get_empty_trailing_value_not_found():
    assert qs_get("sort=", "sort") is None
    assert qs_get("a=b&sort=", "sort") is None


def test_qs_get_key_prefix_does_not_match():
    assert qs_get("sorted=x&sort=out", "sort") == "out"


def test_qs_get_value_stops_at_ampersand():
    value = qs_get("full=a&b=c", "full")
    assert "&" not in value
    assert value == "a"