import math

from rewatchkit.utils import (
    clamp_percentage,
    ensure_positive_int,
    get_nested_value,
    normalize_url_for_comparison,
    parse_embedded_object,
    parse_int_loose,
    sanitize_object_literal,
    strip_query,
    urls_roughly_match,
)


def test_normalize_url_for_comparison():
    assert normalize_url_for_comparison("https://example.com/watch/1?t=30#x") == "https://example.com/watch/1"
    assert normalize_url_for_comparison("/relative/path?x=1") == "/relative/path"
    assert normalize_url_for_comparison("") is None
    assert normalize_url_for_comparison(None) is None


def test_urls_roughly_match():
    assert urls_roughly_match("https://example.com/watch/1?t=5", "https://example.com/watch/1")
    assert urls_roughly_match("https://example.com/watch/1/full", "https://example.com/watch/1")
    assert not urls_roughly_match("https://example.com/watch/1", "https://example.com/watch/2")
    assert not urls_roughly_match(None, "https://example.com/watch/1")


def test_strip_query():
    assert strip_query("https://x.tv/w/1?t=5") == "https://x.tv/w/1"
    assert strip_query(None) == ""


def test_numbers():
    assert clamp_percentage(104.2) == 100.0
    assert clamp_percentage(-3) == 0.0
    assert clamp_percentage(math.nan) == 0.0
    assert ensure_positive_int(3.9) == 3
    assert ensure_positive_int("12abc") == 12
    assert ensure_positive_int(0) is None
    assert ensure_positive_int(True) is None
    assert parse_int_loose("Episode 7") == 7
    assert parse_int_loose({"seq": 4}) == 4
    assert parse_int_loose(None) is None


def test_get_nested_value():
    data = {"models": {"videoPlayer": {"data": {"episode": 2}}}}
    assert get_nested_value(data, "models.videoPlayer.data.episode") == 2
    assert get_nested_value(data, "models.missing.data") is None
    assert get_nested_value(None, "models") is None


def test_parse_embedded_object_plain_json():
    assert parse_embedded_object('{"a": 1};') == {"a": 1}
    assert parse_embedded_object("[1, 2]") is None
    assert parse_embedded_object("") is None


def test_parse_embedded_object_with_script_escapes():
    literal = '{"title":"Stranger Things \\x26 Friends","path":"C:\\Shows"}'
    assert parse_embedded_object(literal) == {"title": "Stranger Things & Friends", "path": "C:\\Shows"}


def test_sanitize_object_literal():
    assert sanitize_object_literal('{"a":"\\x41"};;') == '{"a":"\\u0041"}'
    assert sanitize_object_literal('{"a":"line\u2028break"}') == '{"a":"line\\u2028break"}'


def test_unparseable_object_is_none():
    assert parse_embedded_object("{not: valid, json}") is None
