"""Tests for hour, date and comment body helpers."""

import pytest
from datetime import datetime, timezone
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from services.formatting import (
    format_date,
    format_difference,
    format_hours,
    format_number,
    parse_date,
    parse_hours_text,
    to_number,
)
from services.rich_text import ContainerNode, TextNode, comment_body_text, flatten, parse_document


class TestFormatHours:
    """Test hour formatting."""

    @pytest.mark.parametrize("hours,expected", [
        (0, "-"),
        (None, "-"),
        (2.5, "2h 30m"),
        (3.25, "3h 15m"),
        (0.99999, "0h 59m"),
        (26, "26h 0m"),
    ])
    def test_format_hours(self, hours, expected):
        assert format_hours(hours) == expected

    def test_difference_uses_absolute_value(self):
        assert format_difference(-1.5) == "1h 30m"
        assert format_difference(0) == "-"


class TestNumbers:
    """Test numeric coercion."""

    def test_to_number(self):
        assert to_number("2.5") == 2.5
        assert to_number("abc") == 0
        assert to_number(True) == 0
        assert to_number(float("nan")) == 0

    def test_format_number(self):
        assert format_number(5.0) == "5"
        assert format_number(2.5) == "2.5"

    @pytest.mark.parametrize("text,expected", [
        ("2h 30m", 2.5),
        ("45m", 0.75),
        ("3h", 3),
        ("1.5", 1.5),
        (4, 4),
        ("soon", 0),
        (None, 0),
    ])
    def test_parse_hours_text(self, text, expected):
        assert parse_hours_text(text) == expected


class TestDates:
    """Test Jira date parsing."""

    def test_parses_offsets(self):
        parsed = parse_date("2024-10-31T12:11:56.289-0400")
        assert parsed.astimezone(timezone.utc) == datetime(2024, 10, 31, 16, 11, 56, 289000, tzinfo=timezone.utc)

    def test_parses_zulu(self):
        assert parse_date("2024-01-14T00:00:00.000Z") == datetime(2024, 1, 14, tzinfo=timezone.utc)

    def test_date_only_is_utc_midnight(self):
        assert parse_date("2024-01-14") == datetime(2024, 1, 14, tzinfo=timezone.utc)

    def test_invalid_dates(self):
        assert parse_date("") is None
        assert parse_date("not a date") is None

    def test_format_date_converts_to_utc(self):
        assert format_date("2024-01-03T22:30:00.000-0500") == "2024-01-04"


class TestRichText:
    """Test comment body flattening."""

    def test_document_flattens_depth_first(self):
        body = {
            "type": "doc",
            "content": [
                {"type": "paragraph", "content": [{"type": "text", "text": "hi"}]},
                {"type": "text", "text": "there"}
            ]
        }
        assert comment_body_text(body) == "hi there"

    def test_parse_document_shapes(self):
        node = parse_document({"content": [{"text": "a"}, {"content": [{"text": "b"}]}, {"type": "rule"}]})
        assert node == ContainerNode((TextNode("a"), ContainerNode((TextNode("b"),)), ContainerNode(())))
        assert flatten(node) == "a b "

    def test_plain_string_body(self):
        assert comment_body_text("  line one\nline two  ") == "line one line two"

    def test_unknown_body_is_dumped(self):
        body = {"version": 1, "attrs": {"x": "y" * 200}}
        text = comment_body_text(body)
        assert text.startswith('{"version":1,')
        assert len(text) == 100

    def test_empty_body(self):
        assert comment_body_text(None) == ""
