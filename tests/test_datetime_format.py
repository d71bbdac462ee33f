"""Tests for timestamp parsing and token formatting."""

from datetime import datetime

from core.services.datetime_format import (
    format_datetime,
    normalize_exif_datetime,
    parse_datetime,
)


def test_default_format():
    """Test the common display format."""
    assert format_datetime("2024-01-15 14:30:05", "YYYY-MM-DD HH:mm") == "2024-01-15 14:30"


def test_short_tokens_do_not_rescan_output():
    """Test that substituted digits are never treated as tokens."""
    assert format_datetime("2024-03-05 09:07:08", "YY/M/D H:m:s") == "24/3/5 9:7:8"
    assert format_datetime("2024-12-25 18:45:33", "D.M.YYYY") == "25.12.2024"


def test_literal_text_kept():
    """Test that non-token characters pass through."""
    assert format_datetime("2024-01-15 14:30:00", "YYYY年MM月DD日") == "2024年01月15日"


def test_unparseable_value_returned_unchanged():
    """Test garbage input is echoed back."""
    assert format_datetime("sometime", "YYYY") == "sometime"


def test_empty_value():
    """Test empty input gives empty output."""
    assert format_datetime("", "YYYY") == ""
    assert format_datetime(None, "YYYY") == ""


def test_format_reparses_to_same_instant():
    """Test a full-precision format parses back to the original timestamp."""
    text = format_datetime("2023-07-04 06:05:09", "YYYY-MM-DD HH:mm:ss")
    assert parse_datetime(text) == datetime(2023, 7, 4, 6, 5, 9)


def test_normalize_exif_datetime():
    """Test the EXIF colon date prefix becomes hyphenated."""
    assert normalize_exif_datetime("2024:01:15 14:30:00\x00") == "2024-01-15 14:30:00"
    assert normalize_exif_datetime("2024-01-15 14:30:00") == "2024-01-15 14:30:00"


def test_parse_accepts_date_only():
    """Test birthdays without a time part parse."""
    assert parse_datetime("2023-06-01") == datetime(2023, 6, 1)
    assert parse_datetime("nope") is None
