"""Tests for watermark line assembly."""

from unittest.mock import MagicMock

import pytest

from core.errors import GeocodingError
from core.models import GpsPoint, PhotoMetadata, ProviderId
from core.options import LineOptions
from core.services.line_assembler import assemble_lines, build_watermark_lines

WITH_GPS = PhotoMetadata(capture_time="2024-01-15 14:30:00", gps=GpsPoint(39.9042, 116.4074))
NO_GPS = PhotoMetadata(capture_time="2024-01-15 14:30:00")


@pytest.fixture
def resolver():
    r = MagicMock()
    r.reverse_geocode.return_value = "北京市东城区"
    return r


def test_line_order(resolver):
    """Test timestamp, location, age and custom text come out in order."""
    opts = LineOptions(
        show_location=True,
        api_keys={"amap": "k"},
        show_child_age=True,
        child_birthday="2023-06-01",
        child_age_prefix="宝宝",
        custom_text="Family trip",
    )
    assert assemble_lines(WITH_GPS, opts, resolver) == [
        "2024-01-15 14:30",
        "📍 北京市东城区",
        "宝宝 7个月",
        "Family trip",
    ]
    request = resolver.reverse_geocode.call_args[0][0]
    assert request.key_for(ProviderId.AMAP) == "k"


def test_missing_capture_time_omits_time_and_age():
    """Test absent metadata drops the dependent lines."""
    opts = LineOptions(show_child_age=True, child_birthday="2023-06-01")
    assert assemble_lines(PhotoMetadata(), opts) == []


def test_coordinates_mode():
    """Test coordinates are printed with six decimals."""
    opts = LineOptions(show_datetime=False, show_location=True, location_mode="coords")
    assert assemble_lines(WITH_GPS, opts) == ["📍 39.904200, 116.407400"]


def test_custom_location_without_gps():
    """Test custom text is used verbatim when there is no GPS."""
    opts = LineOptions(
        show_datetime=False,
        show_location=True,
        location_mode="custom",
        custom_location="Home",
        location_prefix="",
    )
    assert assemble_lines(NO_GPS, opts) == ["Home"]


def test_custom_mode_with_gps_falls_back_to_coordinates():
    """Test empty custom text with GPS shows coordinates."""
    opts = LineOptions(show_datetime=False, show_location=True, location_mode="custom")
    assert assemble_lines(WITH_GPS, opts) == ["📍 39.904200, 116.407400"]


def test_geocoding_failure_degrades_to_no_location(resolver):
    """Test provider errors drop only the location line."""
    resolver.reverse_geocode.side_effect = GeocodingError("INVALID_USER_KEY", "amap")
    opts = LineOptions(show_location=True)
    assert assemble_lines(WITH_GPS, opts, resolver) == ["2024-01-15 14:30"]


def test_empty_geocode_result_omits_line(resolver):
    """Test an empty address produces no prefixed line."""
    resolver.reverse_geocode.return_value = ""
    opts = LineOptions(show_datetime=False, show_location=True)
    assert assemble_lines(WITH_GPS, opts, resolver) == []


def test_age_in_english():
    """Test English age formatting without a prefix."""
    opts = LineOptions(
        show_datetime=False,
        show_child_age=True,
        child_birthday="2021-02-03",
        child_age_format="years-months-days",
        lang="en",
    )
    assert assemble_lines(NO_GPS, opts) == ["2 years 11 months 12 days"]


def test_build_watermark_lines_reads_metadata():
    """Test the reader is called with the path and its metadata returned."""
    reader = MagicMock(return_value=NO_GPS)
    result = build_watermark_lines("/photos/a.jpg", LineOptions(datetime_format="YYYY"), reader)
    reader.assert_called_once_with("/photos/a.jpg")
    assert result.lines == ["2024"]
    assert result.metadata is NO_GPS


def test_build_watermark_lines_propagates_read_errors():
    """Test unreadable files raise."""
    reader = MagicMock(side_effect=OSError("cannot identify image file"))
    with pytest.raises(OSError):
        build_watermark_lines("/photos/bad.jpg", LineOptions(), reader)
