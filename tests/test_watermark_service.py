"""Tests for preview generation, batch processing and API key checks."""

import os
from unittest.mock import MagicMock, patch

from PIL import Image
import pytest

from core.errors import GeocodingError, InvalidInputError
from core.models import Granularity, ProviderId
from core.options import LineOptions, WatermarkOptions
from infrastructure.metadata import read_metadata
from infrastructure.watermark_service import BEIJING, NEW_YORK, WatermarkService


@pytest.fixture
def geocoder():
    g = MagicMock()
    g.reverse_geocode.return_value = "北京市"
    return g


@pytest.fixture
def service(fake_renderer, geocoder):
    matcher = MagicMock()
    matcher.resolve.side_effect = lambda family: family
    return WatermarkService(
        reader=read_metadata, geocoder=geocoder, renderer=fake_renderer, font_matcher=matcher
    )


@pytest.fixture
def out_dir(tmp_path):
    path = tmp_path / "out"
    path.mkdir()
    return str(path)


def test_process_photo_writes_watermarked_output(service, photo_factory, out_dir):
    """Test a photo is stamped and written with the output naming rule."""
    src = photo_factory("beach.jpg", size=(400, 300))
    written = service.process_photo(src, out_dir, LineOptions(), WatermarkOptions())
    assert written == os.path.join(out_dir, "beach_wm.jpg")
    with Image.open(written) as im, Image.open(src) as original:
        assert im.size == (400, 300)
        assert im.getpixel((399 - 30, 299 - 25)) != original.getpixel((399 - 30, 299 - 25))


def test_photo_without_lines_is_copied_unchanged_in_size(service, photo_factory, out_dir):
    """Test a photo with nothing to stamp is still re-encoded."""
    src = photo_factory("plain.jpg", capture_time=None, size=(50, 40))
    written = service.process_photo(src, out_dir, LineOptions(), WatermarkOptions(quality=95))
    with Image.open(written) as im:
        assert im.size == (50, 40)


def test_generate_preview_scales_font(service, fake_renderer, photo_factory):
    """Test previews fit 800px and scale explicit sizes."""
    src = photo_factory(size=(1600, 1200))
    preview = service.generate_preview(
        src, LineOptions(), WatermarkOptions(font_size=40, stroke_width=3)
    )
    assert preview.size == (800, 600)
    assert preview.mode == "RGB"
    assert "font-size:20px" in fake_renderer.markups[-1]


def test_generate_preview_data_url(service, photo_factory):
    """Test the base64 data URL form."""
    src = photo_factory(size=(100, 80))
    url = service.generate_preview_data_url(src, LineOptions(), WatermarkOptions())
    assert url.startswith("data:image/jpeg;base64,")


def test_preview_rejects_unsupported_path(service):
    """Test invalid paths raise InvalidInputError."""
    with pytest.raises(InvalidInputError):
        service.generate_preview("/tmp/file.gif", LineOptions(), WatermarkOptions())


def test_batch_records_success_failure_and_skip(service, photo_factory, out_dir, tmp_path):
    """Test one bad file does not stop the batch."""
    good = photo_factory("good.jpg")
    existing = photo_factory("existing.jpg")
    broken = tmp_path / "broken.jpg"
    broken.write_text("not really a jpeg", encoding="utf-8")
    with open(os.path.join(out_dir, "existing_wm.jpg"), "wb") as f:
        f.write(b"old")

    progress = MagicMock()
    result = service.process_photos(
        [good, existing, str(broken)],
        out_dir,
        LineOptions(),
        WatermarkOptions(),
        skip_existing=True,
        progress=progress,
    )
    assert result.success_paths == [(good, os.path.join(out_dir, "good_wm.jpg"))]
    assert result.skipped == [(existing, os.path.join(out_dir, "existing_wm.jpg"))]
    assert [path for path, _ in result.failed] == [str(broken)]
    assert result.processed == 3
    assert progress.call_count == 3
    progress.assert_called_with(3, 3, "broken.jpg")


def test_batch_overwrites_without_skip(service, photo_factory, out_dir):
    """Test existing outputs are replaced by default."""
    src = photo_factory("again.jpg")
    target = os.path.join(out_dir, "again_wm.jpg")
    with open(target, "wb") as f:
        f.write(b"old")
    result = service.process_photos([src], out_dir, LineOptions(), WatermarkOptions())
    assert result.success_paths == [(src, target)]
    assert os.path.getsize(target) > 3


def test_batch_validates_inputs_first(service, photo_factory, out_dir, tmp_path):
    """Test invalid directories and paths are rejected before any work."""
    src = photo_factory()
    with pytest.raises(InvalidInputError):
        service.process_photos([src], str(tmp_path / "nope"), LineOptions(), WatermarkOptions())
    with pytest.raises(InvalidInputError):
        service.process_photos([src, "clip.mov"], out_dir, LineOptions(), WatermarkOptions())
    assert os.listdir(out_dir) == []


def test_check_existing_files(service, out_dir):
    """Test existing outputs are reported by file name."""
    with open(os.path.join(out_dir, "a_wm.png"), "wb") as f:
        f.write(b"x")
    assert service.check_existing_files(["/in/a.jpg", "/in/b.jpg"], out_dir, "png") == [
        "a_wm.png"
    ]
    assert service.check_existing_files(["/in/a.jpg"], "/definitely/missing") == []


def test_api_key_check_uses_well_known_points(service, geocoder):
    """Test Chinese providers probe Beijing and others New York."""
    check = service.test_api_key("amap", "  key123 ")
    assert check.success and check.result == "北京市"
    request = geocoder.reverse_geocode.call_args[0][0]
    assert (request.lat, request.lng) == BEIJING
    assert request.provider == "amap"
    assert request.granularity is Granularity.CITY
    assert request.key_for(ProviderId.AMAP) == "key123"

    service.test_api_key(ProviderId.MAPBOX, "pk")
    request = geocoder.reverse_geocode.call_args[0][0]
    assert (request.lat, request.lng) == NEW_YORK


def test_api_key_check_failures(service, geocoder):
    """Test missing keys, empty answers and provider errors."""
    assert service.test_api_key("google", "   ").error == "No API key provided"
    assert not service.test_api_key("bing", "k").success

    geocoder.reverse_geocode.return_value = ""
    assert service.test_api_key("google", "k").error == "No API key or invalid response"

    geocoder.reverse_geocode.side_effect = GeocodingError("REQUEST_DENIED", "google")
    check = service.test_api_key("google", "k")
    assert not check.success
    assert check.error == "REQUEST_DENIED"


@patch("infrastructure.watermark_service.ReverseGeocoder")
def test_close_releases_only_the_owned_geocoder(geocoder_cls, fake_renderer):
    """Test close() reaches the geocoder the service built, not an injected one."""
    with WatermarkService(renderer=fake_renderer, font_matcher=MagicMock()):
        pass
    geocoder_cls.return_value.close.assert_called_once()

    injected = MagicMock()
    WatermarkService(geocoder=injected, renderer=fake_renderer, font_matcher=MagicMock()).close()
    injected.close.assert_not_called()
