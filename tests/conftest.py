"""Shared fixtures: fake glyph renderer and on-disk test photos."""

from __future__ import annotations

import re

from PIL import ExifTags, Image
from PIL.TiffImagePlugin import IFDRational
import pytest

_FONT_SIZE_RE = re.compile(r"font-size:(\d+)px")


class FakeGlyphRenderer:
    """Deterministic stand-in for the Qt renderer.

    Each line becomes a solid white band ``font_size`` pixels tall and ten
    pixels wide per character, so layer sizes are predictable.
    """

    def __init__(self) -> None:
        self.markups: list[str] = []

    def render(self, markup: str) -> Image.Image:
        self.markups.append(markup)
        m = _FONT_SIZE_RE.search(markup)
        size = int(m.group(1)) if m else 16
        body = re.sub(r"<(?!br/>)[^>]+>", "", markup).replace("&nbsp;", " ")
        lines = body.split("<br/>")
        width = max(10, max(len(line) for line in lines) * 10)
        img = Image.new("RGBA", (width, size * len(lines)), (0, 0, 0, 0))
        img.paste((255, 255, 255, 255), (0, 0, width, img.height))
        return img


@pytest.fixture
def fake_renderer():
    return FakeGlyphRenderer()


def _dms(value: float) -> tuple[IFDRational, IFDRational, IFDRational]:
    degrees = int(value)
    minutes_full = (value - degrees) * 60
    minutes = int(minutes_full)
    seconds = round((minutes_full - minutes) * 60 * 100)
    return IFDRational(degrees, 1), IFDRational(minutes, 1), IFDRational(seconds, 100)


def make_photo(
    path,
    size=(640, 480),
    capture_time: str | None = "2024:01:15 14:30:00",
    gps: tuple[float, float] | None = None,
    make: str | None = "Canon",
    model: str | None = "EOS R5",
    fmt: str = "JPEG",
):
    """Write a small photo with optional EXIF to `path` and return it."""
    img = Image.new("RGB", size, (40, 90, 160))
    exif = Image.Exif()
    if make:
        exif[271] = make
    if model:
        exif[272] = model
    if capture_time:
        exif[ExifTags.IFD.Exif] = {36867: capture_time}
    if gps:
        lat, lng = gps
        exif[ExifTags.IFD.GPSInfo] = {
            1: "N" if lat >= 0 else "S",
            2: _dms(abs(lat)),
            3: "E" if lng >= 0 else "W",
            4: _dms(abs(lng)),
        }
    if len(exif):
        img.save(path, format=fmt, exif=exif)
    else:
        img.save(path, format=fmt)
    return path


@pytest.fixture
def photo_factory(tmp_path):
    counter = {"n": 0}

    def _make(name: str | None = None, **kwargs):
        counter["n"] += 1
        target = tmp_path / (name or f"photo_{counter['n']}.jpg")
        return str(make_photo(target, **kwargs))

    return _make
