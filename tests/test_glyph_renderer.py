"""Smoke tests for the Qt glyph renderer (offscreen)."""

import pytest

pytest.importorskip("PySide6.QtGui")

from core.errors import RenderError  # noqa: E402
from core.services.compositor import TextStyle, build_markup  # noqa: E402
from infrastructure.glyph_renderer import QtGlyphRenderer  # noqa: E402


@pytest.fixture(scope="module")
def renderer():
    return QtGlyphRenderer()


def test_renders_transparent_rgba_raster(renderer):
    """Test markup becomes a non-empty RGBA image with transparent background."""
    markup = build_markup(["2024-01-15 14:30", "Hangzhou"], TextStyle(family="", size=32))
    img = renderer.render(markup)
    assert img.mode == "RGBA"
    assert img.width > 0 and img.height > 0
    assert img.getchannel("A").getextrema()[0] == 0


def test_two_lines_are_taller_than_one(renderer):
    """Test line breaks stack vertically."""
    style = TextStyle(family="", size=24)
    one = renderer.render(build_markup(["Hello"], style))
    two = renderer.render(build_markup(["Hello", "World"], style))
    assert two.height > one.height


def test_empty_markup_raises(renderer):
    """Test markup without text is rejected."""
    with pytest.raises(RenderError):
        renderer.render(build_markup([""], TextStyle(family="", size=24)))


def test_repeated_spaces_widen_the_raster(renderer):
    """Test runs of spaces are laid out instead of collapsing to one."""
    style = TextStyle(family="", size=24)
    single = renderer.render(build_markup(["A B"], style))
    spaced = renderer.render(build_markup(["A      B"], style))
    assert spaced.width > single.width


def test_embedded_newline_starts_a_new_line(renderer):
    """Test a newline inside one text line breaks it in two."""
    style = TextStyle(family="", size=24)
    one = renderer.render(build_markup(["Hello"], style))
    two = renderer.render(build_markup(["Hello\nWorld"], style))
    assert two.height > one.height
