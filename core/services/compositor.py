"""Layered watermark compositing.

The overlay is produced by a small pipeline of pure stages over RGBA Pillow
images: a blurred drop shadow, a synthesized outline (stroke), and the main
glyph layer, followed by a single blend of stroke and text. The result is a
list of `CompositeInstruction`s for the image service to apply, back to front.
Nothing here is random; equal inputs give equal pixels.
"""

from __future__ import annotations

from dataclasses import dataclass
import math
import re

from loguru import logger
from PIL import Image, ImageChops, ImageFilter

from core.models import CompositeInstruction
from core.options import WatermarkOptions
from core.services.interfaces import FontMatcher, GlyphRenderer

FONT_SIZE_RATIO = 0.028
MIN_FONT_SIZE = 16
PADDING_RATIO = 1.2

_RGBA_RE = re.compile(r"rgba?\((\d+),\s*(\d+),\s*(\d+)(?:,\s*([\d.]+))?\)")

# Alignment keywords understood by the Qt rich-text renderer
_ALIGN_KEYWORDS = {"left": "left", "center": "center", "right": "right"}
# runs of spaces and edge spaces collapse in rich text unless they are non-breaking
_KEPT_SPACES_RE = re.compile(r" {2,}|^ | $")
_NEWLINE_RE = re.compile(r"\r\n|\r|\n")


def js_round(value: float) -> int:
    """Round half up, matching the pixel arithmetic used for layout."""
    return int(math.floor(value + 0.5))


@dataclass(frozen=True)
class ShadowPreset:
    """Blur radius, diagonal offset and alpha ceiling for one effect level."""

    blur: float
    offset: int
    alpha: float


def shadow_preset(effect: str, font_size: int) -> ShadowPreset:
    """Scale the named effect level to `font_size`; unknown names fall back to medium."""
    presets = {
        "none": ShadowPreset(0.0, 0, 0.0),
        "light": ShadowPreset(
            max(font_size * 0.08, 1.0), max(js_round(font_size * 0.03), 1), 0.3
        ),
        "medium": ShadowPreset(
            max(font_size * 0.15, 1.5), max(js_round(font_size * 0.06), 1), 0.6
        ),
        "strong": ShadowPreset(
            max(font_size * 0.25, 2.0), max(js_round(font_size * 0.08), 2), 0.85
        ),
    }
    return presets.get(effect, presets["medium"])


def parse_color(color: str) -> tuple[str, float]:
    """Split ``rgba(r,g,b,a)``, ``rgb(r,g,b)`` or hex into (``#rrggbb``, alpha)."""
    text = (color or "").strip()
    m = _RGBA_RE.match(text)
    if m:
        r, g, b = (int(m.group(i)) for i in (1, 2, 3))
        alpha = float(m.group(4)) if m.group(4) is not None else 1.0
        return f"#{r:02x}{g:02x}{b:02x}", alpha
    return (text[:7] if len(text) == 9 else text), 1.0


def hex_to_rgb(hex_color: str) -> tuple[int, int, int]:
    h = hex_color.lstrip("#")
    if len(h) == 3:
        h = "".join(ch * 2 for ch in h)
    try:
        return int(h[0:2], 16), int(h[2:4], 16), int(h[4:6], 16)
    except ValueError:
        logger.warning("Unrecognized color {}, using white", hex_color)
        return 255, 255, 255


def escape_markup(text: str) -> str:
    """Escape the five markup metacharacters."""
    return (
        text.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
        .replace("'", "&#39;")
    )


@dataclass(frozen=True)
class TextStyle:
    """Font and color carried by the markup span."""

    family: str
    size: int
    bold: bool = False
    italic: bool = False
    color: str = "#FFFFFF"
    align: str = "left"

    @property
    def descriptor(self) -> str:
        """``Family [Bold] [Italic] size``."""
        style = " ".join(s for s, on in (("Bold", self.bold), ("Italic", self.italic)) if on)
        return " ".join(str(p) for p in (self.family, style, self.size) if p)


def _markup_line(line: str) -> str:
    """Escape one line, keeping its spaces and embedded line breaks."""
    parts = []
    for part in _NEWLINE_RE.split(line):
        escaped = escape_markup(part)
        parts.append(_KEPT_SPACES_RE.sub(lambda m: "&nbsp;" * len(m.group(0)), escaped))
    return "<br/>".join(parts)


def build_markup(lines: list[str], style: TextStyle) -> str:
    """Wrap escaped lines in an aligned block and a styled span."""
    body = "<br/>".join(_markup_line(line) for line in lines)
    color, _ = parse_color(style.color)
    css = [f"color:{color}", f"font-size:{style.size}px"]
    if style.family:
        family = style.family.replace("'", "").replace('"', "")
        css.append(f"font-family:'{escape_markup(family)}'")
    css.append(f"font-weight:{700 if style.bold else 400}")
    css.append(f"font-style:{'italic' if style.italic else 'normal'}")
    align = _ALIGN_KEYWORDS.get(style.align, "left")
    return f'<div align="{align}"><span style="{"; ".join(css)}">{body}</span></div>'


def default_font_size(width: int, height: int) -> int:
    return max(js_round(min(width, height) * FONT_SIZE_RATIO), MIN_FONT_SIZE)


def compute_anchor(
    position: str,
    image_size: tuple[int, int],
    layer_size: tuple[int, int],
    padding: int,
    stroke_padding: int = 0,
) -> tuple[int, int]:
    """Top-left (x, y) of the layer for a named anchor.

    The layer carries `stroke_padding` transparent pixels on every side, so
    corner anchors shift outward by that amount to keep the visible glyphs
    exactly `padding` from the edges. The result is clamped to
    ``[-stroke_padding, dim - layer + stroke_padding]`` on each axis.
    """
    img_w, img_h = image_size
    lw, lh = layer_size
    sp = stroke_padding
    left = padding - sp
    right = img_w - lw - padding + sp
    top = padding - sp
    bottom = img_h - lh - padding + sp

    if position == "top-left":
        x, y = left, top
    elif position == "top-right":
        x, y = right, top
    elif position == "bottom-left":
        x, y = left, bottom
    elif position == "center":
        x, y = js_round((img_w - lw) / 2), js_round((img_h - lh) / 2)
    else:
        x, y = right, bottom

    x = max(-sp, min(x, img_w - lw + sp))
    y = max(-sp, min(y, img_h - lh + sp))
    return x, y


def tint(glyphs: Image.Image, hex_color: str) -> Image.Image:
    """Same glyph shapes (alpha) filled with a solid color."""
    out = Image.new("RGBA", glyphs.size, hex_to_rgb(hex_color) + (255,))
    out.putalpha(glyphs.getchannel("A"))
    return out


def apply_opacity(layer: Image.Image, opacity: float) -> Image.Image:
    """Multiply the alpha channel by a flat translucency mask."""
    if opacity >= 1:
        return layer
    mask = Image.new("L", layer.size, js_round(255 * max(0.0, opacity)))
    out = layer.copy()
    out.putalpha(ImageChops.multiply(layer.getchannel("A"), mask))
    return out


def stroke_offsets(stroke_width: int) -> list[tuple[int, int]]:
    """Grid offsets radiating around the origin, skipping (0, 0)."""
    step = max(1, js_round(stroke_width / 2))
    span = range(-stroke_width, stroke_width + 1, step)
    return [(dx, dy) for dx in span for dy in span if (dx, dy) != (0, 0)]


def text_stage(glyphs: Image.Image, opacity: float) -> Image.Image:
    return apply_opacity(glyphs, opacity)


def stroke_stage(
    glyphs: Image.Image, stroke_width: int, stroke_color: str
) -> tuple[Image.Image, int]:
    """Outline layer on a canvas padded by ``2 * stroke_width`` per side.

    Returns the layer and its padding.
    """
    hex_color, alpha = parse_color(stroke_color)
    pad = stroke_width * 2
    stroke_glyphs = tint(glyphs, hex_color)
    canvas = Image.new("RGBA", (glyphs.width + pad * 2, glyphs.height + pad * 2), (0, 0, 0, 0))
    for dx, dy in stroke_offsets(stroke_width):
        canvas.alpha_composite(stroke_glyphs, dest=(pad + dx, pad + dy))
    canvas = apply_opacity(canvas, alpha)
    canvas = canvas.filter(ImageFilter.GaussianBlur(max(stroke_width * 0.4, 0.5)))
    return canvas, pad


def shadow_stage(glyphs: Image.Image, shadow_color: str, preset: ShadowPreset) -> Image.Image:
    """Blurred shadow; alpha capped by the preset ceiling."""
    hex_color, requested_alpha = parse_color(shadow_color)
    shadow = tint(glyphs, hex_color)
    if preset.blur > 0:
        shadow = shadow.filter(ImageFilter.GaussianBlur(preset.blur))
    return apply_opacity(shadow, min(requested_alpha, preset.alpha))


def blend_layers(
    text_layer: Image.Image, stroke_layer: Image.Image | None, stroke_padding: int
) -> Image.Image:
    """Place the text layer over the stroke layer; text alone when unstroked."""
    if stroke_layer is None:
        return text_layer
    combined = Image.new("RGBA", stroke_layer.size, (0, 0, 0, 0))
    combined.alpha_composite(stroke_layer)
    combined.alpha_composite(text_layer, dest=(stroke_padding, stroke_padding))
    return combined


def resolve_text_style(
    options: WatermarkOptions, width: int, height: int, font_matcher: FontMatcher | None = None
) -> TextStyle:
    family = options.font_family
    if family and font_matcher is not None:
        family = font_matcher.resolve(family)
    return TextStyle(
        family=family,
        size=options.font_size or default_font_size(width, height),
        bold=options.bold,
        italic=options.italic,
        color=options.color,
        align=options.text_align,
    )


def render_overlay(
    lines: list[str],
    width: int,
    height: int,
    options: WatermarkOptions,
    renderer: GlyphRenderer,
    font_matcher: FontMatcher | None = None,
) -> list[CompositeInstruction] | None:
    """Render `lines` into ordered composite instructions for a `width` x `height` image.

    Returns None when there are no lines. Renderer failures propagate.
    """
    if not lines:
        return None

    style = resolve_text_style(options, width, height, font_matcher)
    font_size = style.size
    padding = js_round(font_size * PADDING_RATIO)
    logger.debug("Rendering {} line(s) with font '{}'", len(lines), style.descriptor)

    glyphs = renderer.render(build_markup(lines, style)).convert("RGBA")

    stroke_width = options.stroke_width
    if stroke_width is None:
        stroke_width = max(js_round(font_size * 0.08), 1)

    text_layer = text_stage(glyphs, options.opacity)
    stroke_layer: Image.Image | None = None
    stroke_padding = 0
    if stroke_width > 0:
        stroke_layer, stroke_padding = stroke_stage(glyphs, stroke_width, options.stroke_color)
    combined = blend_layers(text_layer, stroke_layer, stroke_padding)

    x, y = compute_anchor(
        options.position, (width, height), combined.size, padding, stroke_padding
    )

    instructions: list[CompositeInstruction] = []
    preset = shadow_preset(options.shadow_effect, font_size)
    if options.shadow_effect != "none":
        shadow = shadow_stage(glyphs, options.shadow_color, preset)
        instructions.append(
            CompositeInstruction(
                layer=shadow,
                top=max(0, y + stroke_padding + preset.offset),
                left=max(0, x + stroke_padding + preset.offset),
            )
        )
    instructions.append(CompositeInstruction(layer=combined, top=max(0, y), left=max(0, x)))
    return instructions
