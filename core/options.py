"""Flat, validated configuration objects for rendering and line assembly.

Both option classes accept partial mappings. Keys may be the camelCase names
stored by the desktop shell (``watermarkColor``, ``locationLevel``) or the
snake_case attribute names; anything missing keeps its documented default.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, fields
import re
from typing import Any

from core.errors import InvalidInputError
from core.models import AUTO_PROVIDER, GeocodeRequest, Granularity, ProviderId

POSITIONS = ("top-left", "top-right", "bottom-left", "bottom-right", "center")
TEXT_ALIGNS = ("left", "center", "right")
SHADOW_EFFECTS = ("none", "light", "medium", "strong")
OUTPUT_FORMATS = ("jpeg", "png", "webp")
LOCATION_MODES = ("geocode", "coords", "custom")
AGE_FORMATS = ("years", "years-months", "years-months-days")
LANGUAGES = ("zh", "en")

_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")

# Shell keys that do not follow plain camelCase -> snake_case conversion
_WATERMARK_ALIASES = {
    "watermarkColor": "color",
    "watermarkOpacity": "opacity",
    "watermarkPosition": "position",
    "fontBold": "bold",
    "fontItalic": "italic",
    "outputQuality": "quality",
}
_LINE_ALIASES = {
    "showDateTime": "show_datetime",
    "dateTimeFormat": "datetime_format",
    "geoProvider": "provider",
    "locationLevel": "granularity",
    "homeCountries": "home_countries",
    "apiKeys": "api_keys",
}


def _normalize_keys(raw: Mapping[str, Any], aliases: dict[str, str]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key, value in raw.items():
        name = aliases.get(key) or _CAMEL_RE.sub("_", str(key)).lower()
        out[name] = value
    return out


def _choice(name: str, value: Any, allowed: tuple[str, ...]) -> str:
    text = str(getattr(value, "value", value))
    if text not in allowed:
        raise InvalidInputError(f"{name} must be one of {', '.join(allowed)}; got {value!r}")
    return text


def _optional_provider(value: Any) -> ProviderId | None:
    if not value:
        return None
    try:
        return ProviderId(getattr(value, "value", value))
    except ValueError as ex:
        raise InvalidInputError(f"Unknown geocoding provider: {value!r}") from ex


@dataclass
class WatermarkOptions:
    """Rendering options for the watermark overlay and output encoding.

    Attributes:
        color: Text color, ``#RRGGBB`` (an alpha byte is ignored).
        opacity: Main text opacity in [0, 1].
        shadow_color: Shadow color, ``rgba(...)``/``rgb(...)``/hex.
        shadow_effect: One of none, light, medium, strong.
        stroke_width: Outline width in px; None derives it from the font size.
        stroke_color: Outline color; its alpha becomes the stroke opacity.
        font_family: Requested family; empty lets the renderer choose.
        font_size: Pixel size; None derives it from the image size.
        bold: Bold weight.
        italic: Italic style.
        text_align: left, center or right.
        position: Anchor, one of ``POSITIONS``.
        output_format: jpeg, png or webp.
        quality: Encoder quality (1-100).
    """

    color: str = "#FFFFFF"
    opacity: float = 0.85
    shadow_color: str = "rgba(0,0,0,0.6)"
    shadow_effect: str = "medium"
    stroke_width: int | None = None
    stroke_color: str = "#000000"
    font_family: str = ""
    font_size: int | None = None
    bold: bool = False
    italic: bool = False
    text_align: str = "left"
    position: str = "bottom-right"
    output_format: str = "jpeg"
    quality: int = 92

    def __post_init__(self) -> None:
        try:
            self.opacity = min(1.0, max(0.0, float(self.opacity)))
            self.quality = min(100, max(1, int(self.quality)))
            if self.stroke_width is not None:
                self.stroke_width = max(0, int(self.stroke_width))
            if self.font_size is not None:
                self.font_size = int(self.font_size)
                if self.font_size <= 0:
                    self.font_size = None
        except (TypeError, ValueError) as ex:
            raise InvalidInputError(f"Invalid watermark option: {ex}") from ex
        self.shadow_effect = _choice("shadow_effect", self.shadow_effect, SHADOW_EFFECTS)
        self.text_align = _choice("text_align", self.text_align, TEXT_ALIGNS)
        self.position = _choice("position", self.position, POSITIONS)
        self.output_format = _choice("output_format", self.output_format, OUTPUT_FORMATS)
        self.font_family = str(self.font_family or "").strip()
        self.bold = bool(self.bold)
        self.italic = bool(self.italic)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any] | None) -> WatermarkOptions:
        """Build options from a (possibly partial) settings mapping."""
        data = _normalize_keys(raw or {}, _WATERMARK_ALIASES)
        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in data.items() if k in known and v is not None}
        return cls(**kwargs)


@dataclass
class LineOptions:
    """Which watermark lines to produce and how to format them."""

    show_datetime: bool = True
    datetime_format: str = "YYYY-MM-DD HH:mm"
    show_location: bool = False
    location_mode: str = "geocode"
    custom_location: str = ""
    location_prefix: str = "📍"
    provider: str = AUTO_PROVIDER
    granularity: Granularity = Granularity.STREET
    hide_province: bool = False
    home_countries: tuple[str, ...] = ()
    domestic_provider: ProviderId | None = None
    foreign_provider: ProviderId | None = None
    api_keys: dict[ProviderId, str] = field(default_factory=dict)
    show_child_age: bool = False
    child_birthday: str = ""
    child_age_format: str = "years-months"
    child_age_prefix: str = ""
    lang: str = "zh"
    custom_text: str = ""

    def __post_init__(self) -> None:
        self.location_mode = _choice("location_mode", self.location_mode, LOCATION_MODES)
        self.child_age_format = _choice("child_age_format", self.child_age_format, AGE_FORMATS)
        self.lang = _choice("lang", self.lang, LANGUAGES)
        try:
            level = getattr(self.granularity, "value", self.granularity)
            self.granularity = Granularity(str(level))
        except ValueError as ex:
            raise InvalidInputError(f"Unknown location level: {self.granularity!r}") from ex
        if self.provider != AUTO_PROVIDER:
            provider = getattr(self.provider, "value", self.provider)
            self.provider = _choice("provider", provider, tuple(p.value for p in ProviderId))
        self.domestic_provider = _optional_provider(self.domestic_provider)
        self.foreign_provider = _optional_provider(self.foreign_provider)
        self.home_countries = tuple(str(c).upper() for c in self.home_countries or ())
        keys: dict[ProviderId, str] = {}
        for name, secret in dict(self.api_keys or {}).items():
            try:
                pid = ProviderId(getattr(name, "value", name))
            except ValueError:
                continue
            if secret:
                keys[pid] = str(secret)
        self.api_keys = keys
        self.location_prefix = str(self.location_prefix)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any] | None) -> LineOptions:
        """Build options from a (possibly partial) settings mapping."""
        data = _normalize_keys(raw or {}, _LINE_ALIASES)
        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in data.items() if k in known and v is not None}
        return cls(**kwargs)

    def geocode_request(self, lat: float, lng: float) -> GeocodeRequest:
        """Build the reverse-geocoding request for a point."""
        return GeocodeRequest(
            lat=lat,
            lng=lng,
            granularity=self.granularity,
            hide_province=self.hide_province,
            provider=self.provider,
            api_keys=dict(self.api_keys),
            home_countries=self.home_countries,
            domestic_provider=self.domestic_provider,
            foreign_provider=self.foreign_provider,
        )
