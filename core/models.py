"""Core value objects shared by metadata, geocoding, fonts and compositing."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Granularity(str, Enum):
    """Requested address specificity."""

    CITY = "city"
    DISTRICT = "district"
    STREET = "street"


class ProviderId(str, Enum):
    """Closed set of reverse-geocoding providers."""

    AMAP = "amap"
    TENCENT = "tencent"
    TIANDITU = "tianditu"
    QWEATHER = "qweather"
    MAPBOX = "mapbox"
    MAPTILER = "maptiler"
    GOOGLE = "google"


AUTO_PROVIDER = "auto"


@dataclass(frozen=True)
class GpsPoint:
    """Decimal-degree coordinates."""

    lat: float
    lng: float


@dataclass(frozen=True)
class PhotoMetadata:
    """Metadata extracted once per source image.

    Every field is optional; consumers omit the matching watermark line when
    a field is missing.
    """

    capture_time: str | None = None
    gps: GpsPoint | None = None
    camera_make: str | None = None
    camera_model: str | None = None
    width: int | None = None
    height: int | None = None


@dataclass
class AddressComponents:
    """Provider-agnostic address parts filled by each geocoding adapter."""

    province: str = ""
    city: str = ""
    district: str = ""
    street: str = ""
    street_number: str = ""


@dataclass(frozen=True)
class GeocodeRequest:
    """A single reverse-geocoding call.

    `api_keys` is keyed by `ProviderId`; an empty or missing key marks the
    provider as unavailable.
    """

    lat: float
    lng: float
    granularity: Granularity = Granularity.STREET
    hide_province: bool = False
    provider: str = AUTO_PROVIDER
    api_keys: Mapping[ProviderId, str] = field(default_factory=dict)
    home_countries: tuple[str, ...] = ()
    domestic_provider: ProviderId | None = None
    foreign_provider: ProviderId | None = None

    def key_for(self, provider: ProviderId) -> str:
        """Return the configured key for `provider`, or empty string."""
        return str(self.api_keys.get(provider, "") or "").strip()


@dataclass(frozen=True)
class FontEntry:
    """An installed font family.

    `family` is the name handed to the text renderer; `display_name` is what a
    user sees in a picker.
    """

    family: str
    display_name: str


@dataclass
class CompositeInstruction:
    """Place `layer` (RGBA Pillow image) at (`left`, `top`) on the target raster."""

    layer: Any
    top: int
    left: int


@dataclass(frozen=True)
class WatermarkLines:
    """Lines assembled for one photo plus the metadata they came from."""

    lines: list[str]
    metadata: PhotoMetadata
