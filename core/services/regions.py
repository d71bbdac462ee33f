"""Rough country bounding boxes used for domestic/foreign provider selection.

The boxes are intentionally approximate; points near borders may be
misclassified.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass


@dataclass(frozen=True)
class RegionBounds:
    """Latitude/longitude box, optionally with a second longitude band.

    A region crossing the antimeridian matches when the longitude is east of
    `lng_min` OR west of `wrap_lng_max`.
    """

    lat_min: float
    lat_max: float
    lng_min: float
    lng_max: float
    wrap_lng_max: float | None = None

    def contains(self, lat: float, lng: float) -> bool:
        if not self.lat_min <= lat <= self.lat_max:
            return False
        if self.wrap_lng_max is not None:
            return lng >= self.lng_min or lng <= self.wrap_lng_max
        return self.lng_min <= lng <= self.lng_max


CHINA_BOUNDS = RegionBounds(18.0, 53.55, 73.66, 135.05)

REGION_BOUNDS: dict[str, RegionBounds] = {
    "CN": CHINA_BOUNDS,
    "US": RegionBounds(24.39, 49.38, -125.0, -66.93),
    "JP": RegionBounds(24.0, 45.55, 122.93, 153.99),
    "KR": RegionBounds(33.1, 38.63, 124.6, 131.87),
    "GB": RegionBounds(49.9, 58.7, -8.65, 1.76),
    "DE": RegionBounds(47.27, 55.06, 5.87, 15.04),
    "FR": RegionBounds(41.33, 51.09, -5.14, 9.56),
    "AU": RegionBounds(-43.64, -10.06, 113.34, 153.64),
    "CA": RegionBounds(41.68, 83.11, -141.0, -52.62),
    "RU": RegionBounds(41.19, 81.86, 19.64, 180.0, wrap_lng_max=-169.05),
    "IN": RegionBounds(6.75, 35.5, 68.11, 97.4),
    "BR": RegionBounds(-33.75, 5.27, -73.99, -34.79),
    "TH": RegionBounds(5.61, 20.46, 97.35, 105.64),
    "SG": RegionBounds(1.15, 1.47, 103.6, 104.0),
    "MY": RegionBounds(0.85, 7.36, 99.64, 119.27),
    "VN": RegionBounds(8.18, 23.39, 102.14, 109.46),
}


def is_in_china(lat: float, lng: float) -> bool:
    """Coarse mainland-plus-Hainan test."""
    return CHINA_BOUNDS.contains(lat, lng)


def is_domestic_location(lat: float, lng: float, home_countries: Iterable[str]) -> bool:
    """True if the point falls in any home region.

    With no home regions configured, "domestic" means inside China. Unknown
    country codes are ignored.
    """
    codes = [str(c).upper() for c in home_countries or ()]
    if not codes:
        return is_in_china(lat, lng)
    for code in codes:
        bounds = REGION_BOUNDS.get(code)
        if bounds is not None and bounds.contains(lat, lng):
            return True
    return False
