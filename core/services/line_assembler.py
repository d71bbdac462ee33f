"""Assembly of watermark text lines from photo metadata and options.

Lines always come out in the same order: timestamp, location, age, custom
text. Any of them may be missing because the option is off or the data is
absent; missing data is never an error.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol

from loguru import logger

from core.errors import GeocodingError
from core.models import GeocodeRequest, PhotoMetadata, WatermarkLines
from core.options import LineOptions
from core.services.age_service import calc_age
from core.services.datetime_format import format_datetime


class AddressResolver(Protocol):
    def reverse_geocode(self, request: GeocodeRequest) -> str: ...


MetadataReader = Callable[[str], PhotoMetadata]


def format_coordinates(lat: float, lng: float) -> str:
    return f"{lat:.6f}, {lng:.6f}"


def build_location_text(
    metadata: PhotoMetadata, options: LineOptions, resolver: AddressResolver | None
) -> str:
    """Location line body (without prefix); empty when nothing can be shown."""
    gps = metadata.gps
    if gps is None:
        if options.location_mode == "custom" and options.custom_location:
            return options.custom_location
        return ""

    if options.location_mode == "coords":
        return format_coordinates(gps.lat, gps.lng)
    if options.location_mode == "custom":
        return options.custom_location or format_coordinates(gps.lat, gps.lng)

    if resolver is None:
        return ""
    try:
        return resolver.reverse_geocode(options.geocode_request(gps.lat, gps.lng))
    except (GeocodingError, OSError) as ex:
        logger.warning("Reverse geocoding failed for ({}, {}): {}", gps.lat, gps.lng, ex)
        return ""


def assemble_lines(
    metadata: PhotoMetadata, options: LineOptions, resolver: AddressResolver | None = None
) -> list[str]:
    """Build the ordered display lines for already-extracted metadata."""
    lines: list[str] = []

    if options.show_datetime and metadata.capture_time:
        lines.append(format_datetime(metadata.capture_time, options.datetime_format))

    if options.show_location:
        text = build_location_text(metadata, options, resolver)
        if text:
            if options.location_prefix:
                text = f"{options.location_prefix} {text}"
            lines.append(text)

    if options.show_child_age and options.child_birthday and metadata.capture_time:
        age = calc_age(
            options.child_birthday, metadata.capture_time, options.child_age_format, options.lang
        )
        if age:
            prefix = options.child_age_prefix
            lines.append(f"{prefix} {age}" if prefix else age)

    if options.custom_text:
        lines.append(options.custom_text)

    return lines


def build_watermark_lines(
    path: str,
    options: LineOptions,
    reader: MetadataReader,
    resolver: AddressResolver | None = None,
) -> WatermarkLines:
    """Read `path`'s metadata and assemble its watermark lines.

    Raises:
        OSError: When the file cannot be read or is not an image.
    """
    metadata = reader(path)
    lines = assemble_lines(metadata, options, resolver)
    logger.debug("Watermark lines for {}: {}", path, lines)
    return WatermarkLines(lines=lines, metadata=metadata)
