"""Photo metadata extraction (EXIF) via Pillow.

Missing or malformed tags are not errors: the matching `PhotoMetadata` field
stays `None`. Only an unreadable or unrecognized file raises.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

from loguru import logger
from PIL import ExifTags, Image

from core.models import GpsPoint, PhotoMetadata
from core.services.datetime_format import normalize_exif_datetime
from infrastructure.image_service import HEIF_EXTS, PIL_HEIF_AVAILABLE

# IFD0
TAG_MAKE = 271
TAG_MODEL = 272
TAG_DATETIME = 306
# Exif IFD
TAG_DATETIME_ORIGINAL = 36867
TAG_PIXEL_X_DIMENSION = 40962
TAG_PIXEL_Y_DIMENSION = 40963
# GPS IFD
GPS_LATITUDE_REF = 1
GPS_LATITUDE = 2
GPS_LONGITUDE_REF = 3
GPS_LONGITUDE = 4


def _clean_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="ignore")
    text = str(value).replace("\x00", "").strip()
    return text or None


def _to_int(value: Any) -> int | None:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def dms_to_decimal(dms: Any, ref: Any) -> float | None:
    """Convert a (degrees, minutes, seconds) rational triple to signed degrees."""
    try:
        degrees, minutes, seconds = (float(part) for part in dms)
    except (TypeError, ValueError, ZeroDivisionError) as ex:
        logger.debug("Malformed GPS value {!r}: {}", dms, ex)
        return None
    value = degrees + minutes / 60.0 + seconds / 3600.0
    ref_text = (_clean_text(ref) or "").upper()
    if ref_text in ("S", "W"):
        value = -value
    return value


def parse_gps(gps_ifd: Mapping[int, Any]) -> GpsPoint | None:
    """Decimal coordinates from a GPS IFD; None unless both axes are present."""
    if not gps_ifd or GPS_LATITUDE not in gps_ifd or GPS_LONGITUDE not in gps_ifd:
        return None
    lat = dms_to_decimal(gps_ifd[GPS_LATITUDE], gps_ifd.get(GPS_LATITUDE_REF))
    lng = dms_to_decimal(gps_ifd[GPS_LONGITUDE], gps_ifd.get(GPS_LONGITUDE_REF))
    if lat is None or lng is None:
        return None
    return GpsPoint(lat=lat, lng=lng)


def _capture_time(ifd0: Mapping[int, Any], exif_ifd: Mapping[int, Any]) -> str | None:
    raw = _clean_text(exif_ifd.get(TAG_DATETIME_ORIGINAL)) or _clean_text(ifd0.get(TAG_DATETIME))
    return normalize_exif_datetime(raw) if raw else None


def _sub_ifd(exif: Image.Exif, ifd: ExifTags.IFD) -> Mapping[int, Any]:
    try:
        return exif.get_ifd(ifd) or {}
    except (KeyError, TypeError, ValueError, OSError) as ex:
        logger.debug("Could not read EXIF sub-IFD {}: {}", ifd.name, ex)
        return {}


def read_metadata(path: str) -> PhotoMetadata:
    """Extract capture time, GPS, camera and dimensions from `path`.

    Raises:
        OSError: The file cannot be opened or is not a recognized image
            (`PIL.UnidentifiedImageError` is an `OSError`).
    """
    if not PIL_HEIF_AVAILABLE and Path(path).suffix.lower() in HEIF_EXTS:
        logger.warning("pillow-heif is not installed; cannot read {}", path)
    with Image.open(path) as im:
        exif = im.getexif()
        ifd0: Mapping[int, Any] = exif or {}
        exif_ifd = _sub_ifd(exif, ExifTags.IFD.Exif)
        gps_ifd = _sub_ifd(exif, ExifTags.IFD.GPSInfo)

        width, height = im.size
        if not width or not height:
            width = _to_int(exif_ifd.get(TAG_PIXEL_X_DIMENSION)) or width
            height = _to_int(exif_ifd.get(TAG_PIXEL_Y_DIMENSION)) or height

        metadata = PhotoMetadata(
            capture_time=_capture_time(ifd0, exif_ifd),
            gps=parse_gps(gps_ifd),
            camera_make=_clean_text(ifd0.get(TAG_MAKE)),
            camera_model=_clean_text(ifd0.get(TAG_MODEL)),
            width=width or None,
            height=height or None,
        )
    logger.debug("Metadata for {}: {}", path, metadata)
    return metadata
