"""Image decoding, compositing and encoding utilities.

Decoding goes through Pillow with optional Pillow-HEIF support so HEIC photos
open like any other format. Output file naming rules also live here so the
batch runner and the overwrite check agree on them.
"""

from __future__ import annotations

from collections.abc import Iterable
import os
from pathlib import Path
from typing import Any

from loguru import logger
from PIL import Image, ImageOps

from core.errors import InvalidInputError
from core.models import CompositeInstruction

try:  # pragma: no cover - optional dependency
    from pillow_heif import register_heif_opener  # type: ignore

    register_heif_opener()
    PIL_HEIF_AVAILABLE = True
except ImportError:  # pragma: no cover - optional dependency
    PIL_HEIF_AVAILABLE = False

SUPPORTED_IMAGE_EXTS = frozenset({".jpg", ".jpeg", ".png", ".heic", ".tiff", ".webp"})
HEIF_EXTS = frozenset({".heic"})
OUTPUT_EXT_MAP = {"jpeg": ".jpg", "png": ".png", "webp": ".webp"}
DEFAULT_QUALITY = 92
PREVIEW_QUALITY = 85


def _ensure_dir(p: Path) -> None:
    """Create directory `p` if missing (including parents)."""
    p.mkdir(parents=True, exist_ok=True)


def is_valid_image_path(path: Any) -> bool:
    """True when `path` is a string with a supported image extension.

    HEIC only counts when the Pillow-HEIF opener is registered.
    """
    if not isinstance(path, (str, os.PathLike)):
        return False
    ext = Path(path).suffix.lower()
    if ext in HEIF_EXTS and not PIL_HEIF_AVAILABLE:
        return False
    return ext in SUPPORTED_IMAGE_EXTS


def is_valid_directory(path: Any) -> bool:
    """True when `path` names an existing directory."""
    if not isinstance(path, (str, os.PathLike)):
        return False
    try:
        return Path(path).resolve().is_dir()
    except OSError:
        return False


def filter_supported_files(paths: Iterable[str]) -> list[str]:
    """Keep only paths with supported image extensions, in order."""
    return [p for p in paths if is_valid_image_path(p)]


def get_output_path(input_path: str, output_dir: str, output_format: str) -> str:
    """``{output_dir}/{stem}_wm{ext}``; unknown formats get ``.jpg``."""
    ext = OUTPUT_EXT_MAP.get(output_format, ".jpg")
    return str(Path(output_dir) / f"{Path(input_path).stem}_wm{ext}")


def open_image(path: str) -> Image.Image:
    """Decode `path`, apply EXIF orientation and return a detached RGBA image.

    Raises:
        OSError: The file cannot be opened or decoded.
    """
    with Image.open(path) as im:
        oriented = ImageOps.exif_transpose(im)
        return oriented.convert("RGBA")


def apply_composites(
    image: Image.Image, instructions: Iterable[CompositeInstruction] | None
) -> Image.Image:
    """Alpha-composite each layer onto `image` in order; returns a new image."""
    out = image.convert("RGBA") if image.mode != "RGBA" else image.copy()
    for instr in instructions or ():
        layer = instr.layer if instr.layer.mode == "RGBA" else instr.layer.convert("RGBA")
        dest = (instr.left, instr.top)
        out.alpha_composite(_crop_to_fit(layer, out.size, *dest), dest)
    return out


def _crop_to_fit(layer: Image.Image, size: tuple[int, int], left: int, top: int) -> Image.Image:
    # alpha_composite rejects sources extending past the destination
    max_w, max_h = size[0] - left, size[1] - top
    if layer.width <= max_w and layer.height <= max_h:
        return layer
    return layer.crop((0, 0, max(0, min(layer.width, max_w)), max(0, min(layer.height, max_h))))


def save_image(
    image: Image.Image, path: str, output_format: str = "jpeg", quality: int = DEFAULT_QUALITY
) -> str:
    """Encode `image` to `path` as JPEG (flattened to RGB), PNG or WebP."""
    _ensure_dir(Path(path).parent)
    if output_format == "png":
        image.save(path, format="PNG", optimize=True)
    elif output_format == "webp":
        image.save(path, format="WEBP", quality=quality)
    else:
        image.convert("RGB").save(path, format="JPEG", quality=quality)
    logger.debug("Saved {} ({}, quality={})", path, output_format, quality)
    return path


def resize_to_fit(image: Image.Image, max_side: int) -> tuple[Image.Image, float]:
    """Downscale so both sides fit `max_side`; never upscale.

    Returns the image and the applied scale factor.
    """
    width, height = image.size
    scale = min(max_side / width, max_side / height, 1.0)
    if scale >= 1.0:
        return image, 1.0
    size = (max(1, int(width * scale + 0.5)), max(1, int(height * scale + 0.5)))
    return image.resize(size, Image.Resampling.LANCZOS), scale


def ensure_output_dir(path: str) -> Path:
    """Validate an existing output directory.

    Raises:
        InvalidInputError: `path` is not an existing directory.
    """
    if not is_valid_directory(path):
        raise InvalidInputError(f"Invalid output directory: {path}")
    return Path(path)
