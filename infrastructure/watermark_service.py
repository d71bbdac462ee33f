"""Per-photo watermark orchestration.

`WatermarkService` ties the pieces together for one photo at a time: read
metadata, assemble lines, build the overlay and encode the result. Batch runs
are plain loops over independent photos; one failure never stops the rest.
"""

from __future__ import annotations

import base64
from collections.abc import Callable, Iterable
from dataclasses import replace
import io
import os
from pathlib import Path

from loguru import logger
from PIL import Image

from core.errors import GeocodingError, InvalidInputError, WatermarkError
from core.models import GeocodeRequest, Granularity, ProviderId, WatermarkLines
from core.options import LineOptions, WatermarkOptions
from core.services.compositor import js_round, render_overlay
from core.services.interfaces import ApiKeyCheck, BatchResult, FontMatcher, GlyphRenderer
from core.services.line_assembler import AddressResolver, MetadataReader, build_watermark_lines
from infrastructure.fontconfig import FontNameResolver
from infrastructure.geocoding import ReverseGeocoder
from infrastructure.glyph_renderer import QtGlyphRenderer
from infrastructure.image_service import (
    PREVIEW_QUALITY,
    apply_composites,
    ensure_output_dir,
    get_output_path,
    is_valid_image_path,
    open_image,
    resize_to_fit,
    save_image,
)
from infrastructure.metadata import read_metadata

PREVIEW_MAX_SIDE = 800

BEIJING = (39.9042, 116.4074)
NEW_YORK = (40.7128, -74.0060)
_CN_PROVIDERS = (ProviderId.AMAP, ProviderId.TENCENT, ProviderId.TIANDITU, ProviderId.QWEATHER)

# Called after each file with (processed, total, file name)
ProgressCallback = Callable[[int, int, str], None]


def _require_image_path(path: str) -> None:
    if not is_valid_image_path(path):
        raise InvalidInputError(f"Invalid file path: {os.path.basename(str(path))}")


class WatermarkService:
    """Generates previews and watermarked outputs for individual photos."""

    def __init__(
        self,
        reader: MetadataReader = read_metadata,
        geocoder: AddressResolver | None = None,
        renderer: GlyphRenderer | None = None,
        font_matcher: FontMatcher | None = None,
    ) -> None:
        self._reader = reader
        self._own_geocoder = ReverseGeocoder() if geocoder is None else None
        self._geocoder = geocoder if geocoder is not None else self._own_geocoder
        self._renderer = renderer
        self._font_matcher = font_matcher if font_matcher is not None else FontNameResolver()

    def close(self) -> None:
        """Release the geocoder's HTTP client when this service created it."""
        if self._own_geocoder is not None:
            self._own_geocoder.close()

    def __enter__(self) -> WatermarkService:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def _get_renderer(self) -> GlyphRenderer:
        if self._renderer is None:
            self._renderer = QtGlyphRenderer()
        return self._renderer

    def build_lines(self, path: str, line_options: LineOptions) -> WatermarkLines:
        return build_watermark_lines(path, line_options, self._reader, self._geocoder)

    def render_image(
        self, image: Image.Image, lines: list[str], wm_options: WatermarkOptions
    ) -> Image.Image:
        """Composite the watermark for `lines` onto `image` (unchanged when no lines)."""
        instructions = render_overlay(
            lines, image.width, image.height, wm_options, self._get_renderer(), self._font_matcher
        )
        return apply_composites(image, instructions)

    def generate_preview(
        self,
        path: str,
        line_options: LineOptions,
        wm_options: WatermarkOptions,
        max_side: int = PREVIEW_MAX_SIDE,
    ) -> Image.Image:
        """Watermarked RGB preview downscaled to fit `max_side`.

        Explicit font size and stroke width are scaled with the image so the
        preview matches the full-size output proportionally.
        """
        _require_image_path(path)
        lines = self.build_lines(path, line_options).lines
        image, scale = resize_to_fit(open_image(path), max_side)

        preview_opts = wm_options
        if scale < 1.0:
            font_size = js_round(wm_options.font_size * scale) if wm_options.font_size else None
            stroke_width = wm_options.stroke_width
            if stroke_width:
                stroke_width = max(js_round(stroke_width * scale), 1)
            preview_opts = replace(wm_options, font_size=font_size, stroke_width=stroke_width)

        return self.render_image(image, lines, preview_opts).convert("RGB")

    def generate_preview_data_url(
        self,
        path: str,
        line_options: LineOptions,
        wm_options: WatermarkOptions,
        max_side: int = PREVIEW_MAX_SIDE,
    ) -> str:
        """Preview encoded as a ``data:image/jpeg;base64,...`` URL."""
        preview = self.generate_preview(path, line_options, wm_options, max_side)
        buf = io.BytesIO()
        preview.save(buf, format="JPEG", quality=PREVIEW_QUALITY)
        return "data:image/jpeg;base64," + base64.b64encode(buf.getvalue()).decode("ascii")

    def process_photo(
        self,
        path: str,
        output_dir: str,
        line_options: LineOptions,
        wm_options: WatermarkOptions,
    ) -> str:
        """Watermark one photo into `output_dir`; returns the written path.

        Raises:
            InvalidInputError: Unsupported input path.
            OSError: Unreadable input or unwritable output.
            RenderError: The glyph renderer failed.
        """
        _require_image_path(path)
        lines = self.build_lines(path, line_options).lines
        image = self.render_image(open_image(path), lines, wm_options)
        output_path = get_output_path(path, output_dir, wm_options.output_format)
        save_image(image, output_path, wm_options.output_format, wm_options.quality)
        return output_path

    def check_existing_files(
        self, paths: Iterable[str], output_dir: str, output_format: str = "jpeg"
    ) -> list[str]:
        """File names of outputs that already exist for `paths`."""
        try:
            ensure_output_dir(output_dir)
        except InvalidInputError:
            return []
        existing: list[str] = []
        for path in paths:
            output_path = get_output_path(path, output_dir, output_format)
            if os.path.exists(output_path):
                existing.append(os.path.basename(output_path))
        return existing

    def process_photos(
        self,
        paths: list[str],
        output_dir: str,
        line_options: LineOptions,
        wm_options: WatermarkOptions,
        skip_existing: bool = False,
        progress: ProgressCallback | None = None,
    ) -> BatchResult:
        """Watermark each photo independently.

        The output directory and every input path are validated before any
        work starts. Per-file failures are recorded and processing continues.

        Raises:
            InvalidInputError: Invalid output directory or input path.
        """
        ensure_output_dir(output_dir)
        for path in paths:
            _require_image_path(path)

        result = BatchResult()
        total = len(paths)
        for path in paths:
            name = Path(path).name
            output_path = get_output_path(path, output_dir, wm_options.output_format)
            if skip_existing and os.path.exists(output_path):
                logger.info("Skipping {} (output exists)", name)
                result.skipped.append((path, output_path))
            else:
                try:
                    written = self.process_photo(path, output_dir, line_options, wm_options)
                    result.success_paths.append((path, written))
                    logger.info("Watermarked {} -> {}", name, written)
                except (WatermarkError, OSError) as ex:
                    logger.error("Failed to watermark {}: {}", path, ex)
                    result.failed.append((path, str(ex)))
            if progress is not None:
                progress(result.processed, total, name)

        logger.info(
            "Batch finished: {} written, {} skipped, {} failed",
            len(result.success_paths),
            len(result.skipped),
            len(result.failed),
        )
        return result

    def test_api_key(self, provider: ProviderId | str, api_key: str) -> ApiKeyCheck:
        """Probe `provider` with `api_key` by geocoding a well-known point."""
        key = (api_key or "").strip()
        if not key:
            return ApiKeyCheck(success=False, error="No API key provided")
        try:
            pid = ProviderId(getattr(provider, "value", provider))
        except ValueError:
            return ApiKeyCheck(success=False, error=f"Unknown provider: {provider}")

        lat, lng = BEIJING if pid in _CN_PROVIDERS else NEW_YORK
        request = GeocodeRequest(
            lat=lat,
            lng=lng,
            granularity=Granularity.CITY,
            provider=pid.value,
            api_keys={pid: key},
        )
        try:
            address = self._geocoder.reverse_geocode(request)
        except (GeocodingError, OSError) as ex:
            logger.warning("API key test for {} failed: {}", pid.value, ex)
            return ApiKeyCheck(success=False, error=str(ex))
        if not address:
            return ApiKeyCheck(success=False, error="No API key or invalid response")
        return ApiKeyCheck(success=True, result=address)
