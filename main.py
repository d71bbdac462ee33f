from __future__ import annotations

import argparse
import locale
import os
from pathlib import Path
import sys

from loguru import logger

from core.errors import WatermarkError
from core.options import LineOptions, WatermarkOptions
from infrastructure.fontconfig import ensure_fontconfig
from infrastructure.fonts import FontCatalog
from infrastructure.image_service import filter_supported_files
from infrastructure.logging import init_logging
from infrastructure.settings import JsonSettings
from infrastructure.watermark_service import WatermarkService

BASE_DIR = Path(__file__).parent


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Stamp capture time, place and age onto photos.")
    parser.add_argument("inputs", nargs="*", help="photo files or directories")
    parser.add_argument("-o", "--output", help="output directory")
    parser.add_argument("--settings", default=None, help="settings.json path")
    parser.add_argument("--skip-existing", action="store_true", help="keep existing outputs")
    parser.add_argument(
        "--preview", action="store_true", help="write 800px previews instead of full outputs"
    )
    parser.add_argument("--log-level", default=None, help="debug, info, warning or error")
    parser.add_argument("--list-fonts", action="store_true", help="print installed font families")
    return parser.parse_args(argv)


def _collect_inputs(inputs: list[str]) -> list[str]:
    paths: list[str] = []
    for item in inputs:
        if os.path.isdir(item):
            paths.extend(str(p) for p in sorted(Path(item).iterdir()) if p.is_file())
        else:
            paths.append(item)
    return filter_supported_files(paths)


def _load_options(settings_path: str | None) -> tuple[LineOptions, WatermarkOptions]:
    path = Path(settings_path) if settings_path else BASE_DIR / "settings.json"
    if not path.exists() and settings_path is None:
        logger.info("No settings.json found, using defaults")
        return LineOptions(), WatermarkOptions()
    settings = JsonSettings(path)
    lines = settings.section("lines")
    lines.setdefault("apiKeys", settings.section("apiKeys"))
    return LineOptions.from_mapping(lines), WatermarkOptions.from_mapping(
        settings.section("watermark")
    )


def _write_previews(
    service: WatermarkService,
    paths: list[str],
    output_dir: str,
    line_opts: LineOptions,
    wm_opts: WatermarkOptions,
) -> int:
    failures = 0
    for path in paths:
        target = Path(output_dir) / f"{Path(path).stem}_preview.jpg"
        try:
            service.generate_preview(path, line_opts, wm_opts).save(target, quality=85)
            logger.info("Preview written: {}", target)
        except (WatermarkError, OSError) as ex:
            logger.error("Preview failed for {}: {}", path, ex)
            failures += 1
    return failures


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    init_logging(level=args.log_level)
    try:
        locale.setlocale(locale.LC_COLLATE, "")
    except locale.Error as ex:
        logger.debug("Keeping default collation: {}", ex)
    ensure_fontconfig()

    if args.list_fonts:
        for font in FontCatalog().list_fonts():
            label = font.family
            if font.display_name != font.family:
                label = f"{font.family}\t{font.display_name}"
            print(label)
        return 0
    if not args.inputs or not args.output:
        logger.error("Inputs and --output are required")
        return 2

    try:
        line_opts, wm_opts = _load_options(args.settings)
    except (OSError, WatermarkError) as ex:
        logger.error("Could not load settings: {}", ex)
        return 2

    paths = _collect_inputs(args.inputs)
    if not paths:
        logger.error("No supported images among the inputs")
        return 1

    service = WatermarkService()
    try:
        if args.preview:
            Path(args.output).mkdir(parents=True, exist_ok=True)
            return 1 if _write_previews(service, paths, args.output, line_opts, wm_opts) else 0
        result = service.process_photos(
            paths, args.output, line_opts, wm_opts, skip_existing=args.skip_existing
        )
    except WatermarkError as ex:
        logger.error("{}", ex)
        return 2
    finally:
        service.close()

    print(
        f"{len(result.success_paths)} written, {len(result.skipped)} skipped, "
        f"{len(result.failed)} failed"
    )
    for path, reason in result.failed:
        print(f"  {path}: {reason}", file=sys.stderr)
    return 1 if result.failed else 0


if __name__ == "__main__":
    raise SystemExit(main())
