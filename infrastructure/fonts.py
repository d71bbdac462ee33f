"""Installed font discovery.

Three strategies are tried in order and the first non-empty result wins:

1. ``fc-list`` family alias lists (Linux, macOS with fontconfig, or anywhere
   `ensure_fontconfig` has run).
2. The Windows font registry.
3. A recursive scan of the platform font directories, reading each file's
   ``name`` table.

Each strategy handles its own failures; when all of them fail the catalog is
simply empty. Results are cached in a `FontCache` until `clear_cache()`.
"""

from __future__ import annotations

from collections.abc import Iterable
import locale
import os
from pathlib import Path
import re
import subprocess

from loguru import logger

from core.errors import FontParseError
from core.models import FontEntry
from core.services.address_format import has_cjk
from infrastructure.font_names import read_font_family_names
from infrastructure.fontconfig import is_ascii, system_font_dirs

FC_LIST_TIMEOUT = 15
FONT_EXTENSIONS = frozenset({".ttf", ".otf", ".ttc"})

_STYLE_WORDS = (
    "Regular|Bold|Italic|Light|Medium|Thin|Heavy|Black|ExtraBold|SemiBold|ExtraLight"
    "|Condensed|Narrow|Compressed|Book"
)
_REGISTRY_VALUE_RE = re.compile(
    r"^(.+?)\s+\((?:TrueType|OpenType|TrueType Collection)\)$", re.IGNORECASE
)
_REGISTRY_STYLE_RE = re.compile(rf"\s+({_STYLE_WORDS})\s*$", re.IGNORECASE)
_FILENAME_STYLE_RE = re.compile(
    r"[-_](Regular|Bold|Italic|Light|Medium|Thin|Heavy|Black|ExtraBold|SemiBold|ExtraLight"
    r"|Condensed|Compressed)$",
    re.IGNORECASE,
)
_REGISTRY_KEY = r"SOFTWARE\Microsoft\Windows NT\CurrentVersion\Fonts"


def _is_hidden(name: str) -> bool:
    return not name or name.startswith(".") or name == "System Font"


def _display_key(font: FontEntry) -> tuple[bool, str, str]:
    name = font.display_name
    folded = name.casefold()
    try:
        collated = locale.strxfrm(folded)
    except (OSError, ValueError):
        collated = folded
    return (not has_cjk(name), collated, name)


def sort_fonts(fonts: Iterable[FontEntry]) -> list[FontEntry]:
    """CJK-labelled entries first, then locale-aware order of display names."""
    return sorted(fonts, key=_display_key)


def pick_family_names(aliases: list[str]) -> tuple[str, str]:
    """Choose (rendering family, display name) from one ``fc-list`` alias list.

    The rendering name is the first ASCII alias without spaces (a space
    usually marks a style variant), then any ASCII alias, then the first
    alias. The display name is the shortest CJK alias, else the rendering name.
    """
    family = aliases[0]
    for name in aliases:
        if is_ascii(name) and " " not in name:
            family = name
            break
    if not is_ascii(family):
        for name in aliases:
            if is_ascii(name):
                family = name
                break

    display = family
    for name in aliases:
        if has_cjk(name) and (not has_cjk(display) or len(name) < len(display)):
            display = name
    return family, display


def parse_fc_list_output(raw: str) -> list[FontEntry]:
    """Turn ``fc-list --format=%{family}\\n`` output into deduplicated entries."""
    families: dict[str, str] = {}
    for line in raw.splitlines():
        aliases = [n.strip() for n in line.strip().split(",") if n.strip()]
        if not aliases or _is_hidden(aliases[0]):
            continue
        family, display = pick_family_names(aliases)
        if family in families:
            continue
        families[family] = display
    return sort_fonts(FontEntry(family=f, display_name=d) for f, d in families.items())


def strip_registry_style(value_name: str) -> str | None:
    """``Arial Bold (TrueType)`` -> ``Arial``; None for non-font values."""
    m = _REGISTRY_VALUE_RE.match(value_name.strip())
    if not m:
        return None
    name = _REGISTRY_STYLE_RE.sub("", m.group(1).strip())
    return name or None


def family_from_filename(path: Path) -> str:
    """Fallback family derived from a font file name."""
    return _FILENAME_STYLE_RE.sub("", path.stem)


class FontCache:
    """Process-lifetime holder for the discovered font list."""

    def __init__(self) -> None:
        self._fonts: list[FontEntry] | None = None

    def get(self) -> list[FontEntry] | None:
        return self._fonts

    def put(self, fonts: list[FontEntry]) -> None:
        self._fonts = list(fonts)

    def clear(self) -> None:
        self._fonts = None


class FontCatalog:
    """Lists installed font families using the three-tier strategy."""

    def __init__(
        self,
        cache: FontCache | None = None,
        font_dirs: list[Path] | None = None,
        platform_name: str | None = None,
    ) -> None:
        self._cache = cache or FontCache()
        self._font_dirs = font_dirs
        self._platform = platform_name or os.name

    def list_fonts(self) -> list[FontEntry]:
        """Return the cached font list, discovering it on first use."""
        cached = self._cache.get()
        if cached is not None:
            return list(cached)

        fonts: list[FontEntry] = []
        try:
            fonts = self._fonts_via_fc_list()
            if fonts:
                logger.info("Found {} font families via fc-list", len(fonts))
        except (OSError, subprocess.SubprocessError, ValueError) as ex:
            logger.debug("fc-list not available: {}", ex)

        if not fonts and self._platform == "nt":
            try:
                fonts = self._fonts_via_registry()
                if fonts:
                    logger.info("Found {} font families via registry", len(fonts))
            except (OSError, ImportError) as ex:
                logger.debug("Registry font query failed: {}", ex)

        if not fonts:
            try:
                fonts = self._fonts_via_scan()
                logger.info("Found {} font families via directory scan", len(fonts))
            except OSError as ex:
                logger.warning("Font scan failed: {}", ex)
                fonts = []

        self._cache.put(fonts)
        return fonts

    def clear_cache(self) -> None:
        """Forget discovered fonts, e.g. after new fonts were installed."""
        self._cache.clear()

    # Strategies
    def _fonts_via_fc_list(self) -> list[FontEntry]:
        proc = subprocess.run(
            ["fc-list", "--format=%{family}\n"],
            capture_output=True,
            text=True,
            encoding="utf-8",
            timeout=FC_LIST_TIMEOUT,
            check=True,
            env=os.environ.copy(),
        )
        return parse_fc_list_output(proc.stdout or "")

    def _fonts_via_registry(self) -> list[FontEntry]:
        import winreg  # pylint: disable=import-outside-toplevel,import-error

        families: dict[str, None] = {}
        for hive in (winreg.HKEY_LOCAL_MACHINE, winreg.HKEY_CURRENT_USER):
            try:
                key = winreg.OpenKey(hive, _REGISTRY_KEY)
            except OSError:
                # Per-user font key may not exist
                continue
            with key:
                index = 0
                while True:
                    try:
                        value_name, _, _ = winreg.EnumValue(key, index)
                    except OSError:
                        break
                    index += 1
                    name = strip_registry_style(value_name)
                    if name:
                        families.setdefault(name, None)
        return sort_fonts(FontEntry(family=f, display_name=f) for f in families)

    def _fonts_via_scan(self) -> list[FontEntry]:
        families: dict[str, str] = {}
        for font_dir in self._font_dirs if self._font_dirs is not None else system_font_dirs():
            if not font_dir.is_dir():
                continue
            for root, _dirs, files in os.walk(font_dir, onerror=self._log_walk_error):
                for file_name in files:
                    path = Path(root) / file_name
                    if path.suffix.lower() not in FONT_EXTENSIONS:
                        continue
                    for name in self._names_for_file(path):
                        families[name] = name
        return sort_fonts(FontEntry(family=f, display_name=d) for f, d in families.items())

    @staticmethod
    def _names_for_file(path: Path) -> list[str]:
        try:
            names = read_font_family_names(path)
        except (FontParseError, OSError) as ex:
            logger.debug("Font parse failed for {}: {}", path, ex)
            name = family_from_filename(path)
            return [name] if not _is_hidden(name) else []
        return [n for n in names if not _is_hidden(n)]

    @staticmethod
    def _log_walk_error(ex: OSError) -> None:
        logger.debug("Scan error: {}", ex)
