"""fontconfig bootstrap and canonical family-name resolution.

The text renderer matches ASCII family names reliably but is unreliable with
non-ASCII (e.g. Chinese) family strings, so such names are resolved through
``fc-match`` to their canonical, usually English, name.
"""

from __future__ import annotations

import os
from pathlib import Path
import subprocess
import sys
import tempfile

from loguru import logger

FC_MATCH_TIMEOUT = 5


def is_ascii(text: str) -> bool:
    """True for non-empty printable ASCII."""
    return bool(text) and all(0x20 <= ord(ch) <= 0x7E for ch in text)


def system_font_dirs() -> list[Path]:
    """Platform-standard font directories (existing or not)."""
    home = Path.home()
    if sys.platform == "darwin":
        return [
            Path("/System/Library/Fonts"),
            Path("/System/Library/Fonts/Supplemental"),
            Path("/Library/Fonts"),
            home / "Library" / "Fonts",
        ]
    if os.name == "nt":
        windir = os.environ.get("WINDIR") or os.environ.get("SystemRoot") or r"C:\Windows"
        dirs = [Path(windir) / "Fonts"]
        local = os.environ.get("LOCALAPPDATA")
        if local:
            dirs.append(Path(local) / "Microsoft" / "Windows" / "Fonts")
        return dirs
    return [
        Path("/usr/share/fonts"),
        Path("/usr/local/share/fonts"),
        home / ".fonts",
        home / ".local" / "share" / "fonts",
    ]


def ensure_fontconfig() -> str | None:
    """Point fontconfig at the system font directories where it has no config.

    Linux hosts with ``/etc/fonts/fonts.conf`` and processes that already set
    ``FONTCONFIG_FILE`` are left alone. Returns the config path in use, if any.
    """
    current = os.environ.get("FONTCONFIG_FILE")
    if current and Path(current).exists():
        return current
    if sys.platform.startswith("linux") and Path("/etc/fonts/fonts.conf").exists():
        return None

    config_dir = Path(tempfile.gettempdir()) / "photo-stamp-fontconfig"
    fonts_conf = config_dir / "fonts.conf"
    if fonts_conf.exists():
        os.environ["FONTCONFIG_FILE"] = str(fonts_conf)
        return str(fonts_conf)

    cache_dir = config_dir / "cache"
    dir_entries = "\n".join(f"  <dir>{d}</dir>" for d in system_font_dirs() if d.exists())
    config = (
        '<?xml version="1.0"?>\n'
        '<!DOCTYPE fontconfig SYSTEM "urn:fontconfig:fonts.dtd">\n'
        "<fontconfig>\n"
        f"{dir_entries}\n"
        f"  <cachedir>{cache_dir}</cachedir>\n"
        '  <match target="pattern">\n'
        '    <edit name="antialias" mode="assign"><bool>true</bool></edit>\n'
        "  </match>\n"
        "</fontconfig>\n"
    )
    try:
        cache_dir.mkdir(parents=True, exist_ok=True)
        fonts_conf.write_text(config, encoding="utf-8")
    except OSError as ex:
        logger.debug("Could not write fontconfig file {}: {}", fonts_conf, ex)
        return None
    os.environ["FONTCONFIG_FILE"] = str(fonts_conf)
    logger.info("fontconfig initialized at {}", fonts_conf)
    return str(fonts_conf)


class FontNameResolver:
    """Resolves user-chosen family names through ``fc-match``."""

    def __init__(self, timeout: float = FC_MATCH_TIMEOUT) -> None:
        self._timeout = timeout

    def resolve(self, family: str) -> str:
        """Return the canonical ASCII name for a non-ASCII `family`.

        ASCII names, lookup failures and non-ASCII matches all return `family`
        unchanged.
        """
        if not family or is_ascii(family):
            return family
        try:
            proc = subprocess.run(
                ["fc-match", family, "--format=%{family[0]}"],
                capture_output=True,
                text=True,
                encoding="utf-8",
                timeout=self._timeout,
                check=True,
                env=os.environ.copy(),
            )
        except (OSError, subprocess.SubprocessError) as ex:
            logger.info("[FONT] fc-match resolve failed for {}: {}", family, ex)
            return family
        resolved = (proc.stdout or "").strip()
        if resolved and is_ascii(resolved):
            logger.info('[FONT] Resolved non-ASCII "{}" => "{}"', family, resolved)
            return resolved
        return family
