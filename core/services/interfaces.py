"""Core service interfaces and shared data structures.

This module defines the collaborator protocols the core calls into (glyph
rendering, font-name matching, JSON transport) and the simple dataclasses that
report batch processing and API key checks back to the shell.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol


class GlyphRenderer(Protocol):
    """Rasterizes watermark markup into an RGBA Pillow image."""

    def render(self, markup: str) -> Any:
        """Return an RGBA `PIL.Image.Image`; raise `RenderError` on failure."""
        raise NotImplementedError


class FontMatcher(Protocol):
    """Maps a user-chosen family to the name the renderer matches reliably."""

    def resolve(self, family: str) -> str:
        """Return the canonical family, or `family` unchanged when unknown."""
        raise NotImplementedError


class JsonTransport(Protocol):
    """Performs a GET request and returns the decoded JSON body."""

    def get_json(self, url: str) -> Any:
        """Return parsed JSON; raise `GeocodingError` on transport/parse failure."""
        raise NotImplementedError


@dataclass
class BatchResult:
    """Outcome of a batch watermark run.

    Attributes:
        success_paths: Tuples of (input path, output path) written.
        skipped: Tuples of (input path, existing output path) left untouched.
        failed: Tuples of (input path, reason) for failures.
    """

    success_paths: list[tuple[str, str]] = field(default_factory=list)
    skipped: list[tuple[str, str]] = field(default_factory=list)
    failed: list[tuple[str, str]] = field(default_factory=list)

    @property
    def processed(self) -> int:
        """Number of inputs handled, whatever their outcome."""
        return len(self.success_paths) + len(self.skipped) + len(self.failed)


@dataclass
class ApiKeyCheck:
    """Outcome of probing a geocoding provider with a key.

    Attributes:
        success: True when the provider returned a non-empty address.
        result: The address returned, when successful.
        error: Diagnostic message otherwise.
    """

    success: bool
    result: str = ""
    error: str = ""
