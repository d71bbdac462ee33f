"""Error types raised by the watermarking core."""

from __future__ import annotations


class WatermarkError(Exception):
    """Base class for errors surfaced to callers of the core."""


class InvalidInputError(WatermarkError, ValueError):
    """Unreadable path, invalid directory or invalid configuration value."""


class GeocodingError(WatermarkError):
    """Provider, transport or response-parse failure during reverse geocoding.

    The message carries the provider's own diagnostic where one was returned.
    """

    def __init__(self, message: str, provider: str | None = None) -> None:
        super().__init__(message)
        self.provider = provider


class FontParseError(WatermarkError):
    """A font file's binary tables could not be read."""


class RenderError(WatermarkError):
    """The glyph renderer could not rasterize the watermark markup."""
