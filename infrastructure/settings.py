"""Settings access helpers for JSON-based configuration."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from core.errors import InvalidInputError


class JsonSettings:
    """Lightweight JSON settings reader with dotted-key access.

    The file holds three sections: ``watermark`` (rendering and output
    options), ``lines`` (which text lines to show) and ``apiKeys`` (geocoding
    provider secrets keyed by provider id).
    """

    def __init__(self, settings_path: str | Path) -> None:
        self._path = Path(settings_path)
        if not self._path.exists():
            raise FileNotFoundError(f"settings.json not found: {self._path}")
        with self._path.open("r", encoding="utf-8") as f:
            try:
                self._data = json.load(f)
            except json.JSONDecodeError as ex:
                raise InvalidInputError(f"Malformed settings file {self._path}: {ex}") from ex
        if not isinstance(self._data, dict):
            raise InvalidInputError(f"Settings root must be an object: {self._path}")

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str, default: Any | None = None) -> Any:
        """Return value for dotted `key`, or `default` if not present."""
        parts = key.split(".")
        node: Any = self._data
        for part in parts:
            if isinstance(node, dict) and part in node:
                node = node[part]
            else:
                return default
        return node

    def section(self, key: str) -> dict[str, Any]:
        """Return the mapping at `key`, or an empty dict when absent or not a mapping."""
        value = self.get(key, {})
        return dict(value) if isinstance(value, dict) else {}
