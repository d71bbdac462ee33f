"""JSON-over-HTTP transport for geocoding providers.

httpx negotiates and decodes gzip/deflate bodies itself; this wrapper only
adds secret masking in logs and maps transport and parse failures to
`GeocodingError`. No retries are performed.
"""

from __future__ import annotations

import json
import re
from typing import Any

import httpx
from loguru import logger

from core.errors import GeocodingError

DEFAULT_TIMEOUT = 10.0

_SECRET_PARAM_RE = re.compile(
    r"([?&])(key|ak|tk|token|access_token|username|email)=([^&]+)", re.IGNORECASE
)


def mask_url(url: str) -> str:
    """Hide secret query parameters, keeping their first four characters."""
    return _SECRET_PARAM_RE.sub(lambda m: f"{m.group(1)}{m.group(2)}={m.group(3)[:4]}****", url)


class JsonHttpClient:
    """Blocking GET + JSON decode over a shared `httpx.Client`."""

    def __init__(
        self, timeout: float = DEFAULT_TIMEOUT, client: httpx.Client | None = None
    ) -> None:
        self._client = client or httpx.Client(
            timeout=httpx.Timeout(timeout),
            headers={"Accept-Encoding": "gzip, deflate"},
            follow_redirects=True,
        )

    def get_json(self, url: str) -> Any:
        """GET `url` and return its JSON body.

        Raises:
            GeocodingError: On connection/timeout errors or a non-JSON body.
        """
        logger.debug("GET {}", mask_url(url))
        try:
            response = self._client.get(url)
        except httpx.HTTPError as ex:
            logger.error("Request error for {}: {}", mask_url(url), ex)
            raise GeocodingError(f"Request failed: {ex}") from ex

        text = response.text
        try:
            payload = json.loads(text)
        except ValueError as ex:
            logger.error("Failed to parse response ({}): {}", response.status_code, text[:500])
            raise GeocodingError(f"Failed to parse response: {text[:200]}") from ex
        logger.debug("Response: {}", payload)
        return payload

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> JsonHttpClient:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()
