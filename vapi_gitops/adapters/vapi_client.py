"""
Vapi HTTP client — the real platform transport.

Sequential JSON-over-HTTPS calls with a bearer token. Two rate-limit
measures are built in:

    - a minimum interval between consecutive requests (throttle)
    - HTTP 429 responses are retried with exponential backoff

Any other non-2xx response, and any connection or protocol failure,
raises TransportError immediately.
"""

from __future__ import annotations

import http.client
import json
import logging
import time
import urllib.error
import urllib.request
from typing import Any

from vapi_gitops import __version__
from vapi_gitops.adapters.base import PlatformClient, TransportError
from vapi_gitops.core.models.resource import ResourceType

logger = logging.getLogger(__name__)

MAX_RETRIES = 5
INITIAL_DELAY = 2.0          # seconds, doubled per 429 retry
REQUEST_INTERVAL = 0.7       # seconds between requests
DEFAULT_TIMEOUT = 30.0

# Envelope keys used by list endpoints that paginate
_LIST_ENVELOPE_KEYS = ("results", "data", "items")


class VapiClient(PlatformClient):
    """PlatformClient backed by the Vapi REST API."""

    def __init__(
        self,
        token: str,
        base_url: str = "https://api.vapi.ai",
        request_interval: float = REQUEST_INTERVAL,
        max_retries: int = MAX_RETRIES,
        initial_delay: float = INITIAL_DELAY,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self._token = token
        self._base_url = base_url.rstrip("/")
        self._request_interval = request_interval
        self._max_retries = max_retries
        self._initial_delay = initial_delay
        self._timeout = timeout
        self._last_request = 0.0

    @property
    def name(self) -> str:
        return "vapi"

    @property
    def base_url(self) -> str:
        return self._base_url

    # ── PlatformClient ──────────────────────────────────────────

    def create(self, resource_type: ResourceType, payload: dict[str, Any]) -> dict[str, Any]:
        result = self.request("POST", resource_type.endpoint, payload)
        if not isinstance(result, dict) or not result.get("id"):
            raise TransportError(
                "POST", resource_type.endpoint, body=f"response has no id: {result!r}"
            )
        return result

    def update(self, resource_type: ResourceType, uuid: str, payload: dict[str, Any]) -> None:
        self.request("PATCH", f"{resource_type.endpoint}/{uuid}", payload)

    def delete(self, resource_type: ResourceType, uuid: str) -> None:
        endpoint = f"{resource_type.endpoint}/{uuid}"
        try:
            self.request("DELETE", endpoint)
        except TransportError as e:
            if e.status != 404:
                raise
            logger.info("%s already gone (404), treating as deleted", endpoint)

    def list_resources(self, resource_type: ResourceType) -> list[dict[str, Any]]:
        data = self.request("GET", resource_type.endpoint)
        if isinstance(data, dict):
            for key in _LIST_ENVELOPE_KEYS:
                if isinstance(data.get(key), list):
                    return data[key]
        if isinstance(data, list):
            return data
        raise TransportError(
            "GET", resource_type.endpoint, body=f"unexpected list response: {type(data).__name__}"
        )

    # ── HTTP ────────────────────────────────────────────────────

    def request(
        self,
        method: str,
        endpoint: str,
        body: dict[str, Any] | None = None,
    ) -> Any:
        """Send one request, retrying on HTTP 429.

        Returns:
            Decoded JSON response, or None for an empty body.

        Raises:
            TransportError: On any non-2xx response, network failure,
                or when retries are exhausted.
        """
        url = f"{self._base_url}{endpoint}"
        data = json.dumps(body).encode("utf-8") if body is not None else None
        headers = {
            "Authorization": f"Bearer {self._token}",
            "User-Agent": f"vapi-gitops/{__version__}",
        }
        if data is not None:
            headers["Content-Type"] = "application/json"

        for attempt in range(self._max_retries + 1):
            self._throttle()
            req = urllib.request.Request(url, data=data, method=method, headers=headers)
            try:
                with urllib.request.urlopen(req, timeout=self._timeout) as resp:
                    raw = resp.read().decode("utf-8")
                logger.debug("%s %s → ok", method, endpoint)
                return json.loads(raw) if raw.strip() else None
            except urllib.error.HTTPError as e:
                error_body = e.read().decode("utf-8", errors="replace")
                if e.code == 429 and attempt < self._max_retries:
                    delay = self._initial_delay * (2 ** attempt)
                    logger.warning(
                        "⏳ Rate limited, retrying in %.1fs (attempt %d/%d)",
                        delay,
                        attempt + 1,
                        self._max_retries,
                    )
                    time.sleep(delay)
                    continue
                raise TransportError(method, endpoint, status=e.code, body=error_body) from e
            except urllib.error.URLError as e:
                raise TransportError(method, endpoint, body=str(e.reason)) from e
            except (OSError, http.client.HTTPException) as e:
                raise TransportError(method, endpoint, body=str(e) or type(e).__name__) from e
            except json.JSONDecodeError as e:
                raise TransportError(method, endpoint, body=f"invalid JSON response: {e}") from e

        raise TransportError(method, endpoint, body="max retries exceeded")

    def _throttle(self) -> None:
        """Keep at least ``request_interval`` seconds between requests."""
        elapsed = time.monotonic() - self._last_request
        if elapsed < self._request_interval:
            time.sleep(self._request_interval - elapsed)
        self._last_request = time.monotonic()
