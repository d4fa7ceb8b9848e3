"""HTTP transport for the routing/ETA provider."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any, Protocol

import aiohttp

from routewatch._constants import USER_AGENT
from routewatch._redact import redact_for_log, redact_text
from routewatch.config import RouteWatchConfig
from routewatch.exceptions import ProviderUnavailableError

_logger = logging.getLogger(__name__)


class Transport(Protocol):
    """What the Directions/Distance Matrix endpoint functions need from HTTP.

    Tests pass canned-response doubles; production uses `HttpTransport`.
    """

    async def get_json(self, endpoint: str, params: Mapping[str, str]) -> dict[str, Any]: ...


class HttpTransport:
    """aiohttp transport that signs requests with the API key and decodes JSON."""

    def __init__(
        self,
        config: RouteWatchConfig,
        http_session: aiohttp.ClientSession,
    ) -> None:
        self._config = config
        self._http = http_session
        self._timeout = aiohttp.ClientTimeout(total=config.request_timeout)

    async def get_json(self, endpoint: str, params: Mapping[str, str]) -> dict[str, Any]:
        """GET ``{base_url}{endpoint}`` and return the decoded JSON object.

        Raises
        ------
        ProviderUnavailableError
            On network errors, timeouts, non-200 responses or invalid JSON.
        """
        query: dict[str, str] = dict(params)
        if self._config.api_key:
            query["key"] = self._config.api_key

        headers = {
            "accept": "application/json",
            "user-agent": USER_AGENT,
        }
        url = f"{self._config.base_url.rstrip('/')}{endpoint}"

        _logger.debug("GET %s params=%s", url, redact_for_log(query))

        try:
            async with self._http.get(url, params=query, headers=headers, timeout=self._timeout) as resp:
                text = await resp.text()
                if resp.status != 200:
                    raise ProviderUnavailableError(
                        f"HTTP {resp.status} from {endpoint}: {text[:200]}",
                        status_code=resp.status,
                        endpoint=endpoint,
                    )
        except ProviderUnavailableError:
            raise
        except TimeoutError as exc:
            raise ProviderUnavailableError(
                f"Request to {endpoint} timed out after {self._config.request_timeout}s",
                endpoint=endpoint,
            ) from exc
        except aiohttp.ClientError as exc:
            raise ProviderUnavailableError(
                f"Request to {endpoint} failed: {redact_text(str(exc))}",
                endpoint=endpoint,
            ) from exc

        try:
            body: Any = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ProviderUnavailableError(
                f"Invalid JSON from {endpoint}: {text[:200]}",
                endpoint=endpoint,
            ) from exc

        if not isinstance(body, dict):
            raise ProviderUnavailableError(
                f"Unexpected JSON payload from {endpoint}: {type(body).__name__}",
                endpoint=endpoint,
            )
        return body
