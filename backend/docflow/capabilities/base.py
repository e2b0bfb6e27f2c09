"""
Shared plumbing for external analysis service clients.

Each capability is a small httpx client against one REST API.  Endpoints
and keys come from settings; a missing endpoint raises ConfigurationError
the first time the capability is used, never at import time.
"""

from __future__ import annotations

from typing import Any

import httpx

from docflow.pipeline.errors import CapabilityError, ConfigurationError

# Default timeout for capability calls (seconds)
DEFAULT_TIMEOUT = 60.0


class CapabilityClient:
    """
    Base class for HTTP capability clients.

    Args:
        endpoint: Service base URL.  Blank means "not configured".
        api_key: Subscription key sent in ``api_key_header``.
        timeout: httpx timeout in seconds.
        transport: Optional httpx transport (tests pass MockTransport).
    """

    service_name: str = "capability"
    api_key_header: str = "Ocp-Apim-Subscription-Key"
    endpoint_setting: str = ""

    def __init__(
        self,
        endpoint: str,
        api_key: str = "",
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.endpoint = (endpoint or "").rstrip("/")
        self.api_key = api_key
        self._timeout = timeout
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        return {self.api_key_header: self.api_key} if self.api_key else {}

    def _client(self) -> httpx.AsyncClient:
        if not self.endpoint:
            raise ConfigurationError(
                f"{self.service_name} endpoint is not configured ({self.endpoint_setting})"
            )
        return httpx.AsyncClient(
            base_url=self.endpoint,
            headers=self._headers(),
            timeout=self._timeout,
            transport=self._transport,
        )

    def _check(
        self,
        response: httpx.Response,
        operation: str,
        expected: tuple[int, ...] = (200,),
    ) -> None:
        if response.status_code not in expected:
            raise CapabilityError(
                f"{self.service_name} {operation} returned {response.status_code}",
                status_code=response.status_code,
                response_body=response.text[:2000],
            )

    async def _request(
        self,
        method: str,
        url: str,
        operation: str,
        expected: tuple[int, ...] = (200,),
        **kwargs: Any,
    ) -> httpx.Response:
        async with self._client() as client:
            try:
                response = await client.request(method, url, **kwargs)
            except httpx.HTTPError as exc:
                raise CapabilityError(
                    f"{self.service_name} {operation} request failed: {exc}"
                ) from exc
        self._check(response, operation, expected)
        return response
