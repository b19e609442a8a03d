"""Authenticated JSON-over-HTTPS base client.

Every call is a single attempt. Non-2xx responses raise ``ApiError`` and
connection failures raise ``TransportError``. Bodies that cannot be decoded,
or that do not have the shape the caller expects, raise ``DecodeError``.
Each exchange is handed to the service's ``ApiLogger`` with its outcome.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from sitepulse.api_logger import ApiLogger
from sitepulse.errors import ApiError, DecodeError, SitePulseError, TransportError
from sitepulse.instrumentation import API_DURATION, API_REQUESTS

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0  # seconds

_OUTCOMES = {
    ApiError: "api_error",
    TransportError: "transport_error",
    DecodeError: "decode_error",
}


class ApiClient:
    """Shared request plumbing for the provider clients.

    Can be used as an async context manager to reuse one connection pool;
    otherwise each request opens and closes its own ``httpx.AsyncClient``.
    """

    service = "api"

    def __init__(
        self,
        token: str,
        base_url: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        api_logger: Optional[ApiLogger] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }
        self._timeout = timeout
        self._transport = transport
        self.api_logger = api_logger or ApiLogger(self.service)
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        self._client = self._make_client()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _make_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=self._headers,
            timeout=self._timeout,
            transport=self._transport,
        )

    async def _request(
        self,
        method: str,
        endpoint: str,
        *,
        params: Optional[dict[str, Any]] = None,
        json_body: Optional[dict[str, Any]] = None,
        parse: Optional[Callable[[Any], Any]] = None,
    ) -> Any:
        """Perform one request and return the decoded JSON body.

        When *parse* is given, its result is returned instead. A body that
        *parse* rejects is reported as a failed exchange.
        """
        if params is not None:
            params = {k: v for k, v in params.items() if v is not None}
        logged_params = params if json_body is None else json_body

        start = time.perf_counter()
        try:
            if self._client is not None:
                data = await self._send(self._client, method, endpoint, params, json_body)
            else:
                async with self._make_client() as client:
                    data = await self._send(client, method, endpoint, params, json_body)
            result = self._parse(parse, data, endpoint) if parse is not None else data
        except SitePulseError as exc:
            self._record(type(exc), start)
            self.api_logger.log_exchange(endpoint, logged_params, error=exc)
            logger.error("Error making request to %s: %s", endpoint, exc)
            raise

        self._record(None, start)
        self.api_logger.log_exchange(endpoint, logged_params, response=data)
        return result

    @staticmethod
    async def _send(
        client: httpx.AsyncClient,
        method: str,
        endpoint: str,
        params: Optional[dict[str, Any]],
        json_body: Optional[dict[str, Any]],
    ) -> Any:
        try:
            response = await client.request(method, endpoint, params=params, json=json_body)
        except httpx.TransportError as exc:
            raise TransportError(exc, endpoint) from exc
        except httpx.DecodingError as exc:
            raise DecodeError(exc, endpoint) from exc
        except httpx.RequestError as exc:
            raise TransportError(exc, endpoint) from exc

        if not response.is_success:
            raise ApiError(response.status_code, response.text, endpoint)

        try:
            return response.json()
        except ValueError as exc:
            raise DecodeError(exc, endpoint) from exc

    @staticmethod
    def _parse(parse: Callable[[Any], Any], data: Any, endpoint: str) -> Any:
        try:
            return parse(data)
        except (ValidationError, ValueError, TypeError, AttributeError) as exc:
            raise DecodeError(exc, endpoint) from exc

    def _record(self, error_type: Optional[type], start: float) -> None:
        outcome = _OUTCOMES.get(error_type, "error") if error_type else "success"
        API_REQUESTS.labels(service=self.service, outcome=outcome).inc()
        API_DURATION.labels(service=self.service).observe(time.perf_counter() - start)
