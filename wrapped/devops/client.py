"""Async HTTP client for the Azure DevOps REST API."""

from __future__ import annotations

import base64
import logging
from typing import Any, Dict
from urllib.parse import quote

import httpx

from wrapped.core.errors import NetworkError, map_http_error
from wrapped.devops.cache import NullResponseCache, ResponseCache
from wrapped.telemetry import increment_api_request

_logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://dev.azure.com"
DEFAULT_IDENTITY_BASE_URL = "https://vssps.dev.azure.com"


def segment(value: str) -> str:
    """Percent-encode a single path segment such as a project name."""
    return quote(value, safe="")


def _error_message(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return response.text or None
    if isinstance(body, dict):
        return body.get("message")
    return None


class AzureDevOpsClient:
    """Authenticated client scoped to a single organization."""

    def __init__(
        self,
        organization: str,
        token: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        identity_base_url: str = DEFAULT_IDENTITY_BASE_URL,
        api_version: str = "7.0",
        identity_api_version: str = "7.1",
        timeout: float = 30.0,
        cache: ResponseCache | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.organization = organization
        self.api_version = api_version
        self.identity_api_version = identity_api_version
        self._identity_base = f"{identity_base_url.rstrip('/')}/{segment(organization)}/"
        self._cache = cache or NullResponseCache()
        # PATs authenticate as basic auth with an empty user name.
        credential = base64.b64encode(f":{token}".encode("utf-8")).decode("ascii")
        self._client = httpx.AsyncClient(
            base_url=f"{base_url.rstrip('/')}/{segment(organization)}/",
            timeout=timeout,
            headers={"Authorization": f"Basic {credential}", "Content-Type": "application/json"},
            transport=transport,
        )

    async def __aenter__(self) -> "AzureDevOpsClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    def identity_url(self, path: str) -> str:
        return self._identity_base + path.lstrip("/")

    async def get(self, path: str, params: Dict[str, Any] | None = None, *, api_version: str | None = None) -> Any:
        full_params: Dict[str, Any] = {"api-version": api_version or self.api_version, **(params or {})}
        cache_path = path if path.startswith("http") else f"{self.organization}/{path.lstrip('/')}"
        cached = self._cache.get(cache_path, full_params)
        if cached is not None:
            return cached
        payload = await self._send("GET", path, params=full_params)
        self._cache.set(cache_path, full_params, payload)
        return payload

    async def post(self, path: str, body: Any, params: Dict[str, Any] | None = None) -> Any:
        full_params: Dict[str, Any] = {"api-version": self.api_version, **(params or {})}
        return await self._send("POST", path, params=full_params, json=body)

    async def paginate(
        self,
        path: str,
        params: Dict[str, Any] | None = None,
        *,
        page_size: int = 100,
        top_param: str = "$top",
        skip_param: str = "$skip",
    ) -> list[dict]:
        """Collect a skip/top paged collection until a short or empty page."""
        items: list[dict] = []
        skip = 0
        page = 0
        while True:
            page += 1
            page_params = {**(params or {}), top_param: page_size, skip_param: skip}
            response = await self.get(path, page_params)
            values = (response or {}).get("value") or []
            _logger.debug("Fetched page %d of %s (%d items)", page, path, len(values))
            if not values:
                break
            items.extend(values)
            if len(values) < page_size:
                break
            skip += page_size
        return items

    async def _send(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.RequestError as exc:
            increment_api_request(method, 0)
            raise NetworkError() from exc
        increment_api_request(method, response.status_code)
        if response.is_error:
            raise map_http_error(
                response.status_code,
                _error_message(response),
                response.headers.get("retry-after"),
            )
        if not response.content:
            return None
        return response.json()
