from __future__ import annotations

from typing import Dict

import httpx

from .client import StatsRequest, _auth_headers


class AsyncWrappedClient:
    """Async variant of the Wrapped API client."""

    def __init__(
        self,
        base_url: str,
        *,
        token: str | None = None,
        timeout: float = 60.0,
        headers: Dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        normalized_base = base_url.rstrip("/") + "/"
        self._client = httpx.AsyncClient(
            base_url=normalized_base,
            timeout=timeout,
            headers=_auth_headers(token, headers),
            transport=transport,
        )

    async def __aenter__(self) -> "AsyncWrappedClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    async def get_stats(self, request: StatsRequest) -> dict:
        response = await self._client.get("v1/stats", params=request.to_params())
        response.raise_for_status()
        return response.json()

    async def list_projects(self, organization: str) -> dict:
        response = await self._client.get("v1/projects", params={"organization": organization})
        response.raise_for_status()
        return response.json()

    async def list_repositories(self, organization: str, projects: list[str]) -> dict:
        params = {"organization": organization, "projects": ",".join(projects)}
        response = await self._client.get("v1/repositories", params=params)
        response.raise_for_status()
        return response.json()

    async def get_config(self) -> dict:
        response = await self._client.get("v1/config")
        response.raise_for_status()
        return response.json()

    async def healthcheck(self) -> dict:
        response = await self._client.get("healthz")
        response.raise_for_status()
        return response.json()
