from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict

import httpx


@dataclass
class StatsRequest:
    """Query for GET /v1/stats.

    ``repositories`` holds ``(project, repository)`` pairs; when empty,
    ``repository`` is looked up in every project.
    """

    organization: str
    projects: list[str]
    year: int
    repository: str | None = None
    repositories: list[tuple[str, str]] = field(default_factory=list)
    user_email: str | None = None

    def to_params(self) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "organization": self.organization,
            "projects": ",".join(self.projects),
            "year": self.year,
        }
        if self.repositories:
            params["repositories"] = ",".join(f"{project}/{repo}" for project, repo in self.repositories)
        elif self.repository:
            params["repository"] = self.repository
        if self.user_email:
            params["userEmail"] = self.user_email
        return params


def _auth_headers(token: str | None, headers: Dict[str, str] | None) -> Dict[str, str]:
    merged = dict(headers or {})
    if token:
        merged["Authorization"] = f"Bearer {token}"
    return merged


class WrappedClient:
    """Lightweight synchronous client for the Wrapped API."""

    def __init__(
        self,
        base_url: str,
        *,
        token: str | None = None,
        timeout: float = 60.0,
        headers: Dict[str, str] | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        normalized_base = base_url.rstrip("/") + "/"
        self._client = httpx.Client(
            base_url=normalized_base,
            timeout=timeout,
            headers=_auth_headers(token, headers),
            transport=transport,
        )

    def __enter__(self) -> "WrappedClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def get_stats(self, request: StatsRequest) -> dict:
        response = self._client.get("v1/stats", params=request.to_params())
        response.raise_for_status()
        return response.json()

    def list_projects(self, organization: str) -> dict:
        response = self._client.get("v1/projects", params={"organization": organization})
        response.raise_for_status()
        return response.json()

    def list_repositories(self, organization: str, projects: list[str]) -> dict:
        params = {"organization": organization, "projects": ",".join(projects)}
        response = self._client.get("v1/repositories", params=params)
        response.raise_for_status()
        return response.json()

    def get_config(self) -> dict:
        response = self._client.get("v1/config")
        response.raise_for_status()
        return response.json()

    def healthcheck(self) -> dict:
        response = self._client.get("healthz")
        response.raise_for_status()
        return response.json()
