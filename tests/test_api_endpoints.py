from __future__ import annotations

import httpx
from fastapi.testclient import TestClient

from wrapped.core.config import Settings
from wrapped.dependencies import get_response_cache, get_settings, get_stats_service
from wrapped.devops.client import AzureDevOpsClient
from wrapped.main import create_app
from wrapped.services.stats import StatsService

AUTH = {"Authorization": "Bearer pat"}
STATS_QUERY = {
    "organization": "acme",
    "projects": "A,B",
    "repository": "shop",
    "year": 2024,
    "userEmail": "dana@example.com",
}


def _build_test_client(
    service: StatsService, config: Settings | None = None, *, raise_server_exceptions: bool = True
) -> TestClient:
    # Reset cached dependencies to avoid cross-test contamination.
    get_response_cache.cache_clear()
    get_stats_service.cache_clear()

    app = create_app()
    config = config or Settings(_env_file=None)
    app.dependency_overrides[get_stats_service] = lambda: service
    app.dependency_overrides[get_settings] = lambda: config
    return TestClient(app, raise_server_exceptions=raise_server_exceptions)


def _seed(fake_devops, payloads) -> None:
    fake_devops.identities["dana@example.com"] = "id-dana"
    fake_devops.commits[("A", "shop", "master")] = [
        payloads.commit("c1", "2024-03-02T23:00:00Z", "Tighten checkout validation", (3, 1, 0)),
        payloads.commit("c2", "2024-03-03T22:30:00Z", "Checkout validation for coupons", (2, 0, 1)),
    ]
    fake_devops.commits[("B", "shop", "master")] = [payloads.commit("c2", "2024-03-03T22:30:00Z")]
    fake_devops.pull_requests[("A", "shop")] = [
        payloads.pull_request(1, closed="2024-05-06T21:00:00Z", status="completed", title="Checkout rewrite"),
    ]
    fake_devops.work_items["B"] = [payloads.work_item(7, "Bug", resolved="2024-02-02T08:00:00Z")]


def test_stats_endpoint_returns_camel_case_document(fake_devops, payloads):
    _seed(fake_devops, payloads)
    client = _build_test_client(StatsService(fake_devops.factory()))

    response = client.get("/v1/stats", params=STATS_QUERY, headers=AUTH)

    assert response.status_code == 200
    body = response.json()
    assert body["requestId"].startswith("rq_")
    assert body["errors"] == []
    assert body["meta"]["projects"] == ["A", "B"]
    assert body["meta"]["repositories"] == ["shop"]
    assert body["commits"]["total"] == 2
    assert body["commits"]["additions"] == 5
    assert body["commits"]["byHour"]["23"] == 1
    assert body["commits"]["byDayOfWeek"]["Saturday"] == 1
    assert body["commits"]["longestStreak"] == 2
    assert body["commits"]["topCommitMessages"][:2] == ["checkout", "validation"]
    assert body["pullRequests"]["created"] == 1
    assert body["pullRequests"]["merged"] == 1
    assert body["pullRequests"]["avgDaysToMergeFormatted"] == "12 hours"
    assert body["pullRequests"]["largestPR"]["id"] == 1
    assert body["workItems"]["bugsFixed"] == 1
    assert body["builds"]["total"] == 0
    assert body["insights"]["personality"] == "Weekend Warrior"


def test_stats_endpoint_reports_partial_failures(fake_devops, payloads):
    _seed(fake_devops, payloads)
    for kind in ("commits", "pullrequests", "wiql"):
        fake_devops.failures[("B", kind)] = 500
    client = _build_test_client(StatsService(fake_devops.factory()))

    response = client.get("/v1/stats", params=STATS_QUERY, headers=AUTH)

    assert response.status_code == 200
    body = response.json()
    assert [error["project"] for error in body["errors"]] == ["B"]
    assert body["commits"]["total"] == 2


def test_stats_endpoint_all_projects_failing_is_not_found(fake_devops):
    fake_devops.identities["dana@example.com"] = "id-dana"
    for project in ("A", "B"):
        for kind in ("commits", "pullrequests", "wiql"):
            fake_devops.failures[(project, kind)] = 401
    client = _build_test_client(StatsService(fake_devops.factory()))

    response = client.get("/v1/stats", params=STATS_QUERY, headers=AUTH)

    assert response.status_code == 404
    body = response.json()
    assert body["error"] == "no_data"
    assert "A: " in body["message"] and "B: " in body["message"]
    assert len(body["details"]) == 2


def test_stats_endpoint_validates_before_any_request(fake_devops):
    client = _build_test_client(StatsService(fake_devops.factory()))

    response = client.get("/v1/stats", params={"organization": "acme"})

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "missing_parameters"
    assert body["details"] == ["token", "projects", "repository", "year"]
    assert fake_devops.requests == []


def test_stats_endpoint_falls_back_to_server_config(fake_devops, payloads):
    _seed(fake_devops, payloads)
    config = Settings(
        _env_file=None, organization="acme", projects="A", repository="shop", pat="server-pat", year=2024
    )
    client = _build_test_client(StatsService(fake_devops.factory()), config)

    response = client.get("/v1/stats", params={"userEmail": "dana@example.com"})

    assert response.status_code == 200
    assert response.json()["meta"]["projects"] == ["A"]
    assert fake_devops.requests[0].headers["Authorization"].startswith("Basic ")


def test_stats_endpoint_accepts_project_repository_pairs(fake_devops, payloads):
    _seed(fake_devops, payloads)
    fake_devops.commits[("B", "api", "master")] = [payloads.commit("b1")]
    client = _build_test_client(StatsService(fake_devops.factory()))

    response = client.get(
        "/v1/stats",
        params={"organization": "acme", "repositories": "A/shop,B/api", "year": 2024},
        headers=AUTH,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["meta"]["projects"] == ["A", "B"]
    assert body["meta"]["repositories"] == ["shop", "api"]
    assert body["commits"]["total"] == 3


def test_rate_limit_sets_retry_after():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(429, headers={"Retry-After": "30"})

    def factory(organization: str, token: str) -> AzureDevOpsClient:
        return AzureDevOpsClient(organization, token, transport=httpx.MockTransport(handler))

    client = _build_test_client(StatsService(factory))
    response = client.get("/v1/projects", params={"organization": "acme"}, headers=AUTH)

    assert response.status_code == 429
    assert response.headers["Retry-After"] == "30"
    assert response.json()["error"] == "rate_limited"


def test_projects_and_repositories_endpoints(fake_devops):
    fake_devops.projects = [{"id": "2", "name": "Web"}, {"id": "1", "name": "Api"}]
    fake_devops.repositories["Web"] = [{"id": "r1", "name": "shop", "project": {"name": "Web"}}]
    client = _build_test_client(StatsService(fake_devops.factory()))

    projects = client.get("/v1/projects", params={"organization": "acme"}, headers=AUTH)
    assert projects.status_code == 200
    assert [project["name"] for project in projects.json()["projects"]] == ["Api", "Web"]

    repositories = client.get("/v1/repositories", params={"organization": "acme", "projects": "Web"}, headers=AUTH)
    assert repositories.status_code == 200
    assert repositories.json()["repositories"] == [
        {"id": "r1", "name": "shop", "project": "Web", "defaultBranch": None}
    ]

    missing = client.get("/v1/repositories", params={"organization": "acme"}, headers=AUTH)
    assert missing.status_code == 400
    assert missing.json()["details"] == ["projects"]


def test_config_endpoint_never_returns_the_token(fake_devops):
    config = Settings(
        _env_file=None, organization="acme", projects="A,B", repository="shop", pat="super-secret", year=2024
    )
    client = _build_test_client(StatsService(fake_devops.factory()), config)

    response = client.get("/v1/config")

    assert response.status_code == 200
    body = response.json()
    assert body["configured"] is True
    assert body["projects"] == ["A", "B"]
    assert body["hasToken"] is True
    assert "super-secret" not in response.text


def test_config_endpoint_lists_problems(fake_devops):
    config = Settings(_env_file=None, pat="your-personal-access-token-here", year=1999)
    client = _build_test_client(StatsService(fake_devops.factory()), config)

    body = client.get("/v1/config").json()

    assert body["configured"] is False
    assert "ADO_PAT must be set to a valid Personal Access Token" in body["errors"]
    assert "ADO_YEAR must be a valid year" in body["errors"]


def test_healthcheck_and_openapi_title(fake_devops):
    client = _build_test_client(StatsService(fake_devops.factory()))

    assert client.get("/healthz").json() == {"status": "ok"}
    assert client.app.openapi()["info"]["title"] == "Azure DevOps Wrapped"


def test_unexpected_failure_returns_structured_error(fake_devops):
    # A project without an id cannot be parsed into a record.
    fake_devops.projects = [{"name": "Web"}]
    client = _build_test_client(StatsService(fake_devops.factory()), raise_server_exceptions=False)

    response = client.get("/v1/projects", params={"organization": "acme"}, headers=AUTH)

    assert response.status_code == 500
    assert response.headers["content-type"].startswith("application/json")
    body = response.json()
    assert body["error"] == "internal_error"
    assert body["message"]
    assert "Traceback" in body["stack"]
