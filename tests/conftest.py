from __future__ import annotations

import json
from collections import defaultdict
from types import SimpleNamespace
from urllib.parse import unquote

import httpx
import pytest

from wrapped.devops.client import AzureDevOpsClient


def commit_payload(
    commit_id: str,
    date: str = "2024-03-04T10:00:00Z",
    comment: str = "Fix login redirect",
    counts: tuple[int, int, int] | None = None,
    paths: list[str] | None = None,
) -> dict:
    payload = {
        "commitId": commit_id,
        "author": {"name": "Dana", "email": "dana@example.com", "date": date},
        "committer": {"name": "Dana", "email": "dana@example.com", "date": date},
        "comment": comment,
    }
    if counts is not None:
        payload["changeCounts"] = {"Add": counts[0], "Edit": counts[1], "Delete": counts[2]}
    if paths is not None:
        payload["changes"] = [{"item": {"path": path}, "changeType": "edit"} for path in paths]
    return payload


def pull_request_payload(
    pr_id: int,
    created: str = "2024-05-06T09:00:00Z",
    closed: str | None = None,
    status: str = "active",
    creator: str = "dana@example.com",
    creator_id: str = "id-dana",
    reviewers: list[tuple[str, str]] | None = None,
    title: str = "Add feature",
    description: str | None = None,
    target: str = "refs/heads/main",
) -> dict:
    return {
        "pullRequestId": pr_id,
        "status": status,
        "createdBy": {"id": creator_id, "displayName": creator, "uniqueName": creator},
        "creationDate": created,
        "closedDate": closed,
        "title": title,
        "description": description,
        "targetRefName": target,
        "reviewers": [
            {"id": reviewer_id, "uniqueName": name, "displayName": name, "vote": 10}
            for name, reviewer_id in (reviewers or [])
        ],
    }


def work_item_payload(
    item_id: int,
    item_type: str = "Task",
    created: str | None = "2024-02-01T08:00:00Z",
    resolved: str | None = None,
    closed: str | None = None,
    changed: str = "2024-02-03T08:00:00Z",
    tags: str | None = None,
    area: str | None = None,
    priority: int | None = None,
    severity: str | None = None,
    title: str | None = None,
    **extra,
) -> dict:
    fields = {
        "System.WorkItemType": item_type,
        "System.Title": title or f"Item {item_id}",
        "System.State": "Closed",
        "System.ChangedDate": changed,
    }
    optional = {
        "System.CreatedDate": created,
        "Microsoft.VSTS.Common.ResolvedDate": resolved,
        "Microsoft.VSTS.Common.ClosedDate": closed,
        "System.Tags": tags,
        "System.AreaPath": area,
        "Microsoft.VSTS.Common.Priority": priority,
        "Microsoft.VSTS.Common.Severity": severity,
    }
    fields.update({key: value for key, value in optional.items() if value is not None})
    fields.update(extra)
    return {"id": item_id, "fields": fields}


def _page(items: list, params: httpx.QueryParams, top_key: str, skip_key: str) -> list:
    top = int(params.get(top_key, len(items) or 1))
    skip = int(params.get(skip_key, 0))
    return items[skip : skip + top]


class FakeDevOps:
    """In-memory stand-in for the Azure DevOps REST API behind an httpx.MockTransport."""

    def __init__(self) -> None:
        self.projects: list[dict] = []
        self.repositories: dict[str, list[dict]] = defaultdict(list)
        self.commits: dict[tuple[str, str, str | None], list[dict]] = {}
        self.commit_details: dict[str, dict] = {}
        self.pull_requests: dict[tuple[str, str], list[dict]] = defaultdict(list)
        self.work_items: dict[str, list[dict]] = defaultdict(list)
        self.identities: dict[str, str] = {}
        # (project, kind) -> status code; kinds: commits, pullrequests, wiql, repositories
        self.failures: dict[tuple[str, str], int] = {}
        # (project, repository, branch) -> status code
        self.branch_failures: dict[tuple[str, str, str | None], int] = {}
        self.requests: list[httpx.Request] = []

    def client(self, organization: str = "acme", token: str = "pat", cache=None) -> AzureDevOpsClient:
        return AzureDevOpsClient(organization, token, cache=cache, transport=httpx.MockTransport(self.handler))

    def factory(self, cache=None):
        return lambda organization, token: self.client(organization, token, cache=cache)

    def count(self, fragment: str) -> int:
        return sum(1 for request in self.requests if fragment in request.url.path)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        params = request.url.params
        parts = [unquote(part) for part in request.url.path.strip("/").split("/")]

        if request.url.host.startswith("vssps"):
            identity = self.identities.get(params.get("filterValue", ""))
            return httpx.Response(200, json={"count": int(bool(identity)), "value": [{"id": identity}] if identity else []})

        if parts[1:3] == ["_apis", "projects"]:
            return httpx.Response(200, json={"count": len(self.projects), "value": self.projects})

        project, rest = parts[1], parts[2:]

        if rest == ["_apis", "git", "repositories"]:
            if (project, "repositories") in self.failures:
                return httpx.Response(self.failures[(project, "repositories")], json={"message": "boom"})
            return httpx.Response(200, json={"value": self.repositories[project]})

        if rest[:3] == ["_apis", "git", "repositories"] and len(rest) == 4:
            name = rest[3]
            return httpx.Response(200, json={"id": f"{name}-id", "name": name, "project": {"name": project}})

        if rest[:3] == ["_apis", "git", "repositories"] and rest[4] == "commits":
            repository = rest[3]
            if len(rest) == 6:
                detail = self.commit_details.get(rest[5])
                if detail is None:
                    return httpx.Response(404, json={"message": "missing"})
                return httpx.Response(200, json=detail)
            if (project, "commits") in self.failures:
                return httpx.Response(self.failures[(project, "commits")], json={"message": "commits down"})
            branch = params.get("searchCriteria.itemVersion.version")
            if (project, repository, branch) in self.branch_failures:
                status = self.branch_failures[(project, repository, branch)]
                return httpx.Response(status, json={"message": f"no branch {branch}"})
            items = self.commits.get((project, repository, branch), [])
            page = _page(items, params, "searchCriteria.$top", "searchCriteria.$skip")
            return httpx.Response(200, json={"count": len(page), "value": page})

        if rest[:3] == ["_apis", "git", "repositories"] and rest[4] == "pullrequests":
            if (project, "pullrequests") in self.failures:
                return httpx.Response(self.failures[(project, "pullrequests")], json={"message": "prs down"})
            repository_id = rest[3]
            creator = params.get("searchCriteria.creatorId")
            reviewer = params.get("searchCriteria.reviewerId")
            target = params.get("searchCriteria.targetRefName")
            matches = [
                pr
                for pr in self.pull_requests[(project, repository_id.removesuffix("-id"))]
                if (not target or pr.get("targetRefName") == target)
                and (not creator or pr["createdBy"]["id"] == creator)
                and (not reviewer or any(r["id"] == reviewer for r in pr["reviewers"]))
            ]
            page = _page(matches, params, "$top", "$skip")
            return httpx.Response(200, json={"count": len(page), "value": page})

        if rest == ["_apis", "wit", "wiql"]:
            if (project, "wiql") in self.failures:
                return httpx.Response(self.failures[(project, "wiql")], json={"message": "wiql down"})
            body = json.loads(request.content.decode())
            assert body["query"].startswith("SELECT")
            refs = [{"id": item["id"]} for item in self.work_items[project]]
            return httpx.Response(200, json={"workItems": refs})

        if rest == ["_apis", "wit", "workitems"]:
            wanted = {int(value) for value in params["ids"].split(",")}
            value = [item for item in self.work_items[project] if item["id"] in wanted]
            return httpx.Response(200, json={"count": len(value), "value": value})

        return httpx.Response(404, json={"message": f"unrouted {request.url.path}"})


@pytest.fixture
def fake_devops() -> FakeDevOps:
    return FakeDevOps()


@pytest.fixture
def payloads() -> SimpleNamespace:
    return SimpleNamespace(
        commit=commit_payload,
        pull_request=pull_request_payload,
        work_item=work_item_payload,
    )
