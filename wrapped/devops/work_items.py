"""Work item retrieval: a WIQL query for ids, then batched detail reads."""

from __future__ import annotations

import logging
from datetime import date
from typing import Sequence

from wrapped.devops.client import AzureDevOpsClient, segment
from wrapped.models.devops import WorkItem

_logger = logging.getLogger(__name__)

ACCEPTED_STATES: tuple[str, ...] = ("Resolved", "Closed", "Done", "Completed")
MAX_BATCH_SIZE = 200


def escape_wiql(value: str) -> str:
    return value.replace("'", "''")


def build_wiql_query(project: str, user_email: str, from_date: date, to_date: date) -> str:
    # EVER matches items assigned to the user at any point, including when resolved.
    # ChangedDate is used because ResolvedDate/ClosedDate are missing from some templates.
    states = ", ".join(f"'{state}'" for state in ACCEPTED_STATES)
    return (
        "SELECT [System.Id], [System.WorkItemType], [System.Title], [System.State], "
        "[System.Reason], [System.CreatedDate], [System.ChangedDate], [System.Tags], "
        "[System.AreaPath], [Microsoft.VSTS.Common.Priority], [Microsoft.VSTS.Common.Severity] "
        "FROM WorkItems "
        f"WHERE [System.TeamProject] = '{escape_wiql(project)}' "
        f"AND [System.State] IN ({states}) "
        "AND NOT [System.Reason] CONTAINS 'Rejected' "
        f"AND EVER [System.AssignedTo] = '{escape_wiql(user_email)}' "
        f"AND [System.ChangedDate] >= '{from_date.isoformat()}' "
        f"AND [System.ChangedDate] <= '{to_date.isoformat()}' "
        "ORDER BY [System.ChangedDate] DESC"
    )


async def fetch_work_items(
    client: AzureDevOpsClient,
    project: str,
    from_date: date,
    to_date: date,
    user_email: str | None,
    *,
    batch_size: int = MAX_BATCH_SIZE,
    fields: Sequence[str] | None = None,
) -> list[WorkItem]:
    """Resolved work items ever assigned to ``user_email`` and changed within the window.

    ``fields`` defaults to the full field bag so optional resolution dates come
    back when the process template defines them.
    """

    if not user_email:
        _logger.info("No user email in scope; skipping work items for %s", project)
        return []

    query = build_wiql_query(project, user_email, from_date, to_date)
    result = await client.post(f"{segment(project)}/_apis/wit/wiql", {"query": query})
    ids = [reference["id"] for reference in (result or {}).get("workItems") or []]
    _logger.debug("WIQL returned %d work item ids for %s", len(ids), project)
    if not ids:
        return []

    size = max(1, min(batch_size, MAX_BATCH_SIZE))
    work_items: list[WorkItem] = []
    for start in range(0, len(ids), size):
        batch = ids[start : start + size]
        params: dict[str, object] = {"ids": ",".join(str(item_id) for item_id in batch)}
        if fields:
            params["fields"] = ",".join(fields)
        payload = await client.get(f"{segment(project)}/_apis/wit/workitems", params)
        work_items.extend(WorkItem.from_api(item) for item in (payload or {}).get("value") or [])

    _logger.info("Fetched %d work items for %s", len(work_items), project)
    return work_items
