"""Resolve a user email to the platform's internal identity id."""

from __future__ import annotations

import logging

from wrapped.core.errors import UnresolvableIdentityError
from wrapped.devops.client import AzureDevOpsClient

_logger = logging.getLogger(__name__)


async def resolve_identity_id(client: AzureDevOpsClient, email: str | None) -> str:
    """Single lookup, no retry. Raises ``UnresolvableIdentityError`` when nothing matches."""

    if not email:
        raise UnresolvableIdentityError(None)
    payload = await client.get(
        client.identity_url("_apis/identities"),
        {"searchFilter": "General", "filterValue": email, "queryMembership": "None"},
        api_version=client.identity_api_version,
    )
    for identity in (payload or {}).get("value") or []:
        identity_id = identity.get("id")
        if identity_id:
            _logger.debug("Resolved identity for %s", email)
            return identity_id
    raise UnresolvableIdentityError(email)
