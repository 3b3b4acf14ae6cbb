"""Resource enumeration."""

from __future__ import annotations

from typing import Any, Protocol

import structlog

from plus1.errors import AuthenticationError, EnumerationError, Plus1Error
from plus1.models.resource import Resource

logger = structlog.get_logger(__name__)


class RepositorySource(Protocol):
    organization: str

    async def list_repositories(self) -> list[dict[str, Any]]: ...


async def enumerate_resources(source: RepositorySource) -> list[Resource]:
    """List every repository in scope.

    Fails the run rather than returning a partial inventory: reconciling
    against an incomplete list would drop members that still exist.
    """
    logger.info("enumeration_started", organization=source.organization)
    try:
        repositories = await source.list_repositories()
    except AuthenticationError:
        raise
    except Plus1Error as e:
        raise EnumerationError(
            f"Could not list repositories for {source.organization}: {e}"
        ) from e

    try:
        resources = [Resource.from_api(repo) for repo in repositories]
    except (KeyError, TypeError) as e:
        raise EnumerationError(f"Malformed repository listing: {e}") from e

    logger.info("enumeration_complete", repositories=len(resources))
    return resources
