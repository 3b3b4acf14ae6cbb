"""Reads the managed ruleset."""

from __future__ import annotations

from typing import Any, Protocol

import structlog

from plus1.errors import PolicyNotFoundError
from plus1.models.policy import PolicyState

logger = structlog.get_logger(__name__)


class RulesetSource(Protocol):
    organization: str

    async def list_rulesets(self) -> list[dict[str, Any]]: ...

    async def get_ruleset(self, ruleset_id: int | str) -> dict[str, Any] | None: ...


async def read_policy(
    source: RulesetSource, name: str, ruleset_id: int | str | None = None
) -> PolicyState:
    """Return the current state of the ruleset.

    Looks the ruleset up by name unless an id is given. A missing ruleset is
    fatal: creating one means choosing enforcement semantics, which is not
    this tool's call.
    """
    if ruleset_id is None:
        logger.info("ruleset_lookup", ruleset=name)
        summaries = await source.list_rulesets()
        match = next((r for r in summaries if r.get("name") == name), None)
        if match is None:
            raise PolicyNotFoundError(name, source.organization)
        ruleset_id = match["id"]

    details = await source.get_ruleset(ruleset_id)
    if details is None:
        raise PolicyNotFoundError(name or str(ruleset_id), source.organization)

    state = PolicyState.from_api(details)
    logger.info(
        "ruleset_found",
        ruleset=state.name,
        ruleset_id=state.policy_id,
        enforcement=state.enforcement,
        members=len(state.membership),
    )
    return state
