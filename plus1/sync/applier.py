"""Applies a membership diff to the ruleset.

The write is a single full replacement of the ruleset with only
``conditions.repository_name.include`` changed, so the ruleset either keeps
its old membership or reaches the new one. It is never retried: replaying a
full-replace without re-reading could clobber a concurrent change.
"""

from __future__ import annotations

import asyncio
from typing import Any, Protocol

import structlog

from plus1.errors import ApplyError, ConcurrentModificationError, Plus1Error
from plus1.models.policy import Diff, PolicyState
from plus1.models.run import ApplyOutcome, ApplyResult

logger = structlog.get_logger(__name__)


class RulesetStore(Protocol):
    async def get_ruleset(self, ruleset_id: int | str) -> dict[str, Any] | None: ...

    async def update_ruleset(
        self, ruleset_id: int | str, payload: dict[str, Any]
    ) -> dict[str, Any]: ...


async def apply_diff(
    store: RulesetStore, state: PolicyState, diff: Diff, dry_run: bool = False
) -> ApplyResult:
    """Bring the ruleset membership to ``diff.desired``.

    Raises:
        ApplyError: The write failed or the ruleset changed since it was read.
    """
    total = len(diff.desired)

    if dry_run:
        logger.info(
            "dry_run_update_skipped",
            would_add=len(diff.added),
            would_remove=len(diff.removed),
            total_targets=total,
        )
        return ApplyResult(ApplyOutcome.DRY_RUN, "Dry run mode", total)

    if not diff.requires_update:
        logger.info("policy_update_skipped", reason="No changes required")
        return ApplyResult(ApplyOutcome.NO_OP, "No changes required", total)

    if state.revision:
        await _check_revision(store, state)

    payload = state.replacement_payload(list(diff.desired))
    logger.info("policy_update_started", ruleset=state.name, total_targets=total)

    write = asyncio.ensure_future(store.update_ruleset(state.policy_id, payload))
    try:
        updated = await _finish_write(write)
    except Plus1Error as e:
        logger.error("policy_update_failed", ruleset=state.name, error=str(e))
        raise ApplyError(f"Failed to update ruleset '{state.name}': {e}") from e

    written = (
        ((updated or {}).get("conditions") or {}).get("repository_name") or {}
    ).get("include")
    if written is not None and sorted(written) != list(diff.desired):
        logger.warning(
            "policy_membership_mismatch",
            ruleset=state.name,
            expected=len(diff.desired),
            actual=len(written),
        )

    logger.info(
        "policy_updated",
        ruleset=state.name,
        added=len(diff.added),
        removed=len(diff.removed),
        total_targets=total,
    )
    return ApplyResult(ApplyOutcome.APPLIED, "Ruleset updated", total)


async def _finish_write(write: asyncio.Future) -> dict[str, Any]:
    """Await an issued write to completion, absorbing cancellation.

    A cancellation that arrives meanwhile stays pending on the current task
    (``Task.cancelling()``); the engine honours it once the run's report has
    been published.
    """
    while True:
        try:
            return await asyncio.shield(write)
        except asyncio.CancelledError:
            if write.cancelled():
                raise
            logger.warning("policy_update_cancel_deferred", reason="write already issued")


async def _check_revision(store: RulesetStore, state: PolicyState) -> None:
    try:
        latest = await store.get_ruleset(state.policy_id)
    except Plus1Error as e:
        raise ApplyError(f"Could not re-read ruleset '{state.name}': {e}") from e
    if latest is None:
        raise ApplyError(f"Ruleset '{state.name}' disappeared before the update")

    revision = str(latest.get("updated_at") or "")
    if revision and revision != state.revision:
        raise ConcurrentModificationError(state.name, state.revision, revision)
