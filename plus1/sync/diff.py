"""Membership diff."""

from __future__ import annotations

from typing import Iterable

import structlog

from plus1.models.policy import Diff

logger = structlog.get_logger(__name__)


def compute_diff(desired: Iterable[str], current: Iterable[str]) -> Diff:
    """Return what must be added to and removed from ``current``."""
    desired_set = set(desired)
    current_set = set(current)
    diff = Diff(
        desired=tuple(sorted(desired_set)),
        added=tuple(sorted(desired_set - current_set)),
        removed=tuple(sorted(current_set - desired_set)),
    )
    logger.info(
        "diff_computed",
        requires_update=diff.requires_update,
        to_add=len(diff.added),
        to_remove=len(diff.removed),
        desired=len(desired_set),
        current=len(current_set),
    )
    if diff.added:
        logger.info("repositories_to_add", repositories=list(diff.added))
    if diff.removed:
        logger.info("repositories_to_remove", repositories=list(diff.removed))
    return diff
