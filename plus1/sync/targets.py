"""Desired membership from classification results."""

from __future__ import annotations

from typing import Iterable

from plus1.models.classification import ClassificationResult


def desired_membership(results: Iterable[ClassificationResult]) -> tuple[str, ...]:
    """Sorted, de-duplicated ids of every governed resource.

    Independent of input order and batch boundaries.
    """
    return tuple(sorted({r.resource_id for r in results if r.governed}))
