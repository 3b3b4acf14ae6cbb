"""Plus1 Enforcement data models."""

from plus1.models.classification import ClassificationResult, ClassificationState
from plus1.models.policy import Diff, PolicyState
from plus1.models.resource import LifecycleDocument, Resource
from plus1.models.run import ApplyOutcome, ApplyResult, ReconciliationRun, RunReport

__all__ = [
    "ApplyOutcome",
    "ApplyResult",
    "ClassificationResult",
    "ClassificationState",
    "Diff",
    "LifecycleDocument",
    "PolicyState",
    "ReconciliationRun",
    "Resource",
    "RunReport",
]
