"""Per-resource classification outcomes."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ClassificationState(Enum):
    """Where a resource landed in the lifecycle state machine.

    Declaration order is the evaluation order of the classifier.
    """

    SKIPPED_ARCHIVED = "skipped_archived"
    NO_DOCUMENT = "no_document"
    INVALID_DOCUMENT = "invalid_document"
    UNSUPPORTED_SCHEMA = "unsupported_schema"
    MISSING_LIFECYCLE = "missing_lifecycle"
    GOVERNED = "governed"
    NOT_GOVERNED = "not_governed"
    ERROR = "error"


@dataclass(frozen=True)
class ClassificationResult:
    """Exactly one per resource per run."""

    resource_id: str
    state: ClassificationState
    lifecycle: str | None = None
    detail: str = ""

    @property
    def governed(self) -> bool:
        return self.state is ClassificationState.GOVERNED

    def to_dict(self) -> dict:
        return {
            "resource_id": self.resource_id,
            "state": self.state.value,
            "lifecycle": self.lifecycle,
            "detail": self.detail,
        }
