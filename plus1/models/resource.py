"""Resources under governance and their declared lifecycle documents."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Resource:
    """A repository in the enumerated scope. Read-only to the engine."""

    id: str
    archived: bool = False
    last_modified: str | None = None  # ISO 8601, from the inventory

    @classmethod
    def from_api(cls, data: dict) -> Resource:
        return cls(
            id=data["name"],
            archived=bool(data.get("archived", False)),
            last_modified=data.get("pushed_at") or data.get("updated_at"),
        )


@dataclass(frozen=True)
class LifecycleDocument:
    """The fields of an entity document that matter for classification.

    ``lifecycle`` may legitimately be absent; that is a classification
    outcome of its own, not a parse failure.
    """

    api_version: str | None
    kind: str | None
    metadata_name: str | None
    lifecycle: str | None = None
