"""The managed policy (an organization ruleset) and membership diffs."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class PolicyState:
    """The ruleset as read at the start of a run.

    Only ``membership`` is ever written back. ``rules``, ``bypass_actors``,
    ``exclude`` and every condition other than the include list are
    passed through untouched.
    """

    policy_id: int | str
    name: str
    enforcement: str
    membership: frozenset[str]
    exclude: tuple[str, ...] = ()
    target: str = "branch"
    conditions: dict[str, Any] = field(default_factory=dict)
    rules: Any = None
    bypass_actors: Any = None
    revision: str = ""

    @classmethod
    def from_api(cls, data: dict) -> PolicyState:
        conditions = data.get("conditions") or {}
        repo_names = conditions.get("repository_name") or {}
        return cls(
            policy_id=data["id"],
            name=data.get("name", ""),
            enforcement=data.get("enforcement", ""),
            membership=frozenset(repo_names.get("include") or ()),
            exclude=tuple(repo_names.get("exclude") or ()),
            target=data.get("target", "branch"),
            conditions=conditions,
            rules=data.get("rules"),
            bypass_actors=data.get("bypass_actors"),
            revision=str(data.get("updated_at") or ""),
        )

    def replacement_payload(self, members: list[str]) -> dict[str, Any]:
        """Full-replace body for the update call with the include list swapped."""
        conditions = copy.deepcopy(self.conditions)
        repo_names = dict(conditions.get("repository_name") or {})
        repo_names["include"] = list(members)
        repo_names["exclude"] = list(self.exclude)
        conditions["repository_name"] = repo_names
        return {
            "name": self.name,
            "target": self.target,
            "enforcement": self.enforcement,
            "conditions": conditions,
            "rules": copy.deepcopy(self.rules),
            "bypass_actors": copy.deepcopy(self.bypass_actors),
        }


@dataclass(frozen=True)
class Diff:
    """Membership changes needed to move from current to desired."""

    desired: tuple[str, ...]
    added: tuple[str, ...] = ()
    removed: tuple[str, ...] = ()

    def __post_init__(self):
        overlap = set(self.added) & set(self.removed)
        if overlap:
            raise ValueError(f"Resources both added and removed: {sorted(overlap)}")

    @property
    def requires_update(self) -> bool:
        return bool(self.added) or bool(self.removed)

    def to_dict(self) -> dict:
        return {"added": list(self.added), "removed": list(self.removed)}
