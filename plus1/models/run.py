"""Run identity, apply outcomes and the final run report."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from plus1.models.classification import ClassificationResult, ClassificationState
from plus1.models.policy import Diff


class ApplyOutcome(Enum):
    APPLIED = "applied"
    NO_OP = "no_op"
    DRY_RUN = "dry_run"
    FAILED = "failed"


@dataclass(frozen=True)
class ReconciliationRun:
    """Identity of a single run. Created once, never mutated."""

    scope: str
    dry_run: bool = False
    run_id: str = field(default_factory=lambda: f"run_{uuid.uuid4().hex[:12]}")
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )


@dataclass(frozen=True)
class ApplyResult:
    """What the applier did with a diff."""

    outcome: ApplyOutcome
    reason: str = ""
    total_members: int = 0


@dataclass(frozen=True)
class RunReport:
    """Structured summary handed to reporting and notification collaborators."""

    run: ReconciliationRun
    policy_name: str
    classifications: tuple[ClassificationResult, ...] = ()
    diff: Diff | None = None
    apply: ApplyResult = ApplyResult(ApplyOutcome.FAILED, "Update not attempted")
    error: str = ""

    @property
    def failed(self) -> bool:
        return self.apply.outcome is ApplyOutcome.FAILED

    @property
    def classification_counts(self) -> dict[str, int]:
        counts = {state.value: 0 for state in ClassificationState}
        for result in self.classifications:
            counts[result.state.value] += 1
        return counts

    def summary(self) -> str:
        added = len(self.diff.added) if self.diff else 0
        removed = len(self.diff.removed) if self.diff else 0
        lines = [
            f"Run:       {self.run.run_id} ({self.run.scope})",
            f"Ruleset:   {self.policy_name}",
            f"Dry run:   {'yes' if self.run.dry_run else 'no'}",
            f"Resources: {len(self.classifications)}",
            f"Governed:  {self.classification_counts['governed']}",
            f"Changes:   +{added} / -{removed}",
            f"Outcome:   {self.apply.outcome.value}",
        ]
        if self.error:
            lines.append(f"Error:     {self.error}")
        return "\n".join(lines)

    def to_dict(self, include_results: bool = False) -> dict:
        data = {
            "runId": self.run.run_id,
            "timestamp": self.run.timestamp,
            "dryRun": self.run.dry_run,
            "scope": self.run.scope,
            "policy": self.policy_name,
            "classificationCounts": self.classification_counts,
            "diff": self.diff.to_dict() if self.diff else {"added": [], "removed": []},
            "applyOutcome": self.apply.outcome.value,
            "applyDetail": self.apply.reason,
        }
        if self.error:
            data["error"] = self.error
        if include_results:
            data["classifications"] = [r.to_dict() for r in self.classifications]
        return data
