"""Reconciliation engine — one run from inventory to applied ruleset.

Flow::

    enumerate ─> classify ─> desired ─┐
                                      ├─> diff ─> apply ─> report
    read ruleset ─────────────────────┘

Classification and the ruleset read are independent and run concurrently.
Nothing is written before the complete desired set and the current ruleset
are known, so aborting any time before the apply stage leaves the ruleset
untouched. Once the write is issued the run finishes as a unit: a
cancellation received during the write is honoured after the report is
published.
"""

from __future__ import annotations

import asyncio
from typing import Sequence

import structlog

from plus1.config import EnforcementConfig
from plus1.errors import Plus1Error
from plus1.lifecycle.classifier import LifecycleClassifier
from plus1.models.classification import ClassificationResult
from plus1.models.policy import Diff, PolicyState
from plus1.models.run import ApplyOutcome, ApplyResult, ReconciliationRun, RunReport
from plus1.report.generator import build_report, publish_report
from plus1.report.notifiers import Notifier
from plus1.sync.applier import apply_diff
from plus1.sync.diff import compute_diff
from plus1.sync.enumerator import enumerate_resources
from plus1.sync.policy_reader import read_policy
from plus1.sync.targets import desired_membership

logger = structlog.get_logger(__name__)


class ReconciliationEngine:
    """Runs reconciliations against one organization.

    ``client`` provides repository listing, file contents and ruleset
    read/write; ``GitHubClient`` is the production implementation.
    """

    def __init__(
        self,
        client,
        config: EnforcementConfig | None = None,
        notifiers: Sequence[Notifier] = (),
    ):
        self.client = client
        self.config = config or EnforcementConfig()
        self.notifiers = list(notifiers)
        self.classifier = LifecycleClassifier(client, self.config)

    @property
    def policy_label(self) -> str:
        return self.config.ruleset_name or str(self.config.ruleset_id)

    async def run(self, dry_run: bool = False) -> RunReport:
        """Execute one run and return its report.

        Fatal errors do not raise; they produce a report with a ``failed``
        outcome. Cancellation propagates; if it arrives while the ruleset
        write is in flight, it is raised only after the report is published.
        """
        run = ReconciliationRun(scope=self.client.organization, dry_run=dry_run)
        with structlog.contextvars.bound_contextvars(run_id=run.run_id):
            return await self._run(run)

    async def _run(self, run: ReconciliationRun) -> RunReport:
        dry_run = run.dry_run
        logger.info(
            "reconciliation_started",
            organization=run.scope,
            ruleset=self.policy_label,
            document_path=self.config.document_path,
            production_values=list(self.config.production_lifecycle_values),
            dry_run=dry_run,
        )

        classifications: list[ClassificationResult] = []
        diff: Diff | None = None
        try:
            classifications, state = await self._gather_state()
            diff = compute_diff(desired_membership(classifications), state.membership)
            apply = await apply_diff(self.client, state, diff, dry_run=dry_run)
            error = ""
        except Plus1Error as e:
            logger.error("reconciliation_failed", error=str(e), error_type=type(e).__name__)
            apply = ApplyResult(ApplyOutcome.FAILED, type(e).__name__)
            error = str(e)
        except Exception as e:
            logger.exception("reconciliation_crashed")
            apply = ApplyResult(ApplyOutcome.FAILED, type(e).__name__)
            error = f"Unexpected error: {e}"

        report = build_report(
            run,
            self.policy_label,
            classifications=classifications,
            diff=diff,
            apply=apply,
            error=error,
        )
        publish_report(report, self.notifiers)

        task = asyncio.current_task()
        if task is not None and task.cancelling():
            raise asyncio.CancelledError
        return report

    async def _gather_state(self) -> tuple[list[ClassificationResult], PolicyState]:
        resources = await enumerate_resources(self.client)

        classify = asyncio.ensure_future(self.classifier.classify_all(resources))
        try:
            state = await read_policy(
                self.client, self.config.ruleset_name, self.config.ruleset_id
            )
        except BaseException:
            classify.cancel()
            await asyncio.gather(classify, return_exceptions=True)
            raise

        return await classify, state

