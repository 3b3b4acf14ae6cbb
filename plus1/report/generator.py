"""Report generator.

Assembles the run report from what the pipeline returned and hands it to
the notification collaborators. It makes no decisions of its own.
"""

from __future__ import annotations

from typing import Iterable, Sequence

import structlog
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from plus1.models.classification import ClassificationResult, ClassificationState
from plus1.models.policy import Diff
from plus1.models.run import ApplyOutcome, ApplyResult, ReconciliationRun, RunReport
from plus1.report.notifiers import Notifier

logger = structlog.get_logger(__name__)

_OUTCOME_STYLE = {
    ApplyOutcome.APPLIED: "green",
    ApplyOutcome.NO_OP: "green",
    ApplyOutcome.DRY_RUN: "yellow",
    ApplyOutcome.FAILED: "red",
}


def build_report(
    run: ReconciliationRun,
    policy_name: str,
    classifications: Iterable[ClassificationResult] = (),
    diff: Diff | None = None,
    apply: ApplyResult | None = None,
    error: str = "",
) -> RunReport:
    """Freeze the run's results into a report."""
    report = RunReport(
        run=run,
        policy_name=policy_name,
        classifications=tuple(sorted(classifications, key=lambda r: r.resource_id)),
        diff=diff,
        apply=apply or ApplyResult(ApplyOutcome.FAILED, "Update not attempted"),
        error=error,
    )
    logger.info(
        "reconciliation_complete",
        outcome=report.apply.outcome.value,
        statistics=report.classification_counts,
        to_add=len(diff.added) if diff else 0,
        to_remove=len(diff.removed) if diff else 0,
    )
    return report


def publish_report(report: RunReport, notifiers: Sequence[Notifier]) -> None:
    """Hand the report to every collaborator. Delivery failures never fail the run."""
    for notifier in notifiers:
        try:
            notifier.notify(report)
        except Exception as e:
            logger.warning(
                "report_delivery_failed",
                notifier=type(notifier).__name__,
                error=str(e),
            )


def render_report(report: RunReport, console: Console | None = None) -> None:
    """Print a human-readable summary of the run."""
    console = console or Console()
    style = _OUTCOME_STYLE[report.apply.outcome]
    console.print(Panel(report.summary(), title="Plus1 Enforcement", border_style=style))

    table = Table(title=f"Classifications ({len(report.classifications)} repositories)")
    table.add_column("State", style="cyan")
    table.add_column("Count", justify="right")
    counts = report.classification_counts
    for state in ClassificationState:
        table.add_row(state.value, str(counts[state.value]))
    console.print(table)

    if report.diff and report.diff.added:
        console.print(f"[green]+ add ({len(report.diff.added)}):[/] {', '.join(report.diff.added)}")
    if report.diff and report.diff.removed:
        console.print(
            f"[red]- remove ({len(report.diff.removed)}):[/] {', '.join(report.diff.removed)}"
        )

    errors = [r for r in report.classifications if r.state is ClassificationState.ERROR]
    for result in errors:
        console.print(f"  [red]x[/] {result.resource_id}: {result.detail}")

    if report.error:
        console.print(f"\n[red]FAILED:[/] {report.error}")
