"""Plus1 CLI — the main entry point for lifecycle-driven ruleset enforcement."""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from plus1 import __version__
from plus1.errors import ConfigurationError

console = Console()

# Exit codes for `plus1 validate`
EXIT_GOVERNED = 0
EXIT_FILE_PROBLEM = 1
EXIT_SCHEMA_FAILED = 2
EXIT_NOT_GOVERNED = 3
EXIT_MISSING_LIFECYCLE = 4


@click.group()
@click.version_option(version=__version__)
def main():
    """Plus1 Enforcement — lifecycle-driven ruleset membership.

    Keeps an organization ruleset's repository list in step with the
    lifecycle each repository declares in its entity document.
    """


# ── Reconcile ────────────────────────────────────────────────────────


@main.command()
@click.option("--org", default=None, help="Organization (default: $GITHUB_ORG or workflow owner)")
@click.option("--token", default=None, help="GitHub token (default: $GITHUB_TOKEN)")
@click.option("--dry-run", is_flag=True, help="Compute the diff but never write")
@click.option("--config", "config_path", default=None, type=click.Path(exists=True, dir_okay=False))
@click.option("--ruleset", default=None, help="Ruleset name (default: plus1_enforcement)")
@click.option("--ruleset-id", default=None, type=int, help="Ruleset id (skips the name lookup)")
@click.option("--yaml-path", default=None, help="Entity document path in each repository")
@click.option("--batch-size", default=None, type=click.IntRange(min=1))
@click.option("--output", "-o", default=None, help="Save the full report as JSON")
@click.option("--audit-dir", default=None, help="Append the run to an audit log in this directory")
@click.option("--webhook-url", envvar="PLUS1_WEBHOOK_URL", default=None,
              help="Notify this URL when a run fails")
@click.option("--webhook-secret", envvar="PLUS1_WEBHOOK_SECRET", default="",
              help="HMAC secret for webhook signatures")
@click.option("--verbose", "-v", is_flag=True, help="Log every classification and retry")
@click.option("--json-logs", is_flag=True, help="Emit logs as JSON lines")
def reconcile(
    org: str | None,
    token: str | None,
    dry_run: bool,
    config_path: str | None,
    ruleset: str | None,
    ruleset_id: int | None,
    yaml_path: str | None,
    batch_size: int | None,
    output: str | None,
    audit_dir: str | None,
    webhook_url: str | None,
    webhook_secret: str,
    verbose: bool,
    json_logs: bool,
):
    """Reconcile the ruleset membership with repository lifecycles.

    Exits non-zero if the run failed. Dry runs and runs with nothing to
    change are successful runs.
    """
    from plus1.config import load_config, resolve_credentials
    from plus1.report.generator import render_report
    from plus1.report.notifiers import AuditLog, JsonReportWriter, WebhookNotifier
    from plus1.utils.logging import setup_logging

    setup_logging(verbose=verbose, json_logs=json_logs)

    try:
        config = load_config(config_path).with_overrides(
            ruleset_name=ruleset,
            ruleset_id=ruleset_id,
            document_path=yaml_path,
            batch_size=batch_size,
        )
        credentials = resolve_credentials(token, org)
    except ConfigurationError as e:
        console.print(f"[red]Error:[/] {e}")
        sys.exit(1)

    notifiers = []
    if output:
        notifiers.append(JsonReportWriter(output))
    if audit_dir:
        notifiers.append(AuditLog(Path(audit_dir)))
    if webhook_url:
        notifiers.append(WebhookNotifier(webhook_url, secret=webhook_secret))

    mode = " [yellow](dry run)[/]" if dry_run else ""
    console.print(
        f"\n[bold blue]Plus1[/] — Reconciling '{config.ruleset_name or config.ruleset_id}' "
        f"for {credentials.organization}{mode}\n"
    )

    report = asyncio.run(_reconcile(credentials, config, dry_run, notifiers))
    render_report(report, console)

    if report.failed:
        sys.exit(1)


async def _reconcile(credentials, config, dry_run, notifiers):
    from plus1.engine import ReconciliationEngine
    from plus1.github.client import GitHubClient

    async with GitHubClient(credentials.token, credentials.organization, config) as client:
        engine = ReconciliationEngine(client, config, notifiers)
        return await engine.run(dry_run=dry_run)


# ── Validate ─────────────────────────────────────────────────────────


@main.command()
@click.argument("repo_path", type=click.Path(exists=True, file_okay=False))
@click.option("--file", "-f", "yaml_path", default=None, help="Entity document path (default: entity.datadog.yaml)")
@click.option("--config", "config_path", default=None, type=click.Path(exists=True, dir_okay=False))
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
def validate(repo_path: str, yaml_path: str | None, config_path: str | None, as_json: bool):
    """Check a local repository's entity document.

    \b
    Exit codes:
      0  governed (production lifecycle)
      1  document missing or unreadable
      2  invalid document or unsupported schema
      3  not governed
      4  missing lifecycle
    """
    from plus1.config import load_config
    from plus1.lifecycle.classifier import classify_document
    from plus1.models.classification import ClassificationResult, ClassificationState

    try:
        config = load_config(config_path).with_overrides(document_path=yaml_path)
    except ConfigurationError as e:
        console.print(f"[red]Error:[/] {e}")
        sys.exit(EXIT_FILE_PROBLEM)

    repo = Path(repo_path)
    document = repo / config.document_path
    try:
        text = document.read_text(encoding="utf-8")
    except FileNotFoundError:
        result = ClassificationResult(
            repo.resolve().name, ClassificationState.NO_DOCUMENT, detail="File does not exist"
        )
    except (OSError, UnicodeDecodeError) as e:
        result = ClassificationResult(
            repo.resolve().name, ClassificationState.ERROR, detail=f"File is not readable: {e}"
        )
    else:
        result = classify_document(repo.resolve().name, text, config)

    exit_code = {
        ClassificationState.GOVERNED: EXIT_GOVERNED,
        ClassificationState.NOT_GOVERNED: EXIT_NOT_GOVERNED,
        ClassificationState.MISSING_LIFECYCLE: EXIT_MISSING_LIFECYCLE,
        ClassificationState.INVALID_DOCUMENT: EXIT_SCHEMA_FAILED,
        ClassificationState.UNSUPPORTED_SCHEMA: EXIT_SCHEMA_FAILED,
    }.get(result.state, EXIT_FILE_PROBLEM)

    if as_json:
        data = result.to_dict()
        data.update(
            valid=exit_code in (EXIT_GOVERNED, EXIT_NOT_GOVERNED),
            is_production=result.governed,
            repository_path=str(repo),
            yaml_file_path=config.document_path,
        )
        click.echo(json.dumps(data, indent=2))
    elif result.governed:
        console.print(f"[green]v[/] Repository qualifies for Plus1 Enforcement (lifecycle: {result.lifecycle})")
    elif result.state is ClassificationState.NOT_GOVERNED:
        console.print(f"[yellow]![/] Valid document but non-production lifecycle: {result.lifecycle}")
    else:
        console.print(f"[red]x[/] [{result.state.value}] {result.detail}")

    sys.exit(exit_code)


# ── Audit ────────────────────────────────────────────────────────────


@main.command()
@click.option("--audit-dir", default=None, help="Audit log directory (default: ~/.plus1/audit_logs)")
@click.option("--org", default=None, help="Only runs for this organization")
@click.option("--outcome", default=None,
              type=click.Choice(["applied", "no_op", "dry_run", "failed"]))
@click.option("--limit", default=20, show_default=True)
def audit(audit_dir: str | None, org: str | None, outcome: str | None, limit: int):
    """List recorded reconciliation runs, newest first."""
    from plus1.report.notifiers import AuditLog

    log = AuditLog(Path(audit_dir) if audit_dir else None)
    entries = log.get_entries(scope=org, outcome=outcome, limit=limit)

    if not entries:
        console.print("[yellow]No runs recorded.[/]")
        return

    table = Table(title=f"Reconciliation runs ({len(entries)})")
    table.add_column("Timestamp", style="dim")
    table.add_column("Run", style="cyan")
    table.add_column("Organization")
    table.add_column("Outcome")
    table.add_column("+", justify="right", style="green")
    table.add_column("-", justify="right", style="red")

    for entry in entries:
        table.add_row(
            entry.timestamp[:19],
            entry.run_id,
            entry.scope,
            entry.outcome,
            str(len(entry.added)),
            str(len(entry.removed)),
        )

    console.print(table)


if __name__ == "__main__":
    main()
