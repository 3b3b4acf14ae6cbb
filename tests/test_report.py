"""Tests for run reports and their delivery collaborators."""

import hashlib
import hmac
import json
import tempfile
from pathlib import Path

import httpx
from rich.console import Console

from plus1.models.classification import ClassificationResult, ClassificationState
from plus1.models.run import ApplyOutcome, ApplyResult, ReconciliationRun
from plus1.report.generator import build_report, render_report
from plus1.report.notifiers import AuditLog, JsonReportWriter, WebhookNotifier
from plus1.sync.diff import compute_diff


def _report(outcome=ApplyOutcome.APPLIED, error="", dry_run=False):
    results = [
        ClassificationResult("web", ClassificationState.GOVERNED, "production"),
        ClassificationResult("api", ClassificationState.GOVERNED, "Production"),
        ClassificationResult("docs", ClassificationState.NOT_GOVERNED, "staging"),
        ClassificationResult("old", ClassificationState.SKIPPED_ARCHIVED),
        ClassificationResult("flaky", ClassificationState.ERROR, detail="timed out"),
    ]
    return build_report(
        ReconciliationRun(scope="acme", dry_run=dry_run),
        "plus1_enforcement",
        classifications=results,
        diff=compute_diff(["api", "web"], ["web", "gone"]),
        apply=ApplyResult(outcome, outcome.value),
        error=error,
    )


def test_classification_counts_cover_every_state():
    counts = _report().classification_counts
    assert set(counts) == {s.value for s in ClassificationState}
    assert counts["governed"] == 2
    assert counts["not_governed"] == 1
    assert counts["skipped_archived"] == 1
    assert counts["error"] == 1
    assert counts["no_document"] == 0
    assert sum(counts.values()) == 5


def test_report_dict_shape():
    report = _report()
    data = report.to_dict()
    assert data["scope"] == "acme"
    assert data["runId"].startswith("run_")
    assert data["diff"] == {"added": ["api"], "removed": ["gone"]}
    assert data["applyOutcome"] == "applied"
    assert "error" not in data
    assert "classifications" not in data

    full = report.to_dict(include_results=True)
    assert [c["resource_id"] for c in full["classifications"]] == [
        "api", "docs", "flaky", "old", "web"
    ]


def test_failed_report_without_diff():
    report = build_report(ReconciliationRun(scope="acme"), "plus1_enforcement", error="boom")
    assert report.failed
    assert report.to_dict()["diff"] == {"added": [], "removed": []}
    assert "boom" in report.summary()


def test_render_report_lists_changes():
    console = Console(record=True, width=120)
    render_report(_report(ApplyOutcome.FAILED, error="PUT failed"), console)
    text = console.export_text()
    assert "+ add (1): api" in text
    assert "- remove (1): gone" in text
    assert "flaky: timed out" in text
    assert "PUT failed" in text


def test_json_report_writer():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "out" / "report.json"
        JsonReportWriter(path).notify(_report())
        data = json.loads(path.read_text())
    assert data["classificationCounts"]["governed"] == 2
    assert len(data["classifications"]) == 5


def test_audit_log_records_and_filters():
    with tempfile.TemporaryDirectory() as tmpdir:
        log = AuditLog(Path(tmpdir))
        log.notify(_report())
        log.notify(_report(ApplyOutcome.FAILED, error="boom"))

        entries = log.get_entries()
        assert len(entries) == 2
        failed = log.get_entries(outcome="failed")
        assert len(failed) == 1
        assert failed[0].error == "boom"
        assert failed[0].added == ["api"]
        assert log.get_entries(scope="other") == []
        assert len(list(Path(tmpdir).glob("*.jsonl"))) == 1


def test_audit_log_skips_truncated_lines():
    with tempfile.TemporaryDirectory() as tmpdir:
        log = AuditLog(Path(tmpdir))
        log.notify(_report())
        log_file = next(Path(tmpdir).glob("*.jsonl"))
        with log_file.open("a", encoding="utf-8") as fh:
            fh.write('{"id": "abc", "timestamp": "2026-10-18T')

        entries = log.get_entries()

    assert len(entries) == 1
    assert entries[0].outcome == "applied"


def test_webhook_only_fires_on_failure_by_default():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(204)

    notifier = WebhookNotifier("https://hooks.example/plus1", transport=httpx.MockTransport(handler))
    notifier.notify(_report())
    assert requests == []

    notifier.notify(_report(ApplyOutcome.FAILED, error="PUT failed"))
    assert len(requests) == 1
    body = json.loads(requests[0].content)
    assert body["event"] == "reconciliation.failed"
    assert body["error"] == "PUT failed"
    assert body["report"]["diff"]["removed"] == ["gone"]
    assert notifier.deliveries[0].success


def test_webhook_signature():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200)

    notifier = WebhookNotifier(
        "https://hooks.example/plus1",
        secret="s3cret",
        always=True,
        transport=httpx.MockTransport(handler),
    )
    notifier.notify(_report())

    request = requests[0]
    expected = hmac.new(b"s3cret", request.content, hashlib.sha256).hexdigest()
    assert request.headers["X-Plus1-Signature"] == f"sha256={expected}"
    assert request.headers["X-Plus1-Event"] == "reconciliation.completed"


def test_webhook_delivery_failure_is_recorded_not_raised():
    def handler(request):
        raise httpx.ConnectError("unreachable")

    notifier = WebhookNotifier("https://hooks.example/plus1", transport=httpx.MockTransport(handler))
    delivery = notifier.deliver(_report(ApplyOutcome.FAILED, error="x"))
    assert not delivery.success
    assert "unreachable" in delivery.response_body
