"""Collaborators that receive run reports.

- ``JsonReportWriter``: saves the full report (including per-repository
  classifications) to a file, e.g. for upload as a workflow artifact.
- ``AuditLog``: append-only newline-delimited JSON, one file per day.
- ``WebhookNotifier``: POSTs the report to an external endpoint (issue
  tracker bridge, chat webhook). Payloads are signed with HMAC-SHA256.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import time
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Protocol

import httpx
import structlog

from plus1.models.run import RunReport

logger = structlog.get_logger(__name__)


class Notifier(Protocol):
    def notify(self, report: RunReport) -> None: ...


# ------------------------------------------------------------------
# Report file
# ------------------------------------------------------------------


class JsonReportWriter:
    """Writes the report as pretty-printed JSON."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def notify(self, report: RunReport) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(
            json.dumps(report.to_dict(include_results=True), indent=2), encoding="utf-8"
        )
        logger.info("report_saved", path=str(self.path))


# ------------------------------------------------------------------
# Audit log
# ------------------------------------------------------------------


@dataclass
class AuditEntry:
    """A single audit log entry."""

    id: str
    timestamp: str
    run_id: str
    scope: str
    policy: str
    dry_run: bool
    outcome: str
    added: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    error: str = ""


class AuditLog:
    """File-based JSON audit trail of reconciliation runs.

    Entries are stored as newline-delimited JSON in daily log files under
    ``~/.plus1/audit_logs/`` unless another directory is given.
    """

    def __init__(self, base_dir: Optional[Path] = None) -> None:
        self._base_dir = Path(base_dir) if base_dir else Path.home() / ".plus1" / "audit_logs"
        self._base_dir.mkdir(parents=True, exist_ok=True)

    def _log_file_for_date(self, dt: datetime) -> Path:
        return self._base_dir / f"{dt.strftime('%Y-%m-%d')}.jsonl"

    def record(self, report: RunReport) -> AuditEntry:
        """Append the run to today's log and return the created entry."""
        diff = report.diff
        entry = AuditEntry(
            id=uuid.uuid4().hex[:16],
            timestamp=datetime.now(timezone.utc).isoformat(),
            run_id=report.run.run_id,
            scope=report.run.scope,
            policy=report.policy_name,
            dry_run=report.run.dry_run,
            outcome=report.apply.outcome.value,
            added=list(diff.added) if diff else [],
            removed=list(diff.removed) if diff else [],
            error=report.error,
        )
        log_file = self._log_file_for_date(datetime.now(timezone.utc))
        with log_file.open("a", encoding="utf-8") as fh:
            fh.write(json.dumps(asdict(entry)) + "\n")
        return entry

    def notify(self, report: RunReport) -> None:
        self.record(report)

    def get_entries(
        self,
        *,
        scope: Optional[str] = None,
        outcome: Optional[str] = None,
        limit: int = 200,
    ) -> list[AuditEntry]:
        """Return filtered entries, newest first."""
        entries: list[AuditEntry] = []
        for path in sorted(self._base_dir.glob("*.jsonl")):
            for lineno, line in enumerate(path.read_text(encoding="utf-8").splitlines(), 1):
                if not line.strip():
                    continue
                try:
                    entries.append(AuditEntry(**json.loads(line)))
                except (ValueError, TypeError) as e:
                    # A run killed mid-append leaves a partial line
                    logger.warning(
                        "audit_entry_unreadable", path=str(path), line=lineno, error=str(e)
                    )

        if scope:
            entries = [e for e in entries if e.scope == scope]
        if outcome:
            entries = [e for e in entries if e.outcome == outcome]

        entries.sort(key=lambda e: e.timestamp, reverse=True)
        return entries[:limit]


# ------------------------------------------------------------------
# Webhook
# ------------------------------------------------------------------


@dataclass
class WebhookDelivery:
    """Record of a single webhook delivery attempt."""

    id: str
    event: str
    response_status: int = 0
    response_body: str = ""
    success: bool = False
    delivered_at: str = ""
    duration_ms: int = 0


class WebhookNotifier:
    """Delivers run reports to a webhook.

    By default only failed runs are delivered; ``always=True`` sends every
    run. The payload is the run report plus an ``error`` detail string;
    formatting it into an issue or chat message is the receiver's job.
    """

    def __init__(
        self,
        url: str,
        secret: str = "",
        always: bool = False,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.url = url
        self.secret = secret
        self.always = always
        self.timeout = timeout
        self._transport = transport
        self.deliveries: list[WebhookDelivery] = []

    @staticmethod
    def compute_signature(payload_bytes: bytes, secret: str) -> str:
        """Compute HMAC-SHA256 signature for a payload."""
        mac = hmac.new(secret.encode("utf-8"), payload_bytes, hashlib.sha256)
        return f"sha256={mac.hexdigest()}"

    def notify(self, report: RunReport) -> None:
        if report.failed or self.always:
            self.deliver(report)

    def deliver(self, report: RunReport) -> WebhookDelivery:
        """Attempt a single delivery and return the result."""
        event = "reconciliation.failed" if report.failed else "reconciliation.completed"
        payload: dict[str, Any] = {"event": event, "report": report.to_dict()}
        if report.error:
            payload["error"] = report.error

        body = json.dumps(payload).encode("utf-8")
        headers = {"Content-Type": "application/json", "X-Plus1-Event": event}
        if self.secret:
            headers["X-Plus1-Signature"] = self.compute_signature(body, self.secret)

        start = time.monotonic()
        status = 0
        resp_body = ""
        success = False
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                resp = client.post(self.url, content=body, headers=headers)
            status = resp.status_code
            resp_body = resp.text[:2000]
            success = resp.is_success
        except httpx.HTTPError as exc:
            resp_body = str(exc)[:2000]

        delivery = WebhookDelivery(
            id=uuid.uuid4().hex[:16],
            event=event,
            response_status=status,
            response_body=resp_body,
            success=success,
            delivered_at=datetime.now(timezone.utc).isoformat(),
            duration_ms=int((time.monotonic() - start) * 1000),
        )
        self.deliveries.append(delivery)
        if success:
            logger.info("webhook_delivered", webhook_event=event, status=status)
        else:
            logger.warning(
                "webhook_delivery_failed",
                webhook_event=event,
                status=status,
                body=resp_body[:200],
            )
        return delivery
