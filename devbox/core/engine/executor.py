"""
Engine executor — the provisioning loop.

Runs steps strictly top to bottom against a shared StepContext. A step
reports failures through receipts; only native errors (unreadable
template, permission denied on a write we do ourselves) escape and
abort the run.

Flow:
    probe → packages → tls → configs → database → extras → sites → persist
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import UTC, datetime

from devbox.core.engine.context import StepContext
from devbox.core.engine.report import ProvisionReport, StepReport
from devbox.core.persistence.audit import AuditEntry, AuditWriter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProvisionStep:
    """A named step in the provisioning sequence."""

    name: str
    title: str
    run: Callable[[StepContext], StepReport]


def execute_steps(
    steps: Iterable[ProvisionStep],
    context: StepContext,
    run_id: str = "",
) -> ProvisionReport:
    """Run each step in order and collect its report.

    Args:
        steps: Steps to execute, in order.
        context: Shared context (config, registry, connectivity).
        run_id: Identifier recorded on the report.

    Returns:
        ProvisionReport with one StepReport per executed step.
    """
    report = ProvisionReport(run_id=run_id or generate_run_id())
    start = time.monotonic()

    for step in steps:
        logger.info("── %s", step.title)
        step_report = step.run(context)
        report.steps.append(step_report)

        status_marker = "✓" if step_report.status == "ok" else "✗"
        logger.info(
            "%s %s → %s (%d ok, %d skipped, %d failed)",
            status_marker,
            step.name,
            step_report.status,
            step_report.succeeded,
            step_report.skipped,
            step_report.failed,
        )

    report.connected = context.connectivity.connected
    report.elapsed_seconds = int(time.monotonic() - start)
    return report


def write_audit_entry(
    report: ProvisionReport,
    audit_writer: AuditWriter,
    dry_run: bool = False,
) -> None:
    """Write a run summary to the audit ledger."""
    entry = AuditEntry(
        run_id=report.run_id,
        steps=[s.name for s in report.steps],
        connected=report.connected,
        dry_run=dry_run,
        status=report.status,
        actions_total=report.total,
        actions_succeeded=report.succeeded,
        actions_skipped=report.skipped,
        actions_failed=report.failed,
        duration_ms=report.elapsed_seconds * 1000,
        errors=[f"{r.action_id}: {r.error}" for r in report.receipts if r.failed and r.error],
    )
    audit_writer.write(entry)


def generate_run_id() -> str:
    """Generate a unique run ID."""
    now = datetime.now(UTC).strftime("%Y%m%d-%H%M%S")
    short = uuid.uuid4().hex[:6]
    return f"run-{now}-{short}"
