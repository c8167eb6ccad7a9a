"""
Step and run reports — receipts collected per provisioning step.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from devbox.core.models.action import Receipt, SkipReason

logger = logging.getLogger(__name__)


@dataclass
class StepReport:
    """Receipts produced by one provisioning step.

    ``artifacts`` names what the step produced (generated vhost files,
    added hostnames) so the run summary can be persisted.
    """

    name: str
    receipts: list[Receipt] = field(default_factory=list)
    artifacts: list[str] = field(default_factory=list)

    def add(self, receipt: Receipt) -> Receipt:
        """Record a receipt and log it at a level matching its status."""
        self.receipts.append(receipt)
        if receipt.failed:
            logger.warning("[%s] %s failed: %s", self.name, receipt.action_id, receipt.error)
        elif receipt.skipped:
            logger.info("[%s] %s skipped: %s", self.name, receipt.action_id, receipt.output)
        else:
            logger.info("[%s] %s ok", self.name, receipt.action_id)
        return receipt

    def skip(self, action_id: str, reason: str, skip_reason: SkipReason) -> Receipt:
        """Record a step-level skip that never reached an adapter."""
        return self.add(
            Receipt.skip(
                adapter="devbox",
                action_id=action_id,
                reason=reason,
                skip_reason=skip_reason,
            )
        )

    @property
    def total(self) -> int:
        return len(self.receipts)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.receipts if r.ok)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.receipts if r.failed)

    @property
    def skipped(self) -> int:
        return sum(1 for r in self.receipts if r.skipped)

    @property
    def status(self) -> str:
        if self.failed == 0:
            return "ok"
        if self.succeeded > 0:
            return "partial"
        return "failed"

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "status": self.status,
            "total": self.total,
            "succeeded": self.succeeded,
            "skipped": self.skipped,
            "failed": self.failed,
            "artifacts": self.artifacts,
            "receipts": [r.model_dump(mode="json") for r in self.receipts],
        }


@dataclass
class ProvisionReport:
    """All step reports of one provisioning run, in execution order."""

    run_id: str = ""
    steps: list[StepReport] = field(default_factory=list)
    connected: bool = False
    elapsed_seconds: int = 0

    def step(self, name: str) -> StepReport | None:
        for report in self.steps:
            if report.name == name:
                return report
        return None

    @property
    def receipts(self) -> list[Receipt]:
        return [r for step in self.steps for r in step.receipts]

    @property
    def total(self) -> int:
        return len(self.receipts)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.receipts if r.ok)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.receipts if r.failed)

    @property
    def skipped(self) -> int:
        return sum(1 for r in self.receipts if r.skipped)

    @property
    def status(self) -> str:
        if self.failed == 0:
            return "ok"
        if self.succeeded > 0:
            return "partial"
        return "failed"

    def to_dict(self) -> dict:
        return {
            "run_id": self.run_id,
            "status": self.status,
            "connected": self.connected,
            "elapsed_seconds": self.elapsed_seconds,
            "total": self.total,
            "succeeded": self.succeeded,
            "skipped": self.skipped,
            "failed": self.failed,
            "steps": [s.to_dict() for s in self.steps],
        }
