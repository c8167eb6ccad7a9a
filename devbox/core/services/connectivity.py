"""
Connectivity probe — is the outside world reachable?

A bounded HEAD request against a well-known host. The result gates
every network-dependent step that follows; being offline is never an
error, it only turns those steps into skips.
"""

from __future__ import annotations

import logging

from devbox.adapters.registry import AdapterRegistry
from devbox.core.engine.context import Connectivity, StepContext
from devbox.core.engine.report import StepReport
from devbox.core.models.config import ProvisionConfig

logger = logging.getLogger(__name__)


def probe_connectivity(
    config: ProvisionConfig,
    registry: AdapterRegistry,
    report: StepReport | None = None,
) -> Connectivity:
    """Probe ``network.probe_url`` with the configured tries/timeout."""
    network = config.network
    receipt = registry.execute(
        "http",
        "http:probe",
        read_only=True,
        operation="probe",
        url=network.probe_url,
        tries=network.tries,
        timeout=network.timeout,
    )
    if report is not None:
        report.add(receipt)

    reachable = receipt.ok and bool(receipt.metadata.get("reachable", True))
    connectivity = Connectivity(
        connected=reachable,
        checked=True,
        url=network.probe_url,
        attempts=int(receipt.metadata.get("attempts", 0) or 0),
    )

    if reachable:
        logger.info("Network connection detected...")
    else:
        logger.warning("Network connection not detected. Unable to reach %s...", network.probe_url)
    return connectivity


def connectivity_step(ctx: StepContext) -> StepReport:
    report = StepReport(name="connectivity")
    ctx.connectivity = probe_connectivity(ctx.config, ctx.registry, report)
    return report
