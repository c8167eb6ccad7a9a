"""
Provision use case — bring the machine in line with provision.yml.

This is the top-level orchestrator: it loads config, builds the adapter
registry, runs the provisioning steps in order and persists the run
summary. The full vertical slice from ``devbox provision`` to audited
execution.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

from devbox.adapters import default_registry
from devbox.adapters.registry import AdapterRegistry
from devbox.core.config.loader import ConfigError, config_root, find_config_file, load_config
from devbox.core.engine.context import Connectivity, StepContext
from devbox.core.engine.executor import (
    ProvisionStep,
    execute_steps,
    generate_run_id,
    write_audit_entry,
)
from devbox.core.engine.report import ProvisionReport
from devbox.core.models.config import ProvisionConfig
from devbox.core.persistence.audit import AuditWriter
from devbox.core.persistence.state_file import default_state_path, load_state, save_state
from devbox.core.services.connectivity import connectivity_step
from devbox.core.services.hosts import sync_hosts
from devbox.core.services.packages import reconcile_extras, reconcile_packages
from devbox.core.services.service_config import (
    bootstrap_database,
    ensure_tls_material,
    sync_config_groups,
)
from devbox.core.services.sites import run_init_hooks, sync_vhosts

logger = logging.getLogger(__name__)


STEPS: list[ProvisionStep] = [
    ProvisionStep("connectivity", "Connectivity probe", connectivity_step),
    ProvisionStep("packages", "Package reconciliation", reconcile_packages),
    ProvisionStep("tls", "TLS material", ensure_tls_material),
    ProvisionStep("configs", "Service configuration", sync_config_groups),
    ProvisionStep("database", "Database bootstrap", bootstrap_database),
    ProvisionStep("extras", "Network extras", reconcile_extras),
    ProvisionStep("init_hooks", "Site init hooks", run_init_hooks),
    ProvisionStep("vhosts", "Site vhosts", sync_vhosts),
    ProvisionStep("hosts", "Hosts file", sync_hosts),
]

STEP_NAMES = [step.name for step in STEPS]

# Shorthands accepted by --only
STEP_ALIASES = {
    "sites": ["init_hooks", "vhosts", "hosts"],
}


def select_steps(only: list[str] | None = None) -> list[ProvisionStep]:
    """Resolve a step selection, always keeping the connectivity probe first.

    Raises:
        ValueError: If a name is neither a step nor an alias.
    """
    if not only:
        return list(STEPS)

    wanted: set[str] = {"connectivity"}
    for name in only:
        if name in STEP_ALIASES:
            wanted.update(STEP_ALIASES[name])
        elif name in STEP_NAMES:
            wanted.add(name)
        else:
            valid = ", ".join(STEP_NAMES + sorted(STEP_ALIASES))
            raise ValueError(f"Unknown step '{name}'. Valid: {valid}")

    return [step for step in STEPS if step.name in wanted]


@dataclass
class ProvisionResult:
    """Result of a provisioning run."""

    report: ProvisionReport | None = None
    config: ProvisionConfig | None = None
    config_path: Path | None = None
    dry_run: bool = False
    mock_mode: bool = False
    connectivity: Connectivity = field(default_factory=Connectivity)
    error: str | None = None

    @property
    def elapsed_seconds(self) -> int:
        return self.report.elapsed_seconds if self.report else 0

    def to_dict(self) -> dict:
        result: dict = {}
        if self.error:
            result["error"] = self.error
            return result

        result["machine"] = self.config.name if self.config else ""
        result["config_path"] = str(self.config_path) if self.config_path else None
        result["dry_run"] = self.dry_run
        result["mock"] = self.mock_mode
        result["connectivity"] = self.connectivity.label
        result["elapsed_seconds"] = self.elapsed_seconds

        if self.report:
            result["report"] = self.report.to_dict()

        return result


def run_provision(
    config_path: Path | None = None,
    dry_run: bool = False,
    mock_mode: bool = False,
    registry: AdapterRegistry | None = None,
    only: list[str] | None = None,
) -> ProvisionResult:
    """Provision the machine described by provision.yml.

    Args:
        config_path: Optional explicit path to provision.yml.
        dry_run: If True, validate mutating actions without executing them.
        mock_mode: If True, use mock adapter responses.
        registry: Optional pre-configured adapter registry.
        only: Optional step names (or aliases) to run instead of all steps.

    Returns:
        ProvisionResult with the run report.
    """
    result = ProvisionResult(dry_run=dry_run, mock_mode=mock_mode)

    # ── Load config ──────────────────────────────────────────────
    try:
        if config_path is None:
            config_path = find_config_file()
        if config_path is None:
            result.error = "No provision.yml found."
            return result

        config = load_config(config_path)
        result.config = config
        result.config_path = config_path
    except ConfigError as e:
        result.error = str(e)
        return result

    try:
        steps = select_steps(only)
    except ValueError as e:
        result.error = str(e)
        return result

    root = config_root(config_path)

    # ── Set up adapter registry ──────────────────────────────────
    if registry is None:
        registry = default_registry(mock_mode=mock_mode, dry_run=dry_run)

    # ── Execute ──────────────────────────────────────────────────
    run_id = generate_run_id()
    started_at = datetime.now(UTC).isoformat()
    context = StepContext(config=config, registry=registry)

    logger.info("Provisioning '%s' (%s)", config.name, run_id)
    report = execute_steps(steps, context, run_id=run_id)
    result.report = report
    result.connectivity = context.connectivity

    # ── Persist state ────────────────────────────────────────────
    state_path = default_state_path(root)
    state = load_state(state_path)
    state.machine_name = config.name
    state.last_run.run_id = run_id
    state.last_run.started_at = started_at
    state.last_run.ended_at = datetime.now(UTC).isoformat()
    state.last_run.status = report.status
    state.last_run.connected = report.connected
    state.last_run.elapsed_seconds = report.elapsed_seconds
    state.last_run.dry_run = dry_run
    state.last_run.steps = {}

    for step_report in report.steps:
        state.set_step(
            step_report.name,
            status=step_report.status,
            succeeded=step_report.succeeded,
            skipped=step_report.skipped,
            failed=step_report.failed,
        )

    vhosts = report.step("vhosts")
    if vhosts is not None:
        state.vhosts = list(vhosts.artifacts)
    hosts = report.step("hosts")
    if hosts is not None:
        state.hostnames = list(hosts.artifacts)

    save_state(state, state_path)

    # ── Write audit log ──────────────────────────────────────────
    audit_writer = AuditWriter(root=root)
    write_audit_entry(report, audit_writer, dry_run=dry_run)

    return result
