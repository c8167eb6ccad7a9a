"""
Service configuration sync — templates into place, services restarted.

Config files are copied unconditionally on every run (no diffing);
directory templates are mirrored so removed source files disappear
from the live location too. TLS material is the exception: it is
generated once and left alone while the files exist.

Database bootstrap lives here as well because it is the one service
whose start/restart choice depends on its current state.
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Literal

from devbox.adapters.registry import AdapterRegistry
from devbox.core.engine.context import StepContext
from devbox.core.engine.report import StepReport
from devbox.core.models.action import Receipt
from devbox.core.models.config import ConfigTemplate

logger = logging.getLogger(__name__)


class ServiceState(str, Enum):
    UNRECOGNIZED = "unrecognized"
    STOPPED = "stopped"
    RUNNING = "running"


_UNRECOGNIZED_MARKERS = ("unrecognized service", "could not be found", "not-found", "no such service")
_STOPPED_MARKERS = ("stop/waiting", "is stopped", "not running", "inactive", "dead")


def _status_line(text: str) -> str:
    """The systemd ``Active:`` line, else the first non-empty line."""
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    for line in lines:
        if line.startswith("active:"):
            return line
    return lines[0] if lines else ""


def classify_service_status(output: str) -> ServiceState:
    """Interpret ``service NAME status`` output.

    "Not installed" and "installed but stopped" must be told apart:
    the first skips the service entirely, the second needs ``start``.
    Running or stopped is read from the status line only; systemd
    appends journal lines that may say anything.
    """
    text = output.lower()
    if any(marker in text for marker in _UNRECOGNIZED_MARKERS):
        return ServiceState.UNRECOGNIZED
    status = _status_line(text)
    if any(marker in status for marker in _STOPPED_MARKERS):
        return ServiceState.STOPPED
    return ServiceState.RUNNING


def choose_service_action(state: ServiceState) -> Literal["start", "restart"] | None:
    """``restart`` on a stopped service is an error; start it instead."""
    if state is ServiceState.STOPPED:
        return "start"
    if state is ServiceState.RUNNING:
        return "restart"
    return None


def sync_template(registry: AdapterRegistry, template: ConfigTemplate, action_id: str) -> Receipt:
    """Copy (or mirror) one template to its destination."""
    operation = "mirror" if template.mirror else "copy"
    receipt = registry.execute(
        "filesystem",
        action_id,
        operation=operation,
        source=template.source,
        path=template.destination,
    )
    verb = "Rsync'd" if template.mirror else "Copied"
    if receipt.ok:
        logger.info(" * %s %-45s to %s", verb, template.source, template.destination)
    return receipt


# ── TLS ─────────────────────────────────────────────────────────


def ensure_tls_material(ctx: StepContext) -> StepReport:
    """Generate key, CSR and self-signed cert, each only if absent."""
    report = StepReport(name="tls")
    tls = ctx.config.tls
    if not tls.enabled:
        return report

    steps = (
        (
            "key",
            tls.key,
            "Generate server private key...",
            ["openssl", "genrsa", "-out", tls.key, str(tls.bits)],
        ),
        (
            "csr",
            tls.csr,
            "Generate Certificate Signing Request (CSR)...",
            ["openssl", "req", "-new", "-batch", "-key", tls.key, "-out", tls.csr],
        ),
        (
            "cert",
            tls.cert,
            "Sign the certificate using the above private key and CSR...",
            [
                "openssl", "x509", "-req", "-days", str(tls.days),
                "-in", tls.csr, "-signkey", tls.key, "-out", tls.cert,
            ],
        ),
    )

    for kind, output, message, command in steps:
        if Path(output).exists():
            report.skip(f"tls:{kind}", f"{output} already exists", "exists")
            continue
        logger.info(message)
        report.add(ctx.registry.execute("shell", f"tls:{kind}", command=command, timeout=120))
        report.artifacts.append(output)

    return report


# ── Config groups ───────────────────────────────────────────────


def sync_config_groups(ctx: StepContext) -> StepReport:
    """Copy every group's templates, run its commands, bounce its service."""
    report = StepReport(name="configs")
    registry = ctx.registry

    logger.info("Setup configuration files...")
    for group in ctx.config.config_groups:
        for template in group.templates:
            report.add(sync_template(registry, template, f"configs:{group.name}:{template.destination}"))

        for index, command in enumerate(group.commands):
            report.add(registry.execute("shell", f"configs:{group.name}:cmd:{index}", command=command))

        if group.service and group.action != "none":
            logger.info("service %s %s", group.service, group.action)
            report.add(registry.execute(
                "service",
                f"service:{group.action}:{group.service}",
                service=group.service,
                operation=group.action,
            ))

    return report


# ── Database ────────────────────────────────────────────────────


def bootstrap_database(ctx: StepContext) -> StepReport:
    """Start the database, apply init/custom scripts, import backups."""
    report = StepReport(name="database")
    db = ctx.config.database
    registry = ctx.registry
    if db is None:
        return report

    status = registry.execute(
        "service",
        f"service:status:{db.service}",
        read_only=True,
        service=db.service,
        operation="status",
    )
    if status.failed:
        report.add(status)
        return report

    state = classify_service_status(status.output)
    logger.debug("Database service %s state: %s", db.service, state.value)
    if state is ServiceState.UNRECOGNIZED:
        report.skip(
            f"service:status:{db.service}",
            f"{db.service} is not installed. No databases imported.",
            "not_installed",
        )
        return report

    logger.info("Setup %s configuration file links...", db.service)
    for template in db.templates:
        report.add(sync_template(registry, template, f"database:{template.destination}"))

    action = choose_service_action(state)
    logger.info("service %s %s", db.service, action)
    report.add(registry.execute(
        "service",
        f"service:{action}:{db.service}",
        service=db.service,
        operation=action,
    ))

    credentials = {"user": db.user, "password": db.password}

    if Path(db.init_script).is_file():
        logger.info("Initial %s prep...", db.service)
        report.add(registry.execute("mysql", "database:init", script=db.init_script, **credentials))
    else:
        report.skip("database:init", f"No init script at {db.init_script}", "missing_file")

    if Path(db.custom_script).is_file():
        logger.info("Initial custom %s scripting...", db.service)
        report.add(registry.execute("mysql", "database:custom", script=db.custom_script, **credentials))
    else:
        report.skip(
            "database:custom",
            f"No custom scripting found in {db.custom_script}, skipping...",
            "missing_file",
        )

    if Path(db.import_command).is_file():
        cwd = db.backups_dir if Path(db.backups_dir).is_dir() else None
        report.add(registry.execute(
            "shell",
            "database:import",
            command=[db.import_command],
            cwd=cwd,
            timeout=3600,
        ))
    else:
        report.skip("database:import", f"No import command at {db.import_command}", "missing_file")

    return report
