"""
Package reconciliation — install only what is missing.

Every desired package is queried against the package database; the
ones without an installed version form the install set, which is
installed in a single batch when the network is available. Offline
runs leave missing packages missing and carry on.

Also home to the network extras (npm globals, single-file tools,
archives) that only make sense once packages are in place.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

from devbox.adapters.registry import AdapterRegistry
from devbox.core.engine.context import StepContext
from devbox.core.engine.report import StepReport
from devbox.core.models.site import InstalledPackage

logger = logging.getLogger(__name__)


def compute_install_set(desired: Iterable[str], installed: Iterable[str]) -> list[str]:
    """Desired packages that are not installed, in desired order, no repeats."""
    have = set(installed)
    missing: list[str] = []
    seen: set[str] = set()
    for name in desired:
        if name in have or name in seen:
            continue
        seen.add(name)
        missing.append(name)
    return missing


def format_package_line(name: str, version: str | None) -> str:
    """One aligned progress line per checked package."""
    if version is None:
        return f" * {name} [not installed]"
    return f" * {name:<20} {version:>30}"


def query_installed(
    names: Iterable[str],
    registry: AdapterRegistry,
    report: StepReport | None = None,
) -> dict[str, InstalledPackage]:
    """Ask the package database which of ``names`` are installed.

    A failed query counts as "not installed".
    """
    installed: dict[str, InstalledPackage] = {}
    for name in dict.fromkeys(names):
        receipt = registry.execute("apt", f"apt:query:{name}", read_only=True, operation="query", package=name)
        if receipt.failed and report is not None:
            report.add(receipt)

        version = receipt.metadata.get("version") if receipt.ok else None
        if receipt.ok and "installed" not in receipt.metadata:
            # Mock mode: no package database, treat as present
            version = receipt.output or "mock"

        logger.info(format_package_line(name, version))
        if version:
            installed[name] = InstalledPackage(name=name, version=version)
    return installed


def reconcile_packages(ctx: StepContext) -> StepReport:
    """Reconcile desired packages against the host and install the delta."""
    report = StepReport(name="packages")
    registry = ctx.registry
    packages = ctx.config.packages

    logger.info("Check for apt packages to install...")
    installed = query_installed(packages.desired, registry, report)
    to_install = compute_install_set(packages.desired, installed)

    # Preseed answers are re-applied on every run
    if packages.preseed:
        report.add(registry.execute(
            "apt", "apt:preseed", operation="preseed", selections=packages.preseed,
        ))

    for item in packages.ensure_lines:
        report.add(registry.execute(
            "filesystem",
            f"fs:ensure_line:{item.path}",
            operation="ensure_line",
            path=item.path,
            line=item.line,
        ))

    if packages.apt_sources:
        report.add(registry.execute(
            "filesystem",
            "fs:symlink:apt_sources",
            operation="symlink",
            source=packages.apt_sources.source,
            path=packages.apt_sources.destination,
        ))
        logger.info("Linked custom apt sources")

    if not to_install:
        logger.info("No apt packages to install.")
        return report

    report.artifacts.extend(to_install)

    if not ctx.connectivity.connected:
        report.skip(
            "apt:install",
            f"No network connection available, skipping installation of {len(to_install)} package(s)",
            "no_network",
        )
        return report

    for key in packages.signing_keys:
        logger.info("Applying %s signing key...", key.name)
        receipt = report.add(registry.execute(
            "apt",
            f"apt:add_key:{key.name}",
            operation="add_key",
            url=key.url,
            keyserver=key.keyserver,
            key_id=key.key_id,
        ))
        if receipt.failed:
            logger.warning("Signing key %s not registered, continuing", key.name)

    logger.info("Running apt-get update...")
    report.add(registry.execute("apt", "apt:update", operation="update"))

    logger.info("Installing apt-get packages...")
    report.add(registry.execute("apt", "apt:install", operation="install", packages=to_install))

    report.add(registry.execute("apt", "apt:clean", operation="clean"))
    return report


def reconcile_extras(ctx: StepContext) -> StepReport:
    """Network-only extras: npm globals, single-file tools, archives."""
    report = StepReport(name="extras")
    registry = ctx.registry
    packages = ctx.config.packages
    run_as = ctx.config.run_as

    if not ctx.connectivity.connected:
        for name in packages.npm_globals:
            report.skip(f"npm:{name}", "No network available", "no_network")
        for tool in packages.tools:
            report.skip(f"tool:{tool.name}", "No network available", "no_network")
        for archive in packages.archives:
            report.skip(f"archive:{archive.name}", "No network available", "no_network")
        return report

    for name in packages.npm_globals:
        report.add(registry.execute(
            "shell",
            f"npm:{name}",
            command=["npm", "install", "-g", name],
            user=run_as,
            timeout=600,
        ))

    for tool in packages.tools:
        if tool.skip_if_exists and Path(tool.destination).exists():
            report.skip(f"tool:{tool.name}", f"{tool.name} already installed", "exists")
            continue
        logger.info("Downloading %s from %s", tool.name, tool.url)
        report.add(registry.execute(
            "http",
            f"tool:{tool.name}",
            operation="download",
            url=tool.url,
            destination=tool.destination,
            mode=tool.mode,
        ))

    for archive in packages.archives:
        if Path(archive.target).is_dir():
            report.skip(f"archive:{archive.name}", f"{archive.name} already installed", "exists")
        else:
            logger.info("Downloading %s...", archive.name)
            report.add(registry.execute(
                "http",
                f"archive:{archive.name}",
                operation="unpack",
                url=archive.url,
                target=archive.target,
            ))
        if archive.config:
            report.add(registry.execute(
                "filesystem",
                f"archive:{archive.name}:config",
                operation="copy",
                source=archive.config.source,
                path=archive.config.destination,
            ))

    return report
