"""
Hosts file reconciliation.

Hostnames from every project's hosts descriptor are mapped to the
loopback address. Lines this tool adds carry a trailing marker; each
run drops all marked lines and re-adds the current set, so a removed
project's hostnames disappear. Lines without the marker belong to the
user and are never touched.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from devbox.core.engine.context import StepContext
from devbox.core.engine.report import StepReport
from devbox.core.models.site import HostEntry
from devbox.core.services.sites import find_descriptors

logger = logging.getLogger(__name__)


def parse_hosts_descriptor(text: str) -> list[str]:
    """Hostnames in a descriptor: one per line; blank lines and lines starting with ``#`` are ignored."""
    names: list[str] = []
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or line.startswith("#"):
            continue
        names.append(stripped)
    return names


def _mapped_hostnames(lines: Iterable[str]) -> set[str]:
    """Hostnames an unmarked line maps, to any address.

    A user line such as ``10.0.0.5 a.test`` therefore keeps ``a.test``
    off the loopback address.
    """
    mapped: set[str] = set()
    for line in lines:
        body = line.split("#", 1)[0].split()
        mapped.update(body[1:])
    return mapped


@dataclass
class HostsUpdate:
    """Result of reconciling hosts-file content."""

    content: str
    added: list[HostEntry] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)

    @property
    def hostnames(self) -> list[str]:
        return [entry.hostname for entry in self.added]


def reconcile_hosts(
    content: str,
    sources: Iterable[tuple[str, list[str]]],
    address: str = "127.0.0.1",
    marker: str = "# vvv-auto",
) -> HostsUpdate:
    """Rebuild hosts-file ``content`` for the given descriptor hostnames.

    Args:
        content: Current hosts file text.
        sources: ``(descriptor_path, hostnames)`` pairs in scan order.
        address: Address every hostname is mapped to.
        marker: Trailing comment that identifies managed lines.

    Returns:
        HostsUpdate with the new content, the entries appended and the
        managed lines dropped. A hostname already mapped by a user line
        or listed by an earlier descriptor is not added again.
    """
    kept: list[str] = []
    removed: list[str] = []
    for line in content.splitlines():
        if line.rstrip().endswith(marker):
            removed.append(line)
        else:
            kept.append(line)

    mapped = _mapped_hostnames(kept)
    added: list[HostEntry] = []
    for source, names in sources:
        for name in names:
            if name in mapped:
                continue
            mapped.add(name)
            added.append(HostEntry(hostname=name, source=source))
            kept.append(f"{address} {name} {marker}")

    new_content = "\n".join(kept) + "\n" if kept else ""
    return HostsUpdate(content=new_content, added=added, removed=removed)


def collect_hostnames(www_root: str, filename: str, max_depth: int) -> list[tuple[str, list[str]]]:
    """Read every hosts descriptor under ``www_root``."""
    sources = []
    for path in find_descriptors(Path(www_root), filename, max_depth):
        sources.append((str(path), parse_hosts_descriptor(path.read_text(encoding="utf-8"))))
    return sources


def sync_hosts(ctx: StepContext) -> StepReport:
    """Rewrite the hosts file with the current project hostnames."""
    report = StepReport(name="hosts")
    sites = ctx.config.sites
    hosts_file = Path(sites.hosts_file)

    logger.info("Adding domains to the virtual machine's %s file...", hosts_file)
    sources = collect_hostnames(sites.www_root, sites.hosts_list, sites.max_depth)
    current = hosts_file.read_text(encoding="utf-8") if hosts_file.is_file() else ""
    update = reconcile_hosts(current, sources, sites.hosts_address, sites.hosts_marker)

    if update.content == current:
        logger.debug("%s already up to date", hosts_file)
    else:
        report.add(ctx.registry.execute(
            "filesystem",
            "hosts:write",
            operation="write",
            path=str(hosts_file),
            content=update.content,
        ))

    for entry in update.added:
        logger.info(" * Added %s from %s", entry.hostname, entry.source)
    report.artifacts.extend(update.hostnames)
    return report
