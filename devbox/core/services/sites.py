"""
Site discovery — per-project descriptors under the projects root.

Three descriptor files are recognized by name:

    vvv-init.sh      executed in its own directory
    vvv-nginx.conf   rendered into an auto-generated vhost config
    vvv-hosts        hostnames added to the hosts file (see hosts.py)

Generated vhost configs carry a fixed prefix. Every run deletes all of
them before regenerating, so a removed or renamed project never leaves
a stale config behind.
"""

from __future__ import annotations

import hashlib
import logging
import os
from pathlib import Path

from devbox.core.engine.context import StepContext
from devbox.core.engine.report import StepReport
from devbox.core.models.config import SitesConfig
from devbox.core.models.site import DerivedVhost, Descriptor, DescriptorKind

logger = logging.getLogger(__name__)


def find_descriptors(root: Path, filename: str, max_depth: int = 5) -> list[Path]:
    """Find files named ``filename`` at most ``max_depth`` levels below ``root``.

    A file directly inside ``root`` is at depth 1. Directories are
    visited in sorted order; symlinked directories are not followed.
    """
    root = Path(root)
    found: list[Path] = []
    if not root.is_dir():
        return found

    for dirpath, dirnames, filenames in os.walk(root):
        depth = len(Path(dirpath).relative_to(root).parts)
        dirnames.sort()
        if depth + 1 >= max_depth:
            dirnames[:] = []
        if filename in filenames:
            candidate = Path(dirpath) / filename
            if candidate.is_file():
                found.append(candidate)

    return found


def discover(sites: SitesConfig) -> dict[DescriptorKind, list[Descriptor]]:
    """Scan the projects root for all three descriptor kinds."""
    root = Path(sites.www_root)
    names = {
        DescriptorKind.INIT_HOOK: sites.init_hook,
        DescriptorKind.VHOST_TEMPLATE: sites.vhost_template,
        DescriptorKind.HOSTS_LIST: sites.hosts_list,
    }
    return {
        kind: [
            Descriptor(path=str(path), kind=kind)
            for path in find_descriptors(root, filename, sites.max_depth)
        ]
        for kind, filename in names.items()
    }


def vhost_config_name(
    source: str | Path,
    root: str | Path,
    prefix: str = "vvv-auto-",
    template_name: str = "vvv-nginx.conf",
    fingerprint_length: int = 8,
) -> str:
    """Derive the generated config filename for a vhost template.

    ``/srv/www/projects/site1/vvv-nginx.conf`` under ``/srv/www`` becomes
    ``vvv-auto-projects-site1-<fingerprint>.conf``. The fingerprint is a
    truncated md5 of the full source path string (not its content), so
    names stay stable across template edits and differ for any two
    distinct paths that flatten to the same stem.
    """
    source_str = str(source)
    root_prefix = str(root).rstrip("/") + "/"
    if source_str.startswith(root_prefix):
        relative = source_str[len(root_prefix):]
    else:
        relative = source_str.lstrip("/")

    stem = relative.replace("/", "-")
    suffix = f"-{template_name}"
    if stem.endswith(suffix):
        stem = stem[: -len(suffix)]
    elif stem == template_name:
        stem = ""

    fingerprint = hashlib.md5(source_str.encode("utf-8"), usedforsecurity=False).hexdigest()
    parts = [part for part in (stem, fingerprint[:fingerprint_length]) if part]
    return f"{prefix}{'-'.join(parts)}.conf"


def render_vhost(template_text: str, directory: str, token: str = "{vvv_path_to_folder}") -> str:
    """Replace every placeholder token with the template's directory."""
    return template_text.replace(token, directory)


def build_vhosts(sites: SitesConfig) -> list[DerivedVhost]:
    """Render every vhost template found under the projects root."""
    vhosts: list[DerivedVhost] = []
    for path in find_descriptors(Path(sites.www_root), sites.vhost_template, sites.max_depth):
        text = path.read_text(encoding="utf-8")
        vhosts.append(DerivedVhost(
            source=str(path),
            name=vhost_config_name(
                path,
                sites.www_root,
                prefix=sites.vhost_prefix,
                template_name=sites.vhost_template,
                fingerprint_length=sites.fingerprint_length,
            ),
            content=render_vhost(text, str(path.parent), sites.path_token),
        ))
    return vhosts


def stale_vhosts(sites: SitesConfig) -> list[Path]:
    """Every previously generated vhost config in the vhost directory."""
    vhost_dir = Path(sites.vhost_dir)
    if not vhost_dir.is_dir():
        return []
    return sorted(vhost_dir.rglob(f"{sites.vhost_prefix}*.conf"))


# ── Steps ───────────────────────────────────────────────────────


def run_init_hooks(ctx: StepContext) -> StepReport:
    """Execute each project's init hook from inside its own directory."""
    report = StepReport(name="init_hooks")
    sites = ctx.config.sites

    for path in find_descriptors(Path(sites.www_root), sites.init_hook, sites.max_depth):
        hook = Descriptor(path=str(path), kind=DescriptorKind.INIT_HOOK)
        logger.info("Running %s", hook.path)
        report.add(ctx.registry.execute(
            "shell",
            f"init_hook:{hook.path}",
            command=["bash", path.name],
            cwd=hook.directory,
            timeout=3600,
        ))
        report.artifacts.append(hook.path)

    return report


def sync_vhosts(ctx: StepContext) -> StepReport:
    """Delete all generated vhost configs, then regenerate from templates."""
    report = StepReport(name="vhosts")
    sites = ctx.config.sites
    registry = ctx.registry

    for stale in stale_vhosts(sites):
        report.add(registry.execute("filesystem", f"vhost:remove:{stale.name}", operation="remove", path=str(stale)))

    vhosts = build_vhosts(sites)
    for vhost in vhosts:
        destination = Path(sites.vhost_dir) / vhost.name
        receipt = report.add(registry.execute(
            "filesystem",
            f"vhost:write:{vhost.name}",
            operation="write",
            path=str(destination),
            content=vhost.content,
        ))
        if receipt.ok:
            logger.info(" * Generated %s from %s", vhost.name, vhost.source)
        report.artifacts.append(vhost.name)

    if sites.reload_service and report.total:
        report.add(registry.execute(
            "service",
            f"service:reload:{sites.reload_service}",
            service=sites.reload_service,
            operation="reload",
        ))

    return report
