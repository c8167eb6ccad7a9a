"""
Sites use case — what site discovery would find, without provisioning.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from devbox.core.config.loader import ConfigError, find_config_file, load_config
from devbox.core.models.config import ProvisionConfig
from devbox.core.models.site import Descriptor, DescriptorKind
from devbox.core.services.hosts import parse_hosts_descriptor
from devbox.core.services.sites import discover, vhost_config_name


@dataclass
class SitesResult:
    """Descriptors found under the projects root and their derived names."""

    config: ProvisionConfig | None = None
    descriptors: dict[DescriptorKind, list[Descriptor]] = field(default_factory=dict)
    vhost_names: dict[str, str] = field(default_factory=dict)
    hostnames: dict[str, list[str]] = field(default_factory=dict)
    error: str | None = None

    def to_dict(self) -> dict:
        if self.error:
            return {"error": self.error}
        return {
            "www_root": self.config.sites.www_root if self.config else "",
            "init_hooks": [d.path for d in self.descriptors.get(DescriptorKind.INIT_HOOK, [])],
            "vhosts": self.vhost_names,
            "hosts": self.hostnames,
        }


def list_sites(config_path: Path | None = None) -> SitesResult:
    """Scan the projects root the way a provisioning run would."""
    result = SitesResult()

    try:
        if config_path is None:
            config_path = find_config_file()
        if config_path is None:
            result.error = "No provision.yml found."
            return result
        result.config = load_config(config_path)
    except ConfigError as e:
        result.error = str(e)
        return result

    sites = result.config.sites
    result.descriptors = discover(sites)

    for descriptor in result.descriptors[DescriptorKind.VHOST_TEMPLATE]:
        result.vhost_names[descriptor.path] = vhost_config_name(
            descriptor.path,
            sites.www_root,
            prefix=sites.vhost_prefix,
            template_name=sites.vhost_template,
            fingerprint_length=sites.fingerprint_length,
        )

    for descriptor in result.descriptors[DescriptorKind.HOSTS_LIST]:
        text = Path(descriptor.path).read_text(encoding="utf-8")
        result.hostnames[descriptor.path] = parse_hosts_descriptor(text)

    return result
