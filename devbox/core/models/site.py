"""
Site models — discovered descriptors and the artifacts derived from them.
"""

from __future__ import annotations

from enum import Enum
from pathlib import PurePath

from pydantic import BaseModel


class DescriptorKind(str, Enum):
    """The three per-project descriptor files."""

    INIT_HOOK = "init_hook"
    VHOST_TEMPLATE = "vhost_template"
    HOSTS_LIST = "hosts_list"


class Descriptor(BaseModel):
    """A per-project descriptor file found by the site scan."""

    path: str
    kind: DescriptorKind

    @property
    def directory(self) -> str:
        """Where an init hook runs."""
        return str(PurePath(self.path).parent)


class DerivedVhost(BaseModel):
    """A generated web-server config, owned by the provisioning run."""

    source: str
    name: str
    content: str


class HostEntry(BaseModel):
    """A hostname added to the hosts file, with the descriptor it came from."""

    hostname: str
    source: str


class InstalledPackage(BaseModel):
    """Runtime fact from the host package database."""

    name: str
    version: str
