"""Adapters — bindings for the external programs provisioning drives.

Public re-exports for convenient access.
"""

from devbox.adapters.base import Adapter, ExecutionContext
from devbox.adapters.mock import MockAdapter
from devbox.adapters.registry import AdapterRegistry


def default_registry(mock_mode: bool = False, dry_run: bool = False) -> AdapterRegistry:
    """Build a registry with every real adapter registered."""
    from devbox.adapters.network.http import HttpAdapter
    from devbox.adapters.shell.command import ShellCommandAdapter
    from devbox.adapters.shell.filesystem import FilesystemAdapter
    from devbox.adapters.system.apt import AptAdapter
    from devbox.adapters.system.mysql import MySQLAdapter
    from devbox.adapters.system.service import ServiceAdapter

    registry = AdapterRegistry(mock_mode=mock_mode, dry_run=dry_run)
    registry.register(ShellCommandAdapter())
    registry.register(FilesystemAdapter())
    registry.register(AptAdapter())
    registry.register(ServiceAdapter())
    registry.register(MySQLAdapter())
    registry.register(HttpAdapter())
    return registry


__all__ = [
    "Adapter",
    "AdapterRegistry",
    "ExecutionContext",
    "MockAdapter",
    "default_registry",
]
