"""
Step context — what every provisioning step receives.

The connectivity result is written once by the probe step and read by
every network-gated step after it.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from devbox.adapters.registry import AdapterRegistry
from devbox.core.models.config import ProvisionConfig


@dataclass
class Connectivity:
    """Outcome of the reachability probe."""

    connected: bool = False
    checked: bool = False
    url: str = ""
    attempts: int = 0

    @property
    def label(self) -> str:
        return "Connected" if self.connected else "Not Connected"


@dataclass
class StepContext:
    """Shared inputs for provisioning steps."""

    config: ProvisionConfig
    registry: AdapterRegistry
    connectivity: Connectivity = field(default_factory=Connectivity)
