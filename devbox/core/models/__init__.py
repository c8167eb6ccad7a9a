"""
Domain models — Pydantic types for provisioning.

All models are re-exported here for convenient access:

    from devbox.core.models import ProvisionConfig, Action, Receipt, MachineState
"""

from devbox.core.models.action import Action, Receipt
from devbox.core.models.config import (
    ArchiveDownload,
    ConfigGroup,
    ConfigTemplate,
    DatabaseConfig,
    LineInFile,
    NetworkConfig,
    PackagesConfig,
    ProvisionConfig,
    SigningKey,
    SitesConfig,
    TlsConfig,
    ToolDownload,
)
from devbox.core.models.site import (
    DerivedVhost,
    Descriptor,
    DescriptorKind,
    HostEntry,
    InstalledPackage,
)
from devbox.core.models.state import MachineState, RunRecord, StepRecord

__all__ = [
    # action.py
    "Action",
    "Receipt",
    # config.py
    "ArchiveDownload",
    "ConfigGroup",
    "ConfigTemplate",
    "DatabaseConfig",
    "LineInFile",
    "NetworkConfig",
    "PackagesConfig",
    "ProvisionConfig",
    "SigningKey",
    "SitesConfig",
    "TlsConfig",
    "ToolDownload",
    # site.py
    "DerivedVhost",
    "Descriptor",
    "DescriptorKind",
    "HostEntry",
    "InstalledPackage",
    # state.py
    "MachineState",
    "RunRecord",
    "StepRecord",
]
