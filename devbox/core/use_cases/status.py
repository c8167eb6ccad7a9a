"""
Status use case — last provisioning run from config + state.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from devbox.core.config.loader import ConfigError, config_root, find_config_file, load_config
from devbox.core.models.config import ProvisionConfig
from devbox.core.models.state import MachineState
from devbox.core.persistence.audit import AuditEntry, AuditWriter
from devbox.core.persistence.state_file import default_state_path, load_state


@dataclass
class StatusResult:
    """Machine status as recorded by the last run."""

    config: ProvisionConfig | None = None
    state: MachineState | None = None
    config_path: Path | None = None
    history: list[AuditEntry] | None = None
    error: str | None = None

    @property
    def has_run(self) -> bool:
        return bool(self.state and self.state.last_run.run_id)

    def to_dict(self) -> dict:
        """Convert to a JSON-serializable dictionary."""
        result: dict = {}
        if self.error:
            result["error"] = self.error
            return result

        result["machine"] = self.config.name if self.config else ""
        result["config_path"] = str(self.config_path) if self.config_path else None

        if self.state:
            result["state"] = self.state.model_dump(mode="json")

        if self.history:
            result["history"] = [entry.model_dump(mode="json") for entry in self.history]

        return result


def get_status(config_path: Path | None = None, history: int = 5) -> StatusResult:
    """Load the config and the recorded state of the last run.

    Args:
        config_path: Optional explicit path to provision.yml.
        history: How many recent audit entries to include.
    """
    result = StatusResult()

    try:
        if config_path is None:
            config_path = find_config_file()

        if config_path is None:
            result.error = "No provision.yml found."
            return result

        result.config = load_config(config_path)
        result.config_path = config_path
    except ConfigError as e:
        result.error = str(e)
        return result

    root = config_root(config_path)
    result.state = load_state(default_state_path(root))
    result.history = AuditWriter(root=root).read_recent(history) if history else []
    return result
