"""
Config check use case — validate provision.yml and report issues.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from devbox.core.config.loader import ConfigError, find_config_file, load_config
from devbox.core.models.config import ProvisionConfig


@dataclass
class ConfigCheckResult:
    """Result of configuration validation."""

    valid: bool = False
    config: ProvisionConfig | None = None
    config_path: Path | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "config_path": str(self.config_path) if self.config_path else None,
            "errors": self.errors,
            "warnings": self.warnings,
            "machine": self.config.name if self.config else None,
            "package_count": len(self.config.packages.desired) if self.config else 0,
            "config_group_count": len(self.config.config_groups) if self.config else 0,
        }


def check_config(config_path: Path | None = None) -> ConfigCheckResult:
    """Validate provisioning configuration and report issues.

    Args:
        config_path: Optional explicit path to provision.yml.

    Returns:
        ConfigCheckResult with validation status and any issues.
    """
    result = ConfigCheckResult()

    if config_path is None:
        config_path = find_config_file()

    if config_path is None:
        result.errors.append("No provision.yml found.")
        return result

    result.config_path = config_path

    try:
        config = load_config(config_path)
        result.config = config
    except ConfigError as e:
        result.errors.append(str(e))
        return result

    # Semantic checks
    if not config.packages.desired:
        result.warnings.append("No desired packages declared.")

    desired = config.packages.desired
    dupes = {name for name in desired if desired.count(name) > 1}
    if dupes:
        result.warnings.append(f"Duplicate desired packages: {', '.join(sorted(dupes))}")

    group_names = [g.name for g in config.config_groups]
    group_dupes = {n for n in group_names if group_names.count(n) > 1}
    if group_dupes:
        result.errors.append(f"Duplicate config group names: {', '.join(sorted(group_dupes))}")

    for group in config.config_groups:
        if group.action != "none" and not group.service:
            result.warnings.append(
                f"Config group '{group.name}' has action '{group.action}' but no service."
            )

    for key in config.packages.signing_keys:
        if not key.url and not (key.keyserver and key.key_id):
            result.errors.append(
                f"Signing key '{key.name}' needs either 'url' or both 'keyserver' and 'key_id'."
            )

    # Template sources must exist on the machine being provisioned
    for template in config.all_templates():
        if not Path(template.source).exists():
            result.warnings.append(f"Template source does not exist: {template.source}")

    if not Path(config.sites.www_root).is_dir():
        result.warnings.append(f"Projects root does not exist: {config.sites.www_root}")

    result.valid = len(result.errors) == 0
    return result
