"""
Reads provision.yml into a validated ProvisionConfig.

Site paths given relative in the file (``www_root: www``) are taken
relative to the directory holding provision.yml, not the process cwd,
so ``devbox provision`` behaves the same from any subdirectory.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from devbox.core.models.config import ProvisionConfig

logger = logging.getLogger(__name__)

PROVISION_CONFIG_FILE = "provision.yml"

# SitesConfig fields holding filesystem paths
_SITE_PATH_FIELDS = ("www_root", "vhost_dir", "hosts_file")


class ConfigError(Exception):
    """Raised when provisioning configuration is invalid or missing."""


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Nearest provision.yml at or above ``start_dir`` (default: cwd)."""
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):
        candidate = current / PROVISION_CONFIG_FILE
        if candidate.is_file():
            return candidate
        if current.parent == current:
            break
        current = current.parent

    return None


def load_config(path: Path | None = None) -> ProvisionConfig:
    """Load provision.yml, searching upward when ``path`` is None.

    Raises:
        ConfigError: If the file is missing, unreadable or invalid.
    """
    if path is None:
        path = find_config_file()
    if path is None:
        raise ConfigError(
            f"No {PROVISION_CONFIG_FILE} found. "
            "Create one next to your Vagrantfile, or specify --config."
        )
    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading provision config from %s", path)

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    # Empty file: all defaults
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    # Either flat or wrapped under a top-level "provision" key
    if "provision" in data:
        data = data["provision"] or {}

    try:
        config = ProvisionConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid provision configuration: {e}") from e

    _resolve_site_paths(config, config_root(path))

    logger.info(
        "Loaded config '%s' with %d desired packages, %d config groups",
        config.name,
        len(config.packages.desired),
        len(config.config_groups),
    )
    return config


def _resolve_site_paths(config: ProvisionConfig, root: Path) -> None:
    for field in _SITE_PATH_FIELDS:
        value = Path(getattr(config.sites, field))
        if not value.is_absolute():
            resolved = str(root / value)
            logger.debug("sites.%s: %s -> %s", field, value, resolved)
            setattr(config.sites, field, resolved)


def config_root(config_path: Path) -> Path:
    """Directory holding the config file; ``.state/`` lives here."""
    return config_path.parent.resolve()
