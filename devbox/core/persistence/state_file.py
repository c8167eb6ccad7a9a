"""
Machine state on disk: ``.state/current.json`` beside provision.yml.

Nothing reads this file to make provisioning decisions; it only feeds
``devbox status``. An unreadable file is therefore treated as absent.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError

from devbox.core.models.state import MachineState

logger = logging.getLogger(__name__)

STATE_DIR = ".state"
STATE_FILE = "current.json"


def default_state_path(root: Path) -> Path:
    return root / STATE_DIR / STATE_FILE


def load_state(path: Path) -> MachineState:
    """Read the state file, or return an empty state when missing or corrupt."""
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.debug("No state file at %s", path)
        return MachineState()
    except OSError as e:
        logger.warning("Cannot read state file %s: %s", path, e)
        return MachineState()

    try:
        return MachineState.model_validate_json(raw)
    except ValidationError as e:
        logger.warning("Ignoring corrupt state file %s (%d errors)", path, e.error_count())
        return MachineState()


def save_state(state: MachineState, path: Path) -> None:
    """Write ``state`` to ``path`` via a sibling temp file and ``os.replace``."""
    state.touch()
    path.parent.mkdir(parents=True, exist_ok=True)

    with tempfile.NamedTemporaryFile(
        "w",
        encoding="utf-8",
        dir=path.parent,
        prefix=".state_",
        suffix=".tmp",
        delete=False,
    ) as tmp:
        tmp.write(state.model_dump_json(indent=2))
        tmp.write("\n")

    try:
        os.replace(tmp.name, path)
    except OSError:
        Path(tmp.name).unlink(missing_ok=True)
        raise
    logger.debug("State saved to %s", path)
