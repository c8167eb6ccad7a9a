"""
MachineState — the root state model.

Captures what the last provisioning run observed and produced. It's
serialized to .state/current.json next to provision.yml and loaded by
``devbox status``.

The state is informational only: provisioning never reads it to decide
what to do, so deleting it is always safe.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class StepRecord(BaseModel):
    """Outcome counts for one provisioning step."""

    name: str
    status: str = ""  # ok, partial, failed
    succeeded: int = 0
    skipped: int = 0
    failed: int = 0


class RunRecord(BaseModel):
    """Summary of the last provisioning run."""

    run_id: str = ""
    started_at: str = ""
    ended_at: str = ""
    status: str = ""  # ok, partial, failed
    connected: bool = False
    elapsed_seconds: int = 0
    dry_run: bool = False
    steps: dict[str, StepRecord] = Field(default_factory=dict)


class MachineState(BaseModel):
    """Root state model — serialized to .state/current.json."""

    # ── Schema ───────────────────────────────────────────────────
    schema_version: int = 1

    # ── Identity ─────────────────────────────────────────────────
    machine_name: str = ""

    # ── Timestamps ───────────────────────────────────────────────
    created_at: str = Field(default_factory=_now_iso)
    updated_at: str = Field(default_factory=_now_iso)

    # ── Last run ─────────────────────────────────────────────────
    last_run: RunRecord = Field(default_factory=RunRecord)

    # ── Derived artifacts from the last run ──────────────────────
    vhosts: list[str] = Field(default_factory=list)
    hostnames: list[str] = Field(default_factory=list)

    def touch(self) -> None:
        """Update the updated_at timestamp."""
        self.updated_at = _now_iso()

    def set_step(self, name: str, **kwargs: Any) -> None:
        """Update or create a step record."""
        if name in self.last_run.steps:
            for key, value in kwargs.items():
                setattr(self.last_run.steps[name], key, value)
        else:
            self.last_run.steps[name] = StepRecord(name=name, **kwargs)
