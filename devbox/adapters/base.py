"""
Adapter contract: how provisioning steps reach external programs.

A step never shells out or touches the filesystem itself for anything
it wants audited or dry-run; it builds an ``Action``, hands it to the
registry, and gets a ``Receipt`` back.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, Field

from devbox.core.models.action import Action, Receipt


class ExecutionContext(BaseModel):
    """The action being executed plus run-wide flags."""

    action: Action
    dry_run: bool = False
    params: dict[str, Any] = Field(default_factory=dict)

    @property
    def working_dir(self) -> str | None:
        return self.action.params.get("cwd")


class Adapter(ABC):
    """One external tool (apt, service, mysql, http, shell, filesystem).

    ``execute`` reports every outcome, including tool errors, as a
    Receipt. The registry still guards against an adapter that raises.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Registry key, also the ``adapter`` field of actions."""

    @abstractmethod
    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        """Check params before execution; ``(False, reason)`` rejects the action."""

    @abstractmethod
    def execute(self, context: ExecutionContext) -> Receipt:
        """Perform the action."""

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"
