"""
Actions (requested side effects) and Receipts (what happened).

Steps send Actions through the adapter registry and always get a Receipt
back. A tool error is a ``failed`` receipt, a deliberate non-run is a
``skipped`` receipt with a typed reason; the step decides how much
either matters.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

ReceiptStatus = Literal["ok", "skipped", "failed"]

SkipReason = Literal["no_network", "missing_file", "not_installed", "exists", "dry_run", ""]


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class Action(BaseModel):
    """One operation for one adapter.

    Ids are deterministic (``apt:query:nginx``, ``vhost:write:<name>``)
    so tests can script a response per operation.
    """

    id: str
    adapter: str
    params: dict[str, Any] = Field(default_factory=dict)


class Receipt(BaseModel):
    adapter: str
    action_id: str
    status: ReceiptStatus = "ok"
    skip_reason: SkipReason = ""

    output: str = ""
    error: str | None = None

    started_at: str = Field(default_factory=_now_iso)
    ended_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0

    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    @property
    def failed(self) -> bool:
        return self.status == "failed"

    @property
    def skipped(self) -> bool:
        return self.status == "skipped"

    @classmethod
    def success(cls, adapter: str, action_id: str, output: str = "", **kwargs: Any) -> Receipt:
        return cls(adapter=adapter, action_id=action_id, output=output, **kwargs)

    @classmethod
    def failure(cls, adapter: str, action_id: str, error: str, **kwargs: Any) -> Receipt:
        return cls(adapter=adapter, action_id=action_id, status="failed", error=error, **kwargs)

    @classmethod
    def skip(
        cls,
        adapter: str,
        action_id: str,
        reason: str = "",
        skip_reason: SkipReason = "",
        **kwargs: Any,
    ) -> Receipt:
        """A step that deliberately did not run; ``reason`` is the human-readable why."""
        return cls(
            adapter=adapter,
            action_id=action_id,
            status="skipped",
            skip_reason=skip_reason,
            output=reason,
            **kwargs,
        )
