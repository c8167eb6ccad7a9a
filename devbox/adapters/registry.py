"""
Adapter registry: name lookup and the single dispatch path for actions.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from devbox.adapters.base import Adapter, ExecutionContext
from devbox.core.models.action import Action, Receipt

logger = logging.getLogger(__name__)


class AdapterRegistry:
    """Routes actions to adapters by name.

    ``mock_mode`` answers success for every action without running
    anything. ``dry_run`` validates mutating actions and skips them;
    actions dispatched with ``read_only=True`` still run, so a dry run
    sees real query results.
    """

    def __init__(self, mock_mode: bool = False, dry_run: bool = False):
        self._adapters: dict[str, Adapter] = {}
        self.mock_mode = mock_mode
        self.dry_run = dry_run

    def register(self, adapter: Adapter) -> None:
        if adapter.name in self._adapters:
            logger.warning("Replacing adapter %r", adapter.name)
        self._adapters[adapter.name] = adapter

    def get(self, name: str) -> Adapter | None:
        return self._adapters.get(name)

    def execute(self, adapter: str, action_id: str, read_only: bool = False, **params: Any) -> Receipt:
        """Build an ``Action`` from keyword params and dispatch it."""
        return self.execute_action(Action(id=action_id, adapter=adapter, params=params), read_only=read_only)

    def execute_action(self, action: Action, read_only: bool = False) -> Receipt:
        """Resolve, validate, then run (or dry-run skip) one action. Never raises."""
        started = time.monotonic()

        if self.mock_mode:
            return Receipt.success(
                adapter=action.adapter,
                action_id=action.id,
                output=f"[mock] {action.adapter}:{action.id}",
                metadata={"mock": True, "dry_run": self.dry_run},
            )

        adapter = self._adapters.get(action.adapter)
        if adapter is None:
            return Receipt.failure(
                adapter=action.adapter,
                action_id=action.id,
                error=f"No adapter registered for '{action.adapter}'",
            )

        context = ExecutionContext(action=action, dry_run=self.dry_run, params=action.params)
        problem = _validation_problem(adapter, context)
        if problem:
            return Receipt.failure(adapter=action.adapter, action_id=action.id, error=problem)

        if self.dry_run and not read_only:
            return Receipt.skip(
                adapter=action.adapter,
                action_id=action.id,
                reason=f"[dry-run] would run {action.adapter}:{action.id}",
                skip_reason="dry_run",
            )

        try:
            receipt = adapter.execute(context)
        except Exception as e:
            logger.error("Adapter %s raised on %s: %s", action.adapter, action.id, e)
            receipt = Receipt.failure(
                adapter=action.adapter,
                action_id=action.id,
                error=f"Unexpected error: {e}",
            )

        receipt.duration_ms = int((time.monotonic() - started) * 1000)
        return receipt


def _validation_problem(adapter: Adapter, context: ExecutionContext) -> str:
    try:
        valid, message = adapter.validate(context)
    except Exception as e:
        return f"Validation error: {e}"
    return "" if valid else f"Validation failed: {message}"
