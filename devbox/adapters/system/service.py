"""
Service adapter — start / restart / reload / status via ``service``.

``status`` is read-only and always returns a success receipt carrying
the raw status text; interpreting it ("not installed" vs "stopped" vs
"running") is the caller's job.
"""

from __future__ import annotations

from devbox.adapters.base import Adapter, ExecutionContext
from devbox.adapters.shell.runner import run_subprocess
from devbox.core.models.action import Receipt

_VALID_OPS = {"status", "start", "restart", "reload"}


class ServiceAdapter(Adapter):
    """Control named system services.

    Action params:
        service (str): Service name.
        operation (str): One of ``_VALID_OPS``.
    """

    @property
    def name(self) -> str:
        return "service"

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        params = context.action.params
        if not params.get("service"):
            return False, "Missing required param: 'service'"
        operation = params.get("operation", "")
        if operation not in _VALID_OPS:
            return False, f"Unknown operation '{operation}'. Valid: {', '.join(sorted(_VALID_OPS))}"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        service = context.action.params["service"]
        operation = context.action.params["operation"]

        result = run_subprocess(["service", service, operation], timeout=120)
        if "return_code" not in result:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=result["error"],
                metadata={"service": service, "operation": operation},
            )

        text = "\n".join(part for part in (result["stdout"], result["stderr"]) if part)
        metadata = {
            "service": service,
            "operation": operation,
            "return_code": result["return_code"],
        }

        # A non-zero status exit is how init scripts report "stopped"
        if result["ok"] or operation == "status":
            return Receipt.success(
                adapter=self.name,
                action_id=context.action.id,
                output=text,
                duration_ms=result["elapsed_ms"],
                metadata=metadata,
            )
        return Receipt.failure(
            adapter=self.name,
            action_id=context.action.id,
            error=text or f"service {service} {operation} exited with code {result['return_code']}",
            duration_ms=result["elapsed_ms"],
            metadata=metadata,
        )
