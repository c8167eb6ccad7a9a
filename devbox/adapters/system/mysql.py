"""
MySQL adapter — run SQL script files through the ``mysql`` client.
"""

from __future__ import annotations

from pathlib import Path

from devbox.adapters.base import Adapter, ExecutionContext
from devbox.adapters.shell.runner import run_subprocess
from devbox.core.models.action import Receipt


class MySQLAdapter(Adapter):
    """Execute a SQL script file against the local server.

    Action params:
        script (str): Path to the .sql file (fed on stdin).
        user (str): Database user (default: root).
        password (str): Database password.
    """

    @property
    def name(self) -> str:
        return "mysql"

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        script = context.action.params.get("script", "")
        if not script:
            return False, "Missing required param: 'script'"
        if not Path(script).is_file():
            return False, f"SQL script not found: {script}"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        params = context.action.params
        script = Path(params["script"])
        cmd = ["mysql", "-u", params.get("user", "root")]
        if params.get("password"):
            cmd.append(f"-p{params['password']}")

        try:
            sql = script.read_text(encoding="utf-8")
        except OSError as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Cannot read {script}: {e}",
            )

        result = run_subprocess(cmd, input_text=sql, timeout=params.get("timeout", 600))
        metadata = {"script": str(script), "return_code": result.get("return_code")}
        if result["ok"]:
            return Receipt.success(
                adapter=self.name,
                action_id=context.action.id,
                output=result["stdout"],
                duration_ms=result["elapsed_ms"],
                metadata=metadata,
            )
        return Receipt.failure(
            adapter=self.name,
            action_id=context.action.id,
            error=result.get("error") or result.get("stderr") or "mysql client failed",
            duration_ms=result["elapsed_ms"],
            metadata=metadata,
        )
