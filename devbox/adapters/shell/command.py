"""
Shell command adapter — execute arbitrary commands.

This is the most fundamental adapter: it runs commands and captures
their output. Init hooks, openssl, npm and one-off service helpers
all go through it.
"""

from __future__ import annotations

from pathlib import Path

from devbox.adapters.base import Adapter, ExecutionContext
from devbox.adapters.shell.runner import run_subprocess
from devbox.core.models.action import Receipt


class ShellCommandAdapter(Adapter):
    """Execute commands and capture output.

    Action params:
        command (str | list[str]): The command. Strings run through ``sh -c``.
        cwd (str): Working directory (default: inherited).
        timeout (int): Timeout in seconds (default: 300).
        input (str): Text piped to stdin.
        env (dict): Extra environment variables.
        user (str): Run as this user when invoked as root.
    """

    @property
    def name(self) -> str:
        return "shell"

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        command = context.action.params.get("command", "")
        if not command:
            return False, "Missing required param: 'command'"

        cwd = context.working_dir
        if cwd and not Path(cwd).is_dir():
            return False, f"Working directory does not exist: {cwd}"

        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        params = context.action.params
        command = params["command"]

        result = run_subprocess(
            command,
            timeout=params.get("timeout", 300),
            cwd=context.working_dir,
            input_text=params.get("input"),
            env_overrides=params.get("env"),
            run_as=params.get("user"),
        )

        if "return_code" not in result:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=result["error"],
                duration_ms=result["elapsed_ms"],
                metadata={"command": command},
            )

        if result["ok"]:
            return Receipt.success(
                adapter=self.name,
                action_id=context.action.id,
                output=result["stdout"],
                duration_ms=result["elapsed_ms"],
                metadata={
                    "command": command,
                    "return_code": result["return_code"],
                    "stderr": result["stderr"],
                },
            )
        return Receipt.failure(
            adapter=self.name,
            action_id=context.action.id,
            error=result["stderr"] or f"Command exited with code {result['return_code']}",
            duration_ms=result["elapsed_ms"],
            metadata={
                "command": command,
                "return_code": result["return_code"],
                "stdout": result["stdout"],
            },
        )
