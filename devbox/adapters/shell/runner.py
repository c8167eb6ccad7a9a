"""
Subprocess runner — the single place where ``subprocess.run`` is called.

Every adapter that shells out goes through ``run_subprocess`` so that
timeouts, run-as-user handling and logging behave the same for apt,
service, mysql and arbitrary commands.
"""

from __future__ import annotations

import logging
import os
import subprocess
import time
from typing import Any

logger = logging.getLogger(__name__)


def as_user(cmd: list[str], user: str | None) -> list[str]:
    """Prefix a command so it runs as ``user`` when we are root.

    Non-root processes, or no user, return the command unchanged.
    """
    if not user or user == "root" or os.geteuid() != 0:
        return cmd
    return ["sudo", "-EH", "-u", user, "--"] + cmd


def run_subprocess(
    cmd: list[str] | str,
    *,
    timeout: int = 300,
    cwd: str | None = None,
    input_text: str | None = None,
    env_overrides: dict[str, str] | None = None,
    run_as: str | None = None,
) -> dict[str, Any]:
    """Run a command and capture its output.

    Args:
        cmd: Argument list, or a string to run through ``sh -c``.
        timeout: Seconds before ``TimeoutExpired``.
        cwd: Working directory for the command.
        input_text: Text piped to stdin.
        env_overrides: Extra environment variables.
        run_as: Run as this user (via sudo) when invoked as root.

    Returns:
        ``{"ok": bool, "return_code": N, "stdout": "...", "stderr": "...",
        "elapsed_ms": N}``; on launch failures ``{"ok": False, "error": "..."}``.
    """
    argv = ["sh", "-c", cmd] if isinstance(cmd, str) else list(cmd)
    argv = as_user(argv, run_as)

    env = None
    if env_overrides:
        env = os.environ.copy()
        env.update(env_overrides)

    logger.debug("Executing: %s (cwd=%s)", argv, cwd)
    start = time.monotonic()
    try:
        result = subprocess.run(
            argv,
            cwd=cwd,
            input=input_text,
            capture_output=True,
            text=True,
            timeout=timeout,
            env=env,
        )
    except subprocess.TimeoutExpired:
        return {
            "ok": False,
            "error": f"Command timed out after {timeout}s",
            "elapsed_ms": int((time.monotonic() - start) * 1000),
        }
    except FileNotFoundError as exc:
        return {
            "ok": False,
            "error": f"Command not found: {exc.filename or argv[0]}",
            "elapsed_ms": int((time.monotonic() - start) * 1000),
        }
    except OSError as exc:
        return {
            "ok": False,
            "error": f"Command execution error: {exc}",
            "elapsed_ms": int((time.monotonic() - start) * 1000),
        }

    elapsed_ms = int((time.monotonic() - start) * 1000)
    return {
        "ok": result.returncode == 0,
        "return_code": result.returncode,
        "stdout": result.stdout.strip(),
        "stderr": result.stderr.strip(),
        "elapsed_ms": elapsed_ms,
    }
