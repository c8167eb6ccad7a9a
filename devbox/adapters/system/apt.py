"""
Apt adapter — Debian package database and package manager.

Operations:
    query    dpkg -s NAME                      (read-only)
    preseed  debconf-set-selections < lines
    add_key  apt-key add - / apt-key adv --recv-key
    update   apt-get update
    install  apt-get install NAME...           (one batch call)
    clean    apt-get clean
"""

from __future__ import annotations

import logging
import urllib.request

from devbox.adapters.base import Adapter, ExecutionContext
from devbox.adapters.shell.runner import run_subprocess
from devbox.core.models.action import Receipt

logger = logging.getLogger(__name__)

_VALID_OPS = {"query", "preseed", "add_key", "update", "install", "clean"}

_APT_ENV = {"DEBIAN_FRONTEND": "noninteractive"}


def parse_dpkg_version(output: str) -> str | None:
    """Extract the ``Version:`` field from ``dpkg -s`` output.

    Returns None when the package is unknown or not fully installed.
    """
    installed = True
    version = None
    for line in output.splitlines():
        if line.startswith("Status:") and not line.rstrip().endswith(" installed"):
            installed = False
        if line.startswith("Version:"):
            parts = line.split(None, 1)
            if len(parts) == 2:
                version = parts[1].strip()
    return version if installed else None


class AptAdapter(Adapter):
    """Package queries and installs through dpkg / apt-get / apt-key.

    Action params:
        operation (str): One of ``_VALID_OPS``.
        package (str): Package name (query).
        packages (list[str]): Package names (install).
        selections (list[str]): debconf lines (preseed).
        url / keyserver / key_id (str): Key source (add_key).
    """

    @property
    def name(self) -> str:
        return "apt"

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        params = context.action.params
        operation = params.get("operation", "")
        if operation not in _VALID_OPS:
            return False, f"Unknown operation '{operation}'. Valid: {', '.join(sorted(_VALID_OPS))}"
        if operation == "query" and not params.get("package"):
            return False, "Missing required param: 'package'"
        if operation == "install" and not params.get("packages"):
            return False, "Missing required param: 'packages'"
        if operation == "preseed" and not params.get("selections"):
            return False, "Missing required param: 'selections'"
        if operation == "add_key":
            if not params.get("url") and not (params.get("keyserver") and params.get("key_id")):
                return False, "add_key needs 'url' or both 'keyserver' and 'key_id'"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        params = context.action.params
        operation = params["operation"]

        if operation == "query":
            return self._query(context, params["package"])
        if operation == "add_key":
            return self._add_key(context)

        if operation == "preseed":
            result = run_subprocess(
                ["debconf-set-selections"],
                input_text="\n".join(params["selections"]) + "\n",
                timeout=30,
            )
        elif operation == "update":
            result = run_subprocess(
                ["apt-get", "update", "--assume-yes"],
                env_overrides=_APT_ENV,
                timeout=params.get("timeout", 600),
            )
        elif operation == "install":
            result = run_subprocess(
                ["apt-get", "install", "--assume-yes", *params["packages"]],
                env_overrides=_APT_ENV,
                timeout=params.get("timeout", 3600),
            )
        else:
            result = run_subprocess(["apt-get", "clean"], timeout=120)

        return self._receipt(context, result)

    def _query(self, ctx: ExecutionContext, package: str) -> Receipt:
        result = run_subprocess(["dpkg", "-s", package], timeout=10)
        if "return_code" not in result:
            return Receipt.failure(
                adapter=self.name,
                action_id=ctx.action.id,
                error=result["error"],
                metadata={"package": package},
            )
        # dpkg -s exits non-zero for unknown packages; that is an answer, not an error
        version = parse_dpkg_version(result["stdout"]) if result["ok"] else None
        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=version or "",
            metadata={"package": package, "installed": version is not None, "version": version},
        )

    def _add_key(self, ctx: ExecutionContext) -> Receipt:
        params = ctx.action.params
        if params.get("url"):
            url = params["url"]
            try:
                req = urllib.request.Request(url, headers={"User-Agent": "devbox/1.0"})
                with urllib.request.urlopen(req, timeout=params.get("timeout", 30)) as resp:
                    key_text = resp.read().decode("utf-8", errors="replace")
            except Exception as exc:
                return Receipt.failure(
                    adapter=self.name,
                    action_id=ctx.action.id,
                    error=f"Key download failed: {exc}",
                    metadata={"url": url},
                )
            result = run_subprocess(["apt-key", "add", "-"], input_text=key_text, timeout=30)
        else:
            result = run_subprocess(
                [
                    "apt-key", "adv", "--quiet",
                    "--keyserver", params["keyserver"],
                    "--recv-key", params["key_id"],
                ],
                timeout=params.get("timeout", 60),
            )
        return self._receipt(ctx, result)

    def _receipt(self, ctx: ExecutionContext, result: dict) -> Receipt:
        if result["ok"]:
            return Receipt.success(
                adapter=self.name,
                action_id=ctx.action.id,
                output=result["stdout"],
                duration_ms=result["elapsed_ms"],
                metadata={"return_code": result["return_code"]},
            )
        error = result.get("error") or result.get("stderr") or (
            f"Command exited with code {result.get('return_code')}"
        )
        return Receipt.failure(
            adapter=self.name,
            action_id=ctx.action.id,
            error=error,
            duration_ms=result["elapsed_ms"],
            metadata={"return_code": result.get("return_code")},
        )
