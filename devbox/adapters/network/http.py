"""
HTTP adapter — reachability probe and file downloads.

Operations:
    probe     HEAD the URL, bounded tries and timeout   (read-only)
    download  fetch a single file to a destination, chmod it
    unpack    fetch a tarball and unpack it as a target directory
"""

from __future__ import annotations

import logging
import os
import shutil
import tarfile
import tempfile
import time
import urllib.error
import urllib.request
from pathlib import Path

from devbox.adapters.base import Adapter, ExecutionContext
from devbox.core.models.action import Receipt

logger = logging.getLogger(__name__)

_VALID_OPS = {"probe", "download", "unpack"}
_USER_AGENT = "devbox/1.0"


def _fetch_to(url: str, dest: Path, timeout: int) -> int:
    """Stream ``url`` into ``dest``. Returns bytes written."""
    req = urllib.request.Request(url, headers={"User-Agent": _USER_AGENT})
    written = 0
    with urllib.request.urlopen(req, timeout=timeout) as resp:
        with open(dest, "wb") as f:
            while True:
                chunk = resp.read(8192)
                if not chunk:
                    break
                f.write(chunk)
                written += len(chunk)
    return written


class HttpAdapter(Adapter):
    """Network operations over urllib.

    Action params:
        operation (str): One of ``_VALID_OPS``.
        url (str): Target URL.
        tries (int): Probe attempts (default: 3).
        timeout (int): Per-attempt timeout in seconds.
        destination (str): Output file (download).
        mode (int): File mode applied after download (default: 0o755).
        target (str): Directory the archive becomes (unpack).
    """

    @property
    def name(self) -> str:
        return "http"

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        params = context.action.params
        operation = params.get("operation", "")
        if operation not in _VALID_OPS:
            return False, f"Unknown operation '{operation}'. Valid: {', '.join(sorted(_VALID_OPS))}"
        if not params.get("url"):
            return False, "Missing required param: 'url'"
        if operation == "download" and not params.get("destination"):
            return False, "Missing required param: 'destination'"
        if operation == "unpack" and not params.get("target"):
            return False, "Missing required param: 'target'"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        operation = context.action.params["operation"]
        if operation == "probe":
            return self._probe(context)
        try:
            if operation == "download":
                return self._download(context)
            return self._unpack(context)
        except Exception as exc:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"{operation} failed: {exc}",
                metadata={"url": context.action.params["url"]},
            )

    def _probe(self, ctx: ExecutionContext) -> Receipt:
        params = ctx.action.params
        url = params["url"]
        tries = max(1, int(params.get("tries", 3)))
        timeout = params.get("timeout", 5)
        last_error = ""

        for attempt in range(1, tries + 1):
            req = urllib.request.Request(url, method="HEAD", headers={"User-Agent": _USER_AGENT})
            try:
                with urllib.request.urlopen(req, timeout=timeout) as resp:
                    status = resp.getcode()
            except urllib.error.HTTPError as exc:
                # The server answered; an error status still proves connectivity
                status = exc.code
            except Exception as exc:
                last_error = str(exc)[:200]
                logger.debug("Probe attempt %d/%d for %s failed: %s", attempt, tries, url, last_error)
                continue

            return Receipt.success(
                adapter=self.name,
                action_id=ctx.action.id,
                output=f"Reached {url} (HTTP {status})",
                metadata={"reachable": True, "url": url, "status": status, "attempts": attempt},
            )

        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=f"Unable to reach {url}",
            metadata={"reachable": False, "url": url, "attempts": tries, "error": last_error},
        )

    def _download(self, ctx: ExecutionContext) -> Receipt:
        params = ctx.action.params
        url = params["url"]
        dest = Path(params["destination"])
        dest.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(dir=dest.parent, prefix=".download_")
        os.close(fd)
        tmp = Path(tmp_name)
        start = time.monotonic()
        try:
            size = _fetch_to(url, tmp, params.get("timeout", 60))
            os.chmod(tmp, params.get("mode", 0o755))
            os.replace(tmp, dest)
        except Exception:
            tmp.unlink(missing_ok=True)
            raise

        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=f"Downloaded {url} to {dest}",
            duration_ms=int((time.monotonic() - start) * 1000),
            metadata={"url": url, "path": str(dest), "size_bytes": size},
        )

    def _unpack(self, ctx: ExecutionContext) -> Receipt:
        params = ctx.action.params
        url = params["url"]
        target = Path(params["target"])

        with tempfile.TemporaryDirectory(prefix="devbox_archive_") as tmp_dir:
            archive = Path(tmp_dir) / "archive"
            _fetch_to(url, archive, params.get("timeout", 300))

            extract_dir = Path(tmp_dir) / "extracted"
            extract_dir.mkdir()
            with tarfile.open(archive, "r:*") as tf:
                tf.extractall(extract_dir, filter="data")

            entries = list(extract_dir.iterdir())
            root = entries[0] if len(entries) == 1 and entries[0].is_dir() else extract_dir

            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(str(root), str(target))

        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=f"Unpacked {url} into {target}",
            metadata={"url": url, "path": str(target)},
        )
