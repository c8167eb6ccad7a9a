"""
Filesystem adapter — file and directory operations.

Provides a receipt-returning interface for every filesystem mutation
a provisioning run makes, so the registry can dry-run and audit them.
"""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path

from devbox.adapters.base import Adapter, ExecutionContext
from devbox.core.models.action import Receipt

logger = logging.getLogger(__name__)

_VALID_OPS = {"write", "copy", "mirror", "remove", "symlink", "ensure_line"}

# Operations that need a ``source`` param that must exist on disk
_SOURCE_OPS = {"copy", "mirror"}


class FilesystemAdapter(Adapter):
    """File and directory operations with receipts.

    Action params:
        operation (str): One of the operations in ``_VALID_OPS``.
        path (str): Target path (must be absolute).
        source (str): Source path for copy / mirror / symlink.
        content (str): Content to write (for 'write').
        line (str): Line to ensure (for 'ensure_line').
    """

    @property
    def name(self) -> str:
        return "filesystem"

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        params = context.action.params
        operation = params.get("operation", "")
        if not operation:
            return False, "Missing required param: 'operation'"

        if operation not in _VALID_OPS:
            return False, f"Unknown operation '{operation}'. Valid: {', '.join(sorted(_VALID_OPS))}"

        path = params.get("path", "")
        if not path:
            return False, "Missing required param: 'path'"

        if operation == "write" and "content" not in params:
            return False, "Missing required param: 'content' for write operation"

        if operation == "ensure_line" and not params.get("line"):
            return False, "Missing required param: 'line' for ensure_line operation"

        if operation in _SOURCE_OPS or operation == "symlink":
            source = params.get("source", "")
            if not source:
                return False, f"Missing required param: 'source' for {operation} operation"
            if operation == "copy" and not Path(source).is_file():
                return False, f"Source file not found: {source}"
            if operation == "mirror" and not Path(source).is_dir():
                return False, f"Source directory not found: {source}"

        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        operation = context.action.params["operation"]
        target = Path(context.action.params["path"])

        try:
            handler = getattr(self, f"_{operation}")
            return handler(context, target)
        except Exception as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Filesystem error: {e}",
                metadata={"operation": operation, "path": str(target)},
            )

    def _write(self, ctx: ExecutionContext, target: Path) -> Receipt:
        content = ctx.action.params["content"]
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=f"Written {len(content)} bytes to {target}",
            metadata={"path": str(target), "size": len(content)},
        )

    def _copy(self, ctx: ExecutionContext, target: Path) -> Receipt:
        source = Path(ctx.action.params["source"])
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy(source, target)
        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=f"Copied {source} to {target}",
            metadata={"source": str(source), "path": str(target)},
        )

    def _mirror(self, ctx: ExecutionContext, target: Path) -> Receipt:
        source = Path(ctx.action.params["source"])
        copied, removed = mirror_tree(source, target)
        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=f"Mirrored {source} to {target} ({copied} copied, {removed} removed)",
            metadata={
                "source": str(source),
                "path": str(target),
                "copied": copied,
                "removed": removed,
            },
        )

    def _remove(self, ctx: ExecutionContext, target: Path) -> Receipt:
        existed = target.exists() or target.is_symlink()
        if target.is_dir() and not target.is_symlink():
            shutil.rmtree(target)
        elif existed:
            target.unlink()
        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=f"Removed {target}" if existed else f"Already absent: {target}",
            metadata={"path": str(target), "existed": existed},
        )

    def _symlink(self, ctx: ExecutionContext, target: Path) -> Receipt:
        source = ctx.action.params["source"]
        target.parent.mkdir(parents=True, exist_ok=True)
        if target.is_symlink() or target.exists():
            target.unlink()
        target.symlink_to(source)
        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=f"Linked {source} to {target}",
            metadata={"source": source, "path": str(target)},
        )

    def _ensure_line(self, ctx: ExecutionContext, target: Path) -> Receipt:
        line = ctx.action.params["line"]
        existing = target.read_text(encoding="utf-8") if target.is_file() else ""
        if line.strip() in (ln.strip() for ln in existing.splitlines()):
            return Receipt.success(
                adapter=self.name,
                action_id=ctx.action.id,
                output=f"Line already present in {target}",
                metadata={"path": str(target), "added": False},
            )

        target.parent.mkdir(parents=True, exist_ok=True)
        prefix = "" if not existing or existing.endswith("\n") else "\n"
        with target.open("a", encoding="utf-8") as f:
            f.write(f"{prefix}{line}\n")
        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=f"Appended line to {target}",
            metadata={"path": str(target), "added": True},
        )


def mirror_tree(source: Path, target: Path) -> tuple[int, int]:
    """Make ``target`` an exact copy of ``source``.

    Files are copied (with metadata) on every call; anything in
    ``target`` that has no counterpart in ``source`` is deleted.

    Returns:
        (files_copied, entries_removed)
    """
    copied = 0
    removed = 0
    target.mkdir(parents=True, exist_ok=True)

    for dirpath, dirnames, filenames in os.walk(source):
        rel = Path(dirpath).relative_to(source)
        dest_dir = target / rel
        dest_dir.mkdir(parents=True, exist_ok=True)

        wanted = set(dirnames) | set(filenames)
        for entry in list(dest_dir.iterdir()):
            if entry.name in wanted:
                # A file replaced by a directory (or the reverse) is stale too
                src_entry = Path(dirpath) / entry.name
                if src_entry.is_dir() == (entry.is_dir() and not entry.is_symlink()):
                    continue
            if entry.is_dir() and not entry.is_symlink():
                shutil.rmtree(entry)
            else:
                entry.unlink()
            removed += 1
            logger.debug("Mirror removed stale entry %s", entry)

        for filename in filenames:
            shutil.copy2(Path(dirpath) / filename, dest_dir / filename)
            copied += 1

    return copied, removed
