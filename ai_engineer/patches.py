#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
===============================================================================
AI‑Engineer ▸ Patch recorder & sandboxed writer (FULL‑FILE semantics)
===============================================================================

`apply_patch(...)` replaces one workspace file with complete new content:

1. Resolve the target through the sandbox resolver.
2. Read the prior content (a missing file counts as empty).
3. Compute a unified diff for the audit trail.
4. Record the diff **and** a full copy of the new content as a PatchArtifact
   under the patches directory (outside the workspace) – always, approved or
   not, so a dry run still leaves something to inspect.
5. Without approval: stop and report `wrote: False`.
6. With approval: write via temp file + fsync + `os.replace` so readers see
   either the old or the new file, never a partial one. The `git status`
   line for the path is attached best‑effort.

Safety & Guarantees
-------------------
* **No traversal**: `SandboxViolation` for any path escaping the workspace.
* **Write‑once artifacts**: created with exclusive mode; a per‑second clash
  gets a numeric suffix instead of overwriting.
* **Byte‑exact writes**: content is written as given (UTF‑8), no newline
  normalisation, so reading it back returns exactly what was sent.
"""
from __future__ import annotations

import difflib
import hashlib
import os
import re
import tempfile
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from ai_engineer import get_logger
from ai_engineer.errors import GitError, ToolExecutionError
from ai_engineer.git_ops import GitOps
from ai_engineer.sandbox import relative_posix, resolve_in_workspace, workspace_root

log = get_logger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def sanitize_fragment(rel_path: str) -> str:
    """`src/app.py` → `src_app.py`; anything odd becomes `_`."""
    cleaned = _UNSAFE_CHARS.sub("_", rel_path.replace("/", "_").replace("\\", "_"))
    return cleaned.strip("_") or "root"


def unified_diff(rel_path: str, before: str, after: str) -> str:
    return "".join(
        difflib.unified_diff(
            before.splitlines(keepends=True),
            after.splitlines(keepends=True),
            fromfile=f"a/{rel_path}",
            tofile=f"b/{rel_path}",
        )
    )


# ─────────────────────────────────────────────────────────────────────────────
# Artifacts
# ─────────────────────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class PatchArtifact:
    timestamp: str
    target_path: str
    diff_path: Path
    full_path: Path

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "target": self.target_path,
            "diff": str(self.diff_path),
            "full": str(self.full_path),
        }


class PatchRecorder:
    """
    Persists one (diff, full copy) pair per patch attempt in *patches_dir*.
    """

    def __init__(self, patches_dir: Path):
        self.patches_dir = Path(patches_dir).expanduser()

    def _claim(self, stem: str) -> tuple[Path, Path]:
        """Reserve a unique `<stem>[-n].diff` / `.full` pair (exclusive create)."""
        self.patches_dir.mkdir(parents=True, exist_ok=True)
        n = 0
        while True:
            name = stem if n == 0 else f"{stem}-{n}"
            diff_path = self.patches_dir / f"{name}.diff"
            full_path = self.patches_dir / f"{name}.full"
            try:
                with diff_path.open("x", encoding="utf-8"):
                    pass
            except FileExistsError:
                n += 1
                continue
            try:
                with full_path.open("x", encoding="utf-8"):
                    pass
            except FileExistsError:
                diff_path.unlink()
                n += 1
                continue
            return diff_path, full_path

    def record(
        self,
        rel_path: str,
        diff_text: str,
        new_content: str,
        *,
        rationale: Optional[str] = None,
    ) -> PatchArtifact:
        ts = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
        diff_path, full_path = self._claim(f"{ts}-{sanitize_fragment(rel_path)}")
        header = f"# rationale: {' '.join(rationale.split())}\n" if rationale else ""
        diff_path.write_text(header + diff_text, encoding="utf-8")
        full_path.write_bytes(new_content.encode("utf-8"))
        log.debug("Recorded patch artifact %s", diff_path.name)
        return PatchArtifact(timestamp=ts, target_path=rel_path, diff_path=diff_path, full_path=full_path)


# ─────────────────────────────────────────────────────────────────────────────
# Atomic write
# ─────────────────────────────────────────────────────────────────────────────
def atomic_write_bytes(dest: Path, data: bytes) -> None:
    """
    Write *data* into *dest* via a same‑directory temp file and `os.replace`.
    Parent directories are created; an existing file's mode is preserved.
    """
    dest.parent.mkdir(parents=True, exist_ok=True)
    mode = dest.stat().st_mode & 0o777 if dest.exists() else 0o644
    fd, tmp_name = tempfile.mkstemp(dir=str(dest.parent), prefix=f".{dest.name}.", suffix=".tmp")
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as tmp:
            tmp.write(data)
            tmp.flush()
            os.fsync(tmp.fileno())
        os.chmod(tmp_path, mode)
        os.replace(tmp_path, dest)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


# ─────────────────────────────────────────────────────────────────────────────
# apply_patch
# ─────────────────────────────────────────────────────────────────────────────
def apply_patch(
    workspace: Path,
    filepath: str,
    new_content: str,
    *,
    approve: bool,
    recorder: PatchRecorder,
    rationale: Optional[str] = None,
    git: Optional[GitOps] = None,
) -> Dict[str, Any]:
    """
    Record and (when *approve* is true) write a full‑file replacement.

    Returns a JSON‑serialisable result; raises SandboxViolation for escapes
    and ToolExecutionError when the target is a directory.
    """
    root = workspace_root(workspace)
    target = resolve_in_workspace(root, filepath)
    if target.is_dir():
        raise ToolExecutionError(f"Refusing to overwrite a directory: {filepath}")
    rel = relative_posix(root, target)

    before = target.read_bytes() if target.exists() else b""
    after = new_content.encode("utf-8")
    diff_text = unified_diff(rel, before.decode("utf-8", errors="replace"), new_content)
    artifact = recorder.record(rel, diff_text, new_content, rationale=rationale)

    result: Dict[str, Any] = {
        "path": rel,
        "before_sha256": sha256_hex(before),
        "after_sha256": sha256_hex(after),
        "bytes": len(after),
        "diff": diff_text,
        "artifact": artifact.to_dict(),
    }

    if not approve:
        log.info("DRY‑RUN %s (%d bytes) → %s", rel, len(after), artifact.diff_path.name)
        return {"wrote": False, "mode": "dry-run", **result}

    atomic_write_bytes(target, after)
    log.info("WROTE %s (%d bytes) sha256=%s", rel, len(after), result["after_sha256"])

    status = ""
    try:
        status = (git or GitOps(root)).status_short(rel)
    except GitError as exc:
        log.debug("git status unavailable for %s: %s", rel, exc)
    if status:
        log.info("git status: %s", status)
    return {"wrote": True, **result, "status": status}


__all__ = [
    "PatchArtifact",
    "PatchRecorder",
    "apply_patch",
    "atomic_write_bytes",
    "sanitize_fragment",
    "unified_diff",
    "sha256_hex",
]
