#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
===============================================================================
AI‑Engineer ▸ Git helpers for the tool loop
===============================================================================

Responsibilities
----------------
* `make_branch(name)`  – `git checkout -b <name>`
* `commit(message)`    – `git commit -am <message>`
* `diff()`             – `git diff` of the working tree
* `status_short(path)` – one‑line `git status --short` for a single path

Design notes
------------
* All interactions go through `_git()` which logs commands and captures output.
* Failures (not a repository, nothing to commit, branch exists) raise
  `GitError`; the tool dispatcher turns that into an `{error}` result so the
  model sees it in‑band. Nothing here is process‑fatal.
"""
from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

from ai_engineer import get_logger
from ai_engineer.errors import GitError

log = get_logger(__name__)


@dataclass(frozen=True)
class GitRunResult:
    """Simple carrier for git command results."""
    ok: bool
    code: int
    out: str
    err: str


class GitOps:
    """
    Thin wrapper around the handful of `git` operations the model may request.
    """

    def __init__(self, repo: Path):
        self.repo = Path(repo).expanduser().resolve()

    # --------------------------------------------------------------------- #
    # Core plumbing
    # --------------------------------------------------------------------- #
    def _git(self, *args: str, check: bool = False) -> GitRunResult:
        """
        Run `git <args...>` inside the workspace and return a structured result.

        Raises
        ------
        GitError
            If git cannot be launched, or on non‑zero exit when *check* is set.
        """
        cmd = ["git", *args]
        log.debug("git %s", " ".join(args))
        try:
            res = subprocess.run(cmd, cwd=self.repo, capture_output=True, text=True, check=False)
        except OSError as exc:
            log.warning("Failed to execute git: %s", exc)
            raise GitError(f"Failed to execute git: {exc}") from exc

        ok = res.returncode == 0
        out = (res.stdout or "").strip()
        err = (res.stderr or "").strip()

        if check and not ok:
            msg = f"git {' '.join(args)} failed (rc={res.returncode}): {err or out}"
            log.warning(msg)
            raise GitError(msg)

        if not ok:
            log.debug("git returned rc=%s | stdout=%r | stderr=%r", res.returncode, out, err)
        return GitRunResult(ok=ok, code=res.returncode, out=out, err=err)

    # --------------------------------------------------------------------- #
    # Tool operations
    # --------------------------------------------------------------------- #
    def make_branch(self, name: str) -> Dict[str, Any]:
        """Create and switch to branch *name*."""
        self._git("checkout", "-b", name, check=True)
        log.info("Created branch %s", name)
        return {"message": f"Created branch {name}"}

    def commit(self, message: str) -> Dict[str, Any]:
        """Commit all tracked modifications with *message*."""
        res = self._git("commit", "-am", message, check=True)
        log.info("Committed: %s", message)
        return {"message": "Committed", "summary": res.out.splitlines()[0] if res.out else ""}

    def diff(self) -> Dict[str, Any]:
        """Working‑tree diff against the index."""
        res = self._git("diff", check=True)
        return {"diff": res.out}

    def status_short(self, rel_path: str) -> str:
        """`git status --short` for one path; GitError on failure."""
        return self._git("status", "--short", "--", rel_path, check=True).out


__all__ = ["GitOps", "GitRunResult"]
