#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
===============================================================================
AI‑Engineer ▸ Workspace file access (search & read)
===============================================================================

Read‑only primitives used by the `search_files` and `read_file` tools.

* `Workspace.search(...)` – lazy, capped iterator of `SearchMatch` records.
  Uses ripgrep (`rg -n -S --hidden`) when it is on PATH and streams its output
  line by line; otherwise walks the tree in Python with the same smart‑case
  semantics. A failing search tool yields whatever it produced so far.
* `Workspace.read(...)` – first N bytes of a file as text, plus byte count and
  SHA‑256 of those bytes for change detection.

All paths go through `ai_engineer.sandbox.resolve_in_workspace`.
"""
from __future__ import annotations

import fnmatch
import hashlib
import itertools
import os
import re
import shutil
import subprocess
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence

from ai_engineer import get_logger
from ai_engineer.config import DEFAULT_BYTE_LIMIT
from ai_engineer.errors import NotFound
from ai_engineer.sandbox import relative_posix, resolve_in_workspace, workspace_root

log = get_logger(__name__)

DEFAULT_GLOBS = ("**/*",)
DEFAULT_MAX_RESULTS = 20

# Directories never searched by the Python fallback
_SKIP_DIRS = {
    ".git", ".svn", ".hg", ".idea", ".vscode", ".pytest_cache",
    "__pycache__", "node_modules", ".venv", "venv", ".mypy_cache",
    ".tox", ".cache", ".ruff_cache",
}

_BINARY_EXTS = {
    ".png", ".jpg", ".jpeg", ".gif", ".bmp", ".ico", ".webp",
    ".tar", ".gz", ".tgz", ".zip", ".7z", ".xz", ".bz2", ".zst",
    ".pdf", ".woff", ".woff2", ".ttf", ".otf",
    ".mp3", ".wav", ".mp4", ".mov", ".bin", ".exe", ".dll", ".so", ".class",
}

_RG_LINE = re.compile(r"^(.*?):(\d+):(.*)$")


@dataclass(frozen=True)
class SearchMatch:
    file: str
    line: int
    text: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def is_binary_file(path: Path, sniff_bytes: int = 4096) -> bool:
    """
    Heuristic binary detector: extension short‑circuit, then a NUL byte or
    a control‑character density above 30% in the first *sniff_bytes*.
    """
    if path.suffix.lower() in _BINARY_EXTS:
        return True
    try:
        with path.open("rb") as fh:
            chunk = fh.read(sniff_bytes)
    except OSError:
        return True
    if not chunk:
        return False
    if b"\x00" in chunk:
        return True
    ctrl = sum(1 for b in chunk if b < 32 and b not in (9, 10, 13))
    return (ctrl / len(chunk)) > 0.30


def _glob_match(rel: str, pattern: str) -> bool:
    """ripgrep‑flavoured glob: slash‑less patterns match the basename."""
    if "/" not in pattern:
        return fnmatch.fnmatch(rel.rsplit("/", 1)[-1], pattern)
    if fnmatch.fnmatch(rel, pattern):
        return True
    return pattern.startswith("**/") and fnmatch.fnmatch(rel, pattern[3:])


def _selected(rel: str, globs: Sequence[str]) -> bool:
    include = [g for g in globs if not g.startswith("!")]
    exclude = [g[1:] for g in globs if g.startswith("!")]
    if any(_glob_match(rel, g) for g in exclude):
        return False
    return not include or any(_glob_match(rel, g) for g in include)


def _smart_case_pattern(query: str) -> re.Pattern[str]:
    flags = 0 if any(ch.isupper() for ch in query) else re.IGNORECASE
    try:
        return re.compile(query, flags)
    except re.error:
        return re.compile(re.escape(query), flags)


class Workspace:
    """
    Read‑only view of the workspace tree rooted at *root*.
    """

    def __init__(self, root: Path | str, *, byte_limit: int = DEFAULT_BYTE_LIMIT):
        self.root = workspace_root(root)
        self.byte_limit = byte_limit

    def resolve(self, path: str) -> Path:
        return resolve_in_workspace(self.root, path)

    # --------------------------------------------------------------------- #
    # search
    # --------------------------------------------------------------------- #
    def search(
        self,
        query: str,
        globs: Optional[Sequence[str]] = None,
        max_results: int = DEFAULT_MAX_RESULTS,
    ) -> Iterator[SearchMatch]:
        """
        Return an iterator over at most *max_results* matches for *query*.

        The iterator is single‑pass. No matches, a missing search tool or a
        failing one all produce a (possibly partial) finite sequence.
        """
        patterns = list(globs) if globs else list(DEFAULT_GLOBS)
        if max_results <= 0 or not query:
            return iter(())
        if shutil.which("rg"):
            source = self._ripgrep(query, patterns)
        else:
            source = self._scan(query, patterns)
        return itertools.islice(source, max_results)

    def _ripgrep(self, query: str, globs: Sequence[str]) -> Iterator[SearchMatch]:
        cmd = ["rg", "-n", "-S", "--hidden", "--no-heading", "--color", "never", "--glob", "!.git"]
        for g in globs:
            cmd.extend(["--glob", g])
        cmd.extend(["-e", query, "."])
        log.debug("search: %s", " ".join(cmd))
        try:
            proc = subprocess.Popen(
                cmd,
                cwd=self.root,
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
                text=True,
                encoding="utf-8",
                errors="replace",
            )
        except OSError as exc:
            log.warning("ripgrep could not be started: %s", exc)
            return

        assert proc.stdout is not None
        try:
            for raw in proc.stdout:
                m = _RG_LINE.match(raw.rstrip("\n"))
                if not m:
                    continue
                file = m.group(1)
                if file.startswith("./"):
                    file = file[2:]
                yield SearchMatch(file=file, line=int(m.group(2)), text=m.group(3))
        finally:
            if proc.poll() is None:
                proc.kill()
            proc.wait()
            proc.stdout.close()
            if proc.returncode not in (0, 1):
                log.debug("ripgrep exited rc=%s; keeping partial output", proc.returncode)

    def _scan(self, query: str, globs: Sequence[str]) -> Iterator[SearchMatch]:
        pattern = _smart_case_pattern(query)
        for dirpath, dirnames, filenames in os.walk(self.root):
            dirnames[:] = sorted(d for d in dirnames if d not in _SKIP_DIRS)
            for name in sorted(filenames):
                path = Path(dirpath) / name
                rel = path.relative_to(self.root).as_posix()
                if not _selected(rel, globs) or is_binary_file(path):
                    continue
                try:
                    with path.open("r", encoding="utf-8", errors="replace") as fh:
                        for lineno, line in enumerate(fh, 1):
                            text = line.rstrip("\r\n")
                            if pattern.search(text):
                                yield SearchMatch(file=rel, line=lineno, text=text)
                except OSError as exc:
                    log.debug("search: skipping unreadable %s: %s", rel, exc)

    # --------------------------------------------------------------------- #
    # read
    # --------------------------------------------------------------------- #
    def read(self, path: str, max_bytes: Optional[int] = None) -> Dict[str, Any]:
        """
        Return `{path, content, bytes, size, sha256, truncated}` for the first
        *max_bytes* bytes of *path* (default: the configured byte limit).

        Raises
        ------
        SandboxViolation, NotFound
        """
        target = self.resolve(path)
        if not target.is_file():
            raise NotFound(f"No such file in workspace: {path}")
        limit = self.byte_limit if max_bytes is None else max_bytes
        with target.open("rb") as fh:
            data = fh.read(max(limit, 0))
        size = target.stat().st_size
        log.debug("read %s (%d of %d bytes)", path, len(data), size)
        return {
            "path": relative_posix(self.root, target),
            "content": data.decode("utf-8", errors="replace"),
            "bytes": len(data),
            "size": size,
            "sha256": hashlib.sha256(data).hexdigest(),
            "truncated": size > len(data),
        }


def matches_to_dicts(matches: Iterator[SearchMatch]) -> List[Dict[str, Any]]:
    return [m.to_dict() for m in matches]


__all__ = ["Workspace", "SearchMatch", "is_binary_file", "matches_to_dicts"]
