#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
===============================================================================
AI‑Engineer ▸ Workspace confinement
===============================================================================

Every read, write and search that touches the workspace goes through
`resolve_in_workspace` first. The function is pure (no I/O beyond symlink
resolution) and never "fixes" a bad path: escapes raise `SandboxViolation`.
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Union

from ai_engineer.errors import SandboxViolation

PathLike = Union[str, "os.PathLike[str]"]


def workspace_root(root: PathLike) -> Path:
    """Absolute, symlink‑resolved form of *root*."""
    return Path(root).expanduser().resolve()


def resolve_in_workspace(root: PathLike, path: PathLike) -> Path:
    """
    Resolve *path* (relative to *root*, or absolute) and guarantee the result
    is *root* itself or a descendant of it.

    Raises
    ------
    SandboxViolation
        When `..` traversal, an absolute path or a symlink would escape *root*.
    """
    base = workspace_root(root)
    raw = os.fspath(path) if path is not None else ""
    candidate = Path(raw).expanduser() if raw else base
    if not candidate.is_absolute():
        candidate = base / candidate
    resolved = candidate.resolve()
    try:
        resolved.relative_to(base)
    except ValueError as exc:
        raise SandboxViolation(raw, str(base)) from exc
    return resolved


def relative_posix(root: PathLike, path: Path) -> str:
    """Workspace‑relative POSIX spelling of an already resolved *path*."""
    rel = path.relative_to(workspace_root(root)).as_posix()
    return rel if rel != "." else ""


__all__ = ["resolve_in_workspace", "workspace_root", "relative_posix"]
