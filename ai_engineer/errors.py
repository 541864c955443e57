#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
===============================================================================
AI‑Engineer ▸ Error taxonomy
===============================================================================

Propagation policy
------------------
* Tool‑level failures (SandboxViolation, NotFound, GitError, ToolExecutionError,
  UnknownTool) are converted to `{"error": ...}` data at the dispatcher
  boundary so the model can react in‑band.
* Backend failures (TransientBackendError, ModelNotFound) are retried by the
  turn driver and surface only as ModelTurnFailed once attempts run out.
* PreflightError is fatal: the CLI logs it and exits with status 1.
"""
from __future__ import annotations


class AgentError(Exception):
    """Base class for all AI‑Engineer errors."""


class SandboxViolation(AgentError, PermissionError):
    """A resolved path would land outside the workspace root."""

    def __init__(self, path: str, root: str) -> None:
        super().__init__(f"Path {path!r} is outside workspace {root}")
        self.path = path
        self.root = root


class NotFound(AgentError, FileNotFoundError):
    """A workspace file requested by a tool does not exist."""


class GitError(AgentError):
    """A version‑control command exited non‑zero or could not be launched."""


class ToolExecutionError(AgentError):
    """A tool's arguments were malformed or its implementation failed."""


class UnknownTool(AgentError):
    """The model requested a tool name that is not declared."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown tool {name}")
        self.name = name


class TransientBackendError(AgentError):
    """Network, quota or malformed‑response failure from the model backend."""


class ModelNotFound(TransientBackendError):
    """The backend does not serve the selected model identifier."""


class ModelTurnFailed(AgentError):
    """Every attempt of a model turn failed; the conversation must abort."""


class PreflightError(AgentError):
    """Startup prerequisite missing (credentials, workspace, SDK)."""


__all__ = [
    "AgentError",
    "SandboxViolation",
    "NotFound",
    "GitError",
    "ToolExecutionError",
    "UnknownTool",
    "TransientBackendError",
    "ModelNotFound",
    "ModelTurnFailed",
    "PreflightError",
]
