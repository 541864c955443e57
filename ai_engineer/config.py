#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
===============================================================================
AI‑Engineer ▸ Configuration
===============================================================================

Environment‑backed defaults plus a small `AgentConfig` carrier that the CLI
builds once per process (CLI flags override env, env overrides built‑ins).

Environment
-----------
WORKSPACE | AI_ENGINEER_WORKSPACE   – workspace root (default: cwd)
AI_ENGINEER_MODEL                   – primary model (default: gemini-2.5-pro)
AI_ENGINEER_FALLBACK_MODEL          – downgrade target (default: gemini-2.5-flash)
AI_ENGINEER_BYTE_LIMIT              – default read_file byte cap (120000)
AI_ENGINEER_MAX_TOOL_ITERS          – model turns per pass (100)
AI_ENGINEER_MAX_VERIFY_PASSES       – until‑done passes (10)
AI_ENGINEER_STALL_PASSES            – passes without a write before nudging (3)
AI_ENGINEER_API_TIMEOUT             – per‑request timeout, seconds (120)
AI_ENGINEER_WRITE_GATING            – truthy → never write, even with --approve
AI_ENGINEER_HOME                    – artifact root (default: ~/.ai-engineer)

Test runners
------------
`runners.json` (package data) maps a runner name to marker files and the
default `run_tests` command. The first runner whose marker exists in the
workspace wins; otherwise "fallback".
"""
from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, replace
from importlib import resources
from pathlib import Path
from typing import Any, Dict, Optional

from ai_engineer import get_logger

log = get_logger(__name__)

_TRUTHY = {"1", "true", "yes", "on", "y", "t"}

# ─────────────────────────────────────────────────────────────────────────────
# Env‑backed defaults
# ─────────────────────────────────────────────────────────────────────────────
DEFAULT_MODEL = os.getenv("AI_ENGINEER_MODEL", "gemini-2.5-pro")
FALLBACK_MODEL = os.getenv("AI_ENGINEER_FALLBACK_MODEL", "gemini-2.5-flash")
DEFAULT_BYTE_LIMIT = int(os.getenv("AI_ENGINEER_BYTE_LIMIT", "120000"))
DEFAULT_MAX_TOOL_ITERS = int(os.getenv("AI_ENGINEER_MAX_TOOL_ITERS", "100"))
DEFAULT_MAX_VERIFY_PASSES = int(os.getenv("AI_ENGINEER_MAX_VERIFY_PASSES", "10"))
DEFAULT_STALL_PASSES = int(os.getenv("AI_ENGINEER_STALL_PASSES", "3"))
DEFAULT_API_TIMEOUT = int(os.getenv("AI_ENGINEER_API_TIMEOUT", "120"))
TEST_TIMEOUT_MS = 600_000


def _env_workspace() -> str:
    return os.getenv("AI_ENGINEER_WORKSPACE") or os.getenv("WORKSPACE") or os.getcwd()


def _env_home() -> Path:
    return Path(os.getenv("AI_ENGINEER_HOME", "~/.ai-engineer")).expanduser()


# ─────────────────────────────────────────────────────────────────────────────
# Runner table
# ─────────────────────────────────────────────────────────────────────────────
def load_runners() -> Dict[str, Dict[str, Any]]:
    """Load the bundled runner table (runners.json)."""
    with resources.files("ai_engineer").joinpath("runners.json").open(encoding="utf-8") as fh:
        return json.load(fh)


def detect_runner(workspace: Path, runners: Optional[Dict[str, Dict[str, Any]]] = None) -> str:
    """Return the first runner whose marker file exists in *workspace*."""
    table = runners if runners is not None else load_runners()
    for name, spec in table.items():
        if name == "fallback":
            continue
        if any((workspace / marker).exists() for marker in spec.get("marker", [])):
            return name
    return "fallback"


def default_test_command(workspace: Path) -> str:
    """Default `run_tests` command for *workspace*."""
    runners = load_runners()
    runner = detect_runner(workspace, runners)
    cmd = runners.get(runner, {}).get("test") or runners["fallback"]["test"]
    log.debug("Detected runner %s → %r", runner, cmd)
    return cmd


# ─────────────────────────────────────────────────────────────────────────────
# Config carrier
# ─────────────────────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class AgentConfig:
    """
    Resolved settings for one process.

    `workspace` is resolved to an absolute path once and never changes.
    `approve` is the operator's write approval; `write_gating` overrides it.
    """

    workspace: Path
    model: str = DEFAULT_MODEL
    fallback_model: str = FALLBACK_MODEL
    approve: bool = False
    write_gating: bool = False
    until_done: bool = False
    auto_install: bool = False
    byte_limit: int = DEFAULT_BYTE_LIMIT
    max_tool_iters: int = DEFAULT_MAX_TOOL_ITERS
    max_verify_passes: int = DEFAULT_MAX_VERIFY_PASSES
    stall_passes: int = DEFAULT_STALL_PASSES
    api_timeout: int = DEFAULT_API_TIMEOUT
    home: Path = field(default_factory=_env_home)
    test_command: Optional[str] = None

    @property
    def writes_enabled(self) -> bool:
        return self.approve and not self.write_gating

    @property
    def sessions_dir(self) -> Path:
        return self.home / "logs" / "sessions"

    @property
    def patches_dir(self) -> Path:
        return self.home / "logs" / "patches"

    def with_overrides(self, **changes: Any) -> "AgentConfig":
        return replace(self, **changes)


def load_config(**overrides: Any) -> AgentConfig:
    """
    Build an `AgentConfig` from the environment, applying non‑None *overrides*
    (typically parsed CLI flags).
    """
    values: Dict[str, Any] = {
        "workspace": _env_workspace(),
        "write_gating": os.getenv("AI_ENGINEER_WRITE_GATING", "").strip().lower() in _TRUTHY,
    }
    values.update({k: v for k, v in overrides.items() if v is not None})
    values["workspace"] = Path(values["workspace"]).expanduser().resolve()
    if "home" in values:
        values["home"] = Path(values["home"]).expanduser()
    cfg = AgentConfig(**values)
    if cfg.test_command is None:
        cfg = cfg.with_overrides(test_command=default_test_command(cfg.workspace))
    return cfg


__all__ = [
    "AgentConfig",
    "load_config",
    "load_runners",
    "detect_runner",
    "default_test_command",
    "DEFAULT_MODEL",
    "FALLBACK_MODEL",
    "TEST_TIMEOUT_MS",
]
