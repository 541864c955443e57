#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
===============================================================================
AI‑Engineer ▸ Command Line Interface
===============================================================================

Usage
-----
  ai-engineer [task ...] [--approve] [--auto-install] [--until-done]
              [--model ID] [--workspace DIR] [--max-tool-iters N] [--version]

With task text the agent runs that one task and exits. Without it an
interactive prompt (`AI> `) reads one task per line until `exit`, `quit`
or EOF.

Examples
--------
  # Dry run: every apply_patch only records diff/full artifacts
  ai-engineer "add a trailing newline to README.md"

  # Live writes, keep going until the test command passes
  ai-engineer --approve --until-done "fix the failing unit tests"

Exit codes
----------
0 normal completion · 1 preflight/fatal error · 2 usage error · 130 Ctrl‑C
"""
from __future__ import annotations

import argparse
import importlib.util
import os
import subprocess
import sys
import time
from typing import Any, Callable, Optional

from ai_engineer import get_logger, get_version
from ai_engineer.backend import ModelBackend, ModelSelector, OpenAIBackend, resolve_api_key
from ai_engineer.config import AgentConfig, load_config
from ai_engineer.conversation import Conversation
from ai_engineer.driver import ModelTurnDriver
from ai_engineer.errors import PreflightError
from ai_engineer.session import SessionRecorder
from ai_engineer.tools import ToolDispatcher

log = get_logger(__name__)

EXIT_DIRECTIVES = {"exit", "quit"}
SDK_REQUIREMENT = "openai>=1.0.0"


# ─────────────────────────────────────────────────────────────────────────────
# Preflight
# ─────────────────────────────────────────────────────────────────────────────
def _sdk_available() -> bool:
    return importlib.util.find_spec("openai") is not None


def _install_sdk() -> None:
    log.info("📦 Installing %s …", SDK_REQUIREMENT)
    proc = subprocess.run(
        [sys.executable, "-m", "pip", "install", SDK_REQUIREMENT],
        capture_output=True,
        text=True,
    )
    if proc.returncode != 0:
        raise PreflightError(f"pip install {SDK_REQUIREMENT} failed:\n{(proc.stderr or proc.stdout).strip()}")
    importlib.invalidate_caches()


def preflight(cfg: AgentConfig) -> None:
    """
    Verify credentials, workspace access and the model SDK.

    Raises PreflightError on anything fatal; an unwritable workspace under
    `--approve` is only a warning.
    """
    if not resolve_api_key():
        raise PreflightError("Missing GEMINI_API_KEY (or GOOGLE_API_KEY / OPENAI_API_KEY) in the environment.")

    ws = cfg.workspace
    if not ws.is_dir() or not os.access(ws, os.R_OK | os.X_OK):
        raise PreflightError(f"Workspace not accessible: {ws}")
    if cfg.approve and not os.access(ws, os.W_OK):
        log.warning("Workspace %s is not writable; approved writes will fail.", ws)

    if not _sdk_available():
        if not cfg.auto_install:
            raise PreflightError(f"Missing the openai SDK. Run: pip install '{SDK_REQUIREMENT}' (or pass --auto-install)")
        _install_sdk()
        if not _sdk_available():
            raise PreflightError("openai SDK still not importable after installation.")


# ─────────────────────────────────────────────────────────────────────────────
# Wiring
# ─────────────────────────────────────────────────────────────────────────────
def build_conversation(
    cfg: AgentConfig,
    *,
    backend: Optional[ModelBackend] = None,
    sleep: Callable[[float], Any] = time.sleep,
    echo: Callable[[str], Any] = print,
) -> Conversation:
    """Assemble backend, driver, dispatcher and session log for *cfg*."""
    selector = ModelSelector(current=cfg.model, fallback=cfg.fallback_model)
    driver = ModelTurnDriver(
        backend or OpenAIBackend(timeout_s=cfg.api_timeout),
        selector,
        sleep=sleep,
    )
    return Conversation(
        cfg,
        driver,
        ToolDispatcher(cfg),
        SessionRecorder(cfg.sessions_dir),
        echo=echo,
    )


def _print_banner(cfg: AgentConfig) -> None:
    log.info("🏁 Workspace: %s", cfg.workspace)
    log.info("🧠 Model: %s", cfg.model)
    if cfg.writes_enabled:
        log.info("✍️  Write mode: ENABLED (--approve)")
    elif cfg.approve:
        log.info("✍️  Write mode: gated by AI_ENGINEER_WRITE_GATING (dry-run)")
    else:
        log.info("✍️  Write mode: dry-run (patch artifacts only)")
    if cfg.until_done:
        log.info("♻️  Until-done loop: ENABLED")


def repl(conversation: Conversation, *, read: Callable[[str], str] = input) -> None:
    """Interactive loop: one task per line until an exit directive or EOF."""
    log.info('💬 Interactive mode. Type a directive and press Enter. Type "exit" or Ctrl+C to quit.')
    while True:
        try:
            line = read("AI> ")
        except EOFError:
            break
        cmd = line.strip()
        if not cmd:
            continue
        if cmd.lower() in EXIT_DIRECTIVES:
            break
        try:
            conversation.run_task(cmd)
        except Exception as exc:
            log.exception("Task failed: %s", exc)
    log.info("Goodbye 👋")


# ─────────────────────────────────────────────────────────────────────────────
# Argument parser
# ─────────────────────────────────────────────────────────────────────────────
def _parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="ai-engineer",
        description="AI‑Engineer – tool‑calling coding agent for one workspace",
    )
    p.add_argument("task", nargs="*", help="Task text. Omit for interactive mode.")
    p.add_argument("--approve", action="store_true", help="Write files in place (default: dry-run artifacts only).")
    p.add_argument("--auto-install", action="store_true", help="Install the openai SDK if it is missing.")
    p.add_argument("--until-done", action="store_true", help="Re-run the loop until the test command exits 0.")
    p.add_argument("--model", help="Model id (default: $AI_ENGINEER_MODEL or gemini-2.5-pro).")
    p.add_argument("--workspace", help="Workspace root (default: $WORKSPACE or cwd).")
    p.add_argument("--max-tool-iters", type=int, help="Model turns per pass (default: 100).")
    p.add_argument("--version", action="store_true", help="Print package version and exit.")
    return p


def main(argv: Optional[list[str]] = None) -> int:
    try:
        args = _parser().parse_intermixed_args(argv)
        if args.version:
            print(get_version())
            return 0

        cfg = load_config(
            workspace=args.workspace,
            model=args.model,
            approve=args.approve,
            until_done=args.until_done,
            auto_install=args.auto_install,
            max_tool_iters=args.max_tool_iters,
        )
        try:
            preflight(cfg)
        except PreflightError as exc:
            log.error("Preflight failed: %s", exc)
            return 1

        _print_banner(cfg)
        conversation = build_conversation(cfg)
        task = " ".join(args.task).strip()
        if task:
            conversation.run_task(task)
        else:
            repl(conversation)
        return 0
    except KeyboardInterrupt:
        log.info("Interrupted by user (Ctrl‑C).")
        return 130
    except SystemExit as exc:
        return int(exc.code) if isinstance(exc.code, int) else 1
    except Exception as exc:
        log.exception("Fatal error in CLI: %s", exc)
        return 1


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
