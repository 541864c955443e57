#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
===============================================================================
AI‑Engineer ▸ Command executor (run_cmd / run_tests)
===============================================================================

Runs a shell command with the workspace as working directory and always
returns an inspectable `CommandResult`: timeouts, launch failures and
non‑zero exits are data, never exceptions.

* stdout / stderr are ANSI‑stripped and truncated to OUTPUT_LIMIT characters
  each so tool results stay small enough to re‑present to the model.
* `timeout_ms <= 0` means "no timeout".
* Timeouts report exit code 124 (like coreutils `timeout`).
"""
from __future__ import annotations

import os
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from ai_engineer import get_logger
from ai_engineer.config import TEST_TIMEOUT_MS

log = get_logger(__name__)

OUTPUT_LIMIT = int(os.getenv("AI_ENGINEER_OUTPUT_LIMIT", "20000"))
TIMEOUT_EXIT_CODE = 124

# CSI sequences, OSC sequences (BEL or ST terminated) and two‑byte escapes
_ANSI_RE = re.compile(
    r"\x1b\[[0-?]*[ -/]*[@-~]"
    r"|\x1b\][^\x07\x1b]*(?:\x07|\x1b\\)"
    r"|\x1b[@-Z\\-_]"
)


def strip_ansi(text: str) -> str:
    return _ANSI_RE.sub("", text or "")


def _clip(text: str, limit: Optional[int] = None) -> str:
    limit = OUTPUT_LIMIT if limit is None else limit
    return text if len(text) <= limit else text[:limit]


def _as_text(data: Any) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return str(data)


@dataclass(frozen=True)
class CommandResult:
    """Outcome of one command; `exit_code != 0` for failures of any kind."""

    exit_code: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    def to_dict(self) -> Dict[str, Any]:
        return {"exitCode": self.exit_code, "stdout": self.stdout, "stderr": self.stderr}


def _finish(exit_code: int, stdout: Any, stderr: Any) -> CommandResult:
    return CommandResult(
        exit_code=exit_code,
        stdout=_clip(strip_ansi(_as_text(stdout))),
        stderr=_clip(strip_ansi(_as_text(stderr))),
    )


def run_cmd(command: str, *, workspace: Path, timeout_ms: int = 0) -> CommandResult:
    """
    Execute *command* through the shell inside *workspace*.
    """
    timeout = timeout_ms / 1000 if timeout_ms and timeout_ms > 0 else None
    log.info("Running command: %s (timeout=%s)", command, f"{timeout}s" if timeout else "none")
    try:
        res = subprocess.run(
            command,
            cwd=workspace,
            shell=True,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as exc:
        log.warning("Command timed out after %ss: %s", timeout, command)
        banner = f"TIMEOUT: command exceeded {timeout_ms} ms\n"
        return _finish(TIMEOUT_EXIT_CODE, exc.stdout, banner + _as_text(exc.stderr))
    except OSError as exc:
        log.warning("Command could not be started: %s (%s)", command, exc)
        return _finish(127, "", str(exc))

    log.debug("Command rc=%s: %s", res.returncode, command)
    # Signal deaths come back negative; report them as failures.
    code = res.returncode if res.returncode >= 0 else 128 - res.returncode
    return _finish(code, res.stdout, res.stderr)


def run_tests(
    cmd: Optional[str] = None,
    *,
    workspace: Path,
    default_cmd: str,
    timeout_ms: int = TEST_TIMEOUT_MS,
) -> CommandResult:
    """`run_cmd` with the detected runner's test command and a longer timeout."""
    return run_cmd(cmd or default_cmd, workspace=workspace, timeout_ms=timeout_ms)


__all__ = ["CommandResult", "run_cmd", "run_tests", "strip_ansi", "OUTPUT_LIMIT"]
