#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
===============================================================================
CLI smoke tests for entrypoints
===============================================================================

Goals
-----
* `python -m ai_engineer --version` prints the version without contacting a
  model backend.
* `ai-engineer --help` renders (skipped when the console script is absent).
* `main()` maps preflight failures to exit status 1 and usage errors to 2.
* The interactive loop stops on `exit` / `quit` / EOF.
"""
from __future__ import annotations

import logging
import re
import shutil
import subprocess
import sys
from pathlib import Path
from types import SimpleNamespace

import pytest

import ai_engineer.cli as cli
from ai_engineer.config import AgentConfig
from ai_engineer.errors import PreflightError

log = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")

_KEY_VARS = ("GEMINI_API_KEY", "GOOGLE_API_KEY", "OPENAI_API_KEY")


def _run(cmd: list[str]) -> tuple[int, str]:
    proc = subprocess.run(cmd, capture_output=True, text=True)
    out = (proc.stdout or "") + (proc.stderr or "")
    log.info("Ran: %s\n%s", " ".join(cmd), out.strip())
    return proc.returncode, out


_PEP440ish = re.compile(r"\b\d+\.\d+\.\d+(?:[A-Za-z0-9_.+-]+)?\b")


def test_module_entrypoint_version() -> None:
    code, out = _run([sys.executable, "-m", "ai_engineer", "--version"])
    assert code == 0, "Module entrypoint should exit 0 for --version"
    assert _PEP440ish.search(out), f"Unexpected version output: {out!r}"


def test_console_script_help() -> None:
    exe = shutil.which("ai-engineer")
    if not exe:
        pytest.skip("console script `ai-engineer` not found on PATH")
    code, out = _run([exe, "--help"])
    assert code == 0
    assert "--approve" in out and "--until-done" in out


def test_main_version_flag(capsys: pytest.CaptureFixture[str]) -> None:
    assert cli.main(["--version"]) == 0
    assert _PEP440ish.search(capsys.readouterr().out)


def test_main_usage_error() -> None:
    assert cli.main(["--max-tool-iters", "lots"]) == 2


def test_main_missing_credentials_exits_1(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    for var in _KEY_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("AI_ENGINEER_HOME", str(tmp_path / "home"))
    assert cli.main(["--workspace", str(tmp_path), "do something"]) == 1


def test_flags_may_sit_between_task_words(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    args = cli._parser().parse_intermixed_args(["fix", "--approve", "the", "bug"])
    assert args.task == ["fix", "the", "bug"]
    assert args.approve is True

    for var in _KEY_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("AI_ENGINEER_HOME", str(tmp_path / "home"))
    # reaches preflight (1) instead of a usage error (2)
    assert cli.main(["fix", "--approve", "the", "bug", "--workspace", str(tmp_path)]) == 1


def _cfg(tmp_path: Path, **kw) -> AgentConfig:
    return AgentConfig(workspace=tmp_path, home=tmp_path / "home", test_command="true", **kw)


def test_preflight_checks(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    monkeypatch.setattr(cli, "_sdk_available", lambda: True)
    cli.preflight(_cfg(tmp_path))

    with pytest.raises(PreflightError, match="Workspace not accessible"):
        cli.preflight(_cfg(tmp_path / "missing"))

    monkeypatch.setattr(cli, "_sdk_available", lambda: False)
    with pytest.raises(PreflightError, match="--auto-install"):
        cli.preflight(_cfg(tmp_path))


def test_preflight_auto_install(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    state = {"installed": False, "cmd": None}

    def fake_run(cmd, **kwargs):
        state["installed"] = True
        state["cmd"] = cmd
        return SimpleNamespace(returncode=0, stdout="ok", stderr="")

    monkeypatch.setattr(cli.subprocess, "run", fake_run)
    monkeypatch.setattr(cli, "_sdk_available", lambda: state["installed"])
    cli.preflight(_cfg(tmp_path, auto_install=True))
    assert state["cmd"][1:4] == ["-m", "pip", "install"]


def test_repl_stops_on_exit_directive() -> None:
    tasks: list = []
    conv = SimpleNamespace(run_task=tasks.append)
    lines = iter(["first task", "", "  second  ", "QUIT", "never run"])
    cli.repl(conv, read=lambda _prompt: next(lines))
    assert tasks == ["first task", "second"]


def test_repl_stops_on_eof() -> None:
    tasks: list = []
    conv = SimpleNamespace(run_task=tasks.append)

    def read(_prompt: str) -> str:
        raise EOFError

    cli.repl(conv, read=read)
    assert tasks == []


def test_repl_survives_a_failing_task() -> None:
    tasks: list = []

    def run_task(text: str) -> None:
        if text == "boom":
            raise RuntimeError("backend exploded")
        tasks.append(text)

    conv = SimpleNamespace(run_task=run_task)
    lines = iter(["boom", "after", "exit"])
    cli.repl(conv, read=lambda _prompt: next(lines))
    assert tasks == ["after"]
