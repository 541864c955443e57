"""
===============================================================================
Unit‑tests for ai_engineer.commands (run_cmd / run_tests)
===============================================================================

Every invocation yields a CommandResult – failures, timeouts and missing
binaries are reported through `exit_code`, never raised.
"""
from __future__ import annotations

from pathlib import Path

import pytest

import ai_engineer.commands as commands_mod
from ai_engineer.commands import TIMEOUT_EXIT_CODE, run_cmd, run_tests, strip_ansi


def test_success_runs_in_workspace(tmp_path: Path) -> None:
    (tmp_path / "marker.txt").write_text("here")
    res = run_cmd("cat marker.txt", workspace=tmp_path)
    assert res.ok
    assert res.to_dict() == {"exitCode": 0, "stdout": "here", "stderr": ""}


def test_nonzero_exit_is_data(tmp_path: Path) -> None:
    res = run_cmd("echo oops >&2; exit 3", workspace=tmp_path)
    assert res.exit_code == 3
    assert res.stderr.strip() == "oops"


def test_timeout_yields_result(tmp_path: Path) -> None:
    res = run_cmd("sleep 5", workspace=tmp_path, timeout_ms=200)
    assert res.exit_code == TIMEOUT_EXIT_CODE
    assert "TIMEOUT" in res.stderr


def test_missing_binary_is_nonzero(tmp_path: Path) -> None:
    res = run_cmd("definitely-not-a-real-binary-xyz", workspace=tmp_path)
    assert res.exit_code != 0


def test_ansi_is_stripped(tmp_path: Path) -> None:
    res = run_cmd(r"printf '\033[31mred\033[0m'", workspace=tmp_path)
    assert res.stdout == "red"
    assert strip_ansi("\x1b[1;32mok\x1b[0m") == "ok"


def test_output_is_truncated(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(commands_mod, "OUTPUT_LIMIT", 10)
    res = run_cmd("printf '%050d' 0", workspace=tmp_path)
    assert len(res.stdout) == 10


def test_run_tests_uses_default_command(tmp_path: Path) -> None:
    res = run_tests(workspace=tmp_path, default_cmd="echo default")
    assert res.stdout.strip() == "default"
    res = run_tests("echo override", workspace=tmp_path, default_cmd="echo default")
    assert res.stdout.strip() == "override"
