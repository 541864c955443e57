"""
===============================================================================
Unit‑tests for ai_engineer.config
===============================================================================
"""
from __future__ import annotations

from pathlib import Path

import pytest

from ai_engineer.config import AgentConfig, default_test_command, detect_runner, load_config, load_runners


def test_bundled_runner_table() -> None:
    runners = load_runners()
    assert runners["fallback"]["test"] == "make test"
    assert "package.json" in runners["node"]["marker"]


@pytest.mark.parametrize(
    "marker,runner",
    [
        ("package.json", "node"),
        ("composer.json", "php"),
        ("pyproject.toml", "python"),
        ("Cargo.toml", "rust"),
        ("go.mod", "go"),
    ],
)
def test_detect_runner_by_marker(tmp_path: Path, marker: str, runner: str) -> None:
    (tmp_path / marker).write_text("")
    assert detect_runner(tmp_path) == runner


def test_detect_runner_fallback(tmp_path: Path) -> None:
    assert detect_runner(tmp_path) == "fallback"
    assert default_test_command(tmp_path) == "make test"


def test_load_config_env_and_overrides(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    ws = tmp_path / "ws"
    ws.mkdir()
    (ws / "package.json").write_text("{}")
    monkeypatch.setenv("WORKSPACE", str(ws))
    monkeypatch.delenv("AI_ENGINEER_WORKSPACE", raising=False)
    monkeypatch.delenv("AI_ENGINEER_WRITE_GATING", raising=False)

    cfg = load_config(model=None, approve=True, home=str(tmp_path / "home"))
    assert cfg.workspace == ws.resolve()
    assert cfg.test_command == "npm test --silent"
    assert cfg.writes_enabled
    assert cfg.sessions_dir == tmp_path / "home" / "logs" / "sessions"
    assert cfg.patches_dir == tmp_path / "home" / "logs" / "patches"
    assert cfg.model  # None override keeps the default


def test_write_gating_env_blocks_writes(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AI_ENGINEER_WRITE_GATING", "true")
    cfg = load_config(workspace=str(tmp_path), approve=True, test_command="true")
    assert cfg.approve and cfg.write_gating
    assert not cfg.writes_enabled


def test_with_overrides_returns_new_instance(tmp_path: Path) -> None:
    cfg = AgentConfig(workspace=tmp_path)
    other = cfg.with_overrides(until_done=True)
    assert other.until_done and not cfg.until_done
