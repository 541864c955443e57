"""
===============================================================================
Unit‑tests for ai_engineer.session (JSONL transcript + redaction)
===============================================================================
"""
from __future__ import annotations

import json
from pathlib import Path

import pytest

from ai_engineer.session import REDACTED, SessionRecorder, redact


@pytest.mark.parametrize(
    "raw,secret",
    [
        ("export API_KEY=abc123", "abc123"),
        ("GEMINI_API_KEY = 'xyz789'", "xyz789"),
        ('token="t0k3n"', "t0k3n"),
        ("password=hunter2 and more", "hunter2"),
        ("PASS=p4ss", "p4ss"),
    ],
)
def test_redacts_credential_assignments(raw: str, secret: str) -> None:
    out = redact(raw)
    assert secret not in out
    assert REDACTED in out


def test_redaction_keeps_the_key_name_and_surroundings() -> None:
    assert redact("export API_KEY=abc123 && run") == f"export API_KEY={REDACTED} && run"
    assert redact("nothing secret here") == "nothing secret here"


def test_redacts_nested_structures() -> None:
    data = {"stdout": "DB_PASSWORD=letmein", "list": ["TOKEN=abc", 3], "exitCode": 0}
    out = redact(data)
    assert out["stdout"] == f"DB_PASSWORD={REDACTED}"
    assert out["list"] == [f"TOKEN={REDACTED}", 3]
    assert out["exitCode"] == 0


def test_recorder_appends_redacted_json_lines(tmp_path: Path) -> None:
    rec = SessionRecorder(tmp_path / "sessions", filename="s.jsonl")
    rec.user("deploy with API_KEY=sk-123")
    rec.function_call("run_cmd", {"command": "echo TOKEN=abc"})
    rec.tool_result("run_cmd", {"exitCode": 0, "stdout": "TOKEN=abc"})
    rec.model_text("All done")

    raw = (tmp_path / "sessions" / "s.jsonl").read_text()
    assert "sk-123" not in raw and "abc" not in raw
    lines = [json.loads(line) for line in raw.splitlines()]
    assert [e["role"] for e in lines] == ["user", "model", "tool", "model"]
    assert lines[1]["functionCall"]["name"] == "run_cmd"
    assert lines[2]["name"] == "run_cmd"
    assert lines[2]["result"]["exitCode"] == 0
    assert rec.entries() == lines


def test_default_filename_is_timestamped(tmp_path: Path) -> None:
    rec = SessionRecorder(tmp_path)
    assert rec.path.suffix == ".jsonl"
    assert ":" not in rec.path.name
    assert rec.entries() == []


def test_recorder_writes_lone_surrogates(tmp_path: Path) -> None:
    # json.loads accepts "\ud800" escapes, so model arguments can carry them
    rec = SessionRecorder(tmp_path, filename="s.jsonl")
    rec.function_call("run_cmd", {"command": "echo \ud800"})
    rec.model_text("after")

    entries = rec.entries()
    assert entries[0]["functionCall"]["args"]["command"] == "echo \ud800"
    assert entries[1]["text"] == "after"
