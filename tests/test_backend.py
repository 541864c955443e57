"""
===============================================================================
Unit‑tests for ai_engineer.backend (history translation + SDK adapter)
===============================================================================

No network: the OpenAI SDK client is replaced by a tiny fake exposing
`chat.completions.create`.
"""
from __future__ import annotations

import json
from types import SimpleNamespace
from typing import Any, Dict, List

import pytest

from ai_engineer.backend import OpenAIBackend, resolve_api_key, to_chat_messages, to_chat_tools
from ai_engineer.errors import ModelNotFound, TransientBackendError
from ai_engineer.history import model_call, model_text, user_result, user_text
from ai_engineer.responses import FunctionCall, normalize_response
from ai_engineer.tools import tool_declarations


class _Completions:
    def __init__(self, outcome: Any) -> None:
        self.outcome = outcome
        self.calls: List[Dict[str, Any]] = []

    def create(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        if isinstance(self.outcome, BaseException):
            raise self.outcome
        return self.outcome


def _backend(outcome: Any) -> tuple[OpenAIBackend, _Completions]:
    completions = _Completions(outcome)
    backend = OpenAIBackend(api_key="k", base_url="http://localhost/v1")
    backend._sdk = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return backend, completions


class _NotFoundError(Exception):
    status_code = 404


def test_history_translation_pairs_calls_and_results() -> None:
    history = [
        user_text("base"),
        user_text("task"),
        model_call(FunctionCall("read_file", {"filepath": "a.txt"})),
        user_result("read_file", {"content": "x"}),
        model_text("Unknown tool nope"),
        user_result("run_tests", {"exitCode": 1}),
    ]
    msgs = to_chat_messages("sys", history)

    assert msgs[0] == {"role": "system", "content": "sys"}
    assert msgs[1] == {"role": "user", "content": "base"}
    call = msgs[3]
    assert call["role"] == "assistant"
    assert call["tool_calls"][0]["id"] == "call_0"
    assert json.loads(call["tool_calls"][0]["function"]["arguments"]) == {"filepath": "a.txt"}
    assert msgs[4] == {"role": "tool", "tool_call_id": "call_0", "content": json.dumps({"content": "x"})}
    assert msgs[5] == {"role": "assistant", "content": "Unknown tool nope"}
    assert msgs[6]["role"] == "user"
    assert msgs[6]["content"].startswith("Tool result (run_tests): ")


def test_to_chat_tools_wraps_declarations() -> None:
    tools = to_chat_tools(tool_declarations())
    assert all(t["type"] == "function" for t in tools)
    assert tools[0]["function"]["name"] == "search_files"


def test_generate_sends_auto_tool_choice() -> None:
    reply = {"choices": [{"message": {"content": "done", "tool_calls": None}}]}
    backend, completions = _backend(reply)
    raw = backend.generate("gemini-2.5-pro", "", [user_text("hi")], tool_declarations())
    assert normalize_response(raw).text == "done"
    sent = completions.calls[0]
    assert sent["model"] == "gemini-2.5-pro"
    assert sent["tool_choice"] == "auto"
    assert sent["messages"] == [{"role": "user", "content": "hi"}]
    assert len(sent["tools"]) == 8


def test_404_maps_to_model_not_found() -> None:
    backend, _ = _backend(_NotFoundError("no such model"))
    with pytest.raises(ModelNotFound):
        backend.generate("bogus", "", [], [])


def test_other_errors_are_transient() -> None:
    backend, _ = _backend(ConnectionError("reset"))
    with pytest.raises(TransientBackendError) as ei:
        backend.generate("m", "", [], [])
    assert not isinstance(ei.value, ModelNotFound)


def test_api_key_resolution_order(monkeypatch: pytest.MonkeyPatch) -> None:
    for var in ("GEMINI_API_KEY", "GOOGLE_API_KEY", "OPENAI_API_KEY"):
        monkeypatch.delenv(var, raising=False)
    assert resolve_api_key() is None
    monkeypatch.setenv("OPENAI_API_KEY", "openai")
    monkeypatch.setenv("GEMINI_API_KEY", "gemini")
    assert resolve_api_key() == "gemini"
