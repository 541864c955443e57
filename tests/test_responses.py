"""
===============================================================================
Unit‑tests for ai_engineer.responses (envelope normaliser)
===============================================================================

* flat / candidates / chat envelopes carrying the same logical content
  normalise to identical output,
* SDK‑style attribute objects behave like dicts,
* unknown or broken shapes become an empty response instead of raising.
"""
from __future__ import annotations

import json
from types import SimpleNamespace

import pytest

from ai_engineer.responses import (
    CANDIDATES,
    CHAT,
    FLAT,
    UNKNOWN,
    FunctionCall,
    NormalizedResponse,
    classify_response,
    normalize_response,
)

ARGS = {"filepath": "README.md"}

FLAT_RESP = {"text": "Reading it", "functionCalls": [{"name": "read_file", "args": ARGS}]}
CANDIDATES_RESP = {
    "candidates": [
        {
            "content": {
                "role": "model",
                "parts": [{"text": "Reading it"}, {"functionCall": {"name": "read_file", "args": ARGS}}],
            }
        }
    ]
}
WRAPPED_RESP = {"response": CANDIDATES_RESP}
CHAT_RESP = SimpleNamespace(
    choices=[
        SimpleNamespace(
            message=SimpleNamespace(
                content="Reading it",
                tool_calls=[
                    SimpleNamespace(
                        id="call_1",
                        type="function",
                        function=SimpleNamespace(name="read_file", arguments=json.dumps(ARGS)),
                    )
                ],
            )
        )
    ]
)

EXPECTED = NormalizedResponse(text="Reading it", function_calls=(FunctionCall("read_file", ARGS),))


@pytest.mark.parametrize(
    "raw,kind",
    [(FLAT_RESP, FLAT), (CANDIDATES_RESP, CANDIDATES), (WRAPPED_RESP, CANDIDATES), (CHAT_RESP, CHAT)],
)
def test_all_envelopes_normalise_identically(raw, kind: str) -> None:
    assert classify_response(raw) == kind
    assert normalize_response(raw) == EXPECTED
    assert normalize_response(raw).to_dict() == {
        "text": "Reading it",
        "functionCalls": [{"name": "read_file", "args": ARGS}],
    }


def test_candidates_join_text_parts_with_newline() -> None:
    raw = {"candidates": [{"content": {"parts": [{"text": "a"}, {"text": "b"}]}}]}
    assert normalize_response(raw) == NormalizedResponse(text="a\nb")


def test_flat_attribute_object_and_missing_args() -> None:
    raw = SimpleNamespace(text=None, functionCalls=[SimpleNamespace(name="git_diff", args=None)])
    assert normalize_response(raw) == NormalizedResponse(function_calls=(FunctionCall("git_diff", {}),))


@pytest.mark.parametrize("raw", [None, {}, {"candidates": []}, {"choices": []}, 42, "text", {"foo": 1}])
def test_unknown_shapes_become_empty(raw) -> None:
    assert classify_response(raw) == UNKNOWN
    res = normalize_response(raw)
    assert res.is_empty
    assert res.to_dict() == {"text": "", "functionCalls": []}


def test_undecodable_arguments_become_empty_object() -> None:
    raw = {
        "choices": [
            {
                "message": {
                    "content": None,
                    "tool_calls": [
                        {"function": {"name": "run_cmd", "arguments": "{not json"}},
                        {"function": {"name": "run_tests", "arguments": "[1, 2]"}},
                        {"function": {"arguments": "{}"}},
                    ],
                }
            }
        ]
    }
    res = normalize_response(raw)
    assert res.text == ""
    assert res.function_calls == (FunctionCall("run_cmd", {}), FunctionCall("run_tests", {}))


def test_calls_keep_model_order() -> None:
    raw = {
        "functionCalls": [
            {"name": "read_file", "args": {"filepath": "a"}},
            {"name": "apply_patch", "args": {"filepath": "a", "new_content": "x"}},
        ]
    }
    assert [c.name for c in normalize_response(raw).function_calls] == ["read_file", "apply_patch"]
