#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
===============================================================================
AI‑Engineer ▸ Response normaliser
===============================================================================

Backends have shipped several incompatible response envelopes. Every raw
response is first classified by an explicit discriminator, then converted to
the canonical `NormalizedResponse(text, function_calls)`:

* "flat"       – `{text, functionCalls}` (or `function_calls`), object or dict
* "candidates" – `{candidates[0].content.parts[]}`, optionally under `response`;
                 text parts joined with "\n", `functionCall` parts become calls
* "chat"       – chat‑completions `{choices[0].message{content, tool_calls}}`
* "unknown"    – anything else → empty text, no calls

`normalize_response` is total: it never raises.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ai_engineer import get_logger

log = get_logger(__name__)

FLAT = "flat"
CANDIDATES = "candidates"
CHAT = "chat"
UNKNOWN = "unknown"


@dataclass(frozen=True)
class FunctionCall:
    name: str
    args: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "args": dict(self.args)}


@dataclass(frozen=True)
class NormalizedResponse:
    text: str = ""
    function_calls: Tuple[FunctionCall, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.text and not self.function_calls

    def to_dict(self) -> Dict[str, Any]:
        return {"text": self.text, "functionCalls": [c.to_dict() for c in self.function_calls]}


# ─────────────────────────────────────────────────────────────────────────────
# Shape access helpers (mappings and SDK objects alike)
# ─────────────────────────────────────────────────────────────────────────────
def _get(obj: Any, *names: str) -> Any:
    """First non‑None attribute/key among *names*, else None."""
    if obj is None:
        return None
    for name in names:
        if isinstance(obj, Mapping):
            val = obj.get(name)
        else:
            val = getattr(obj, name, None)
        if val is not None:
            return val
    return None


def _first(seq: Any) -> Any:
    if isinstance(seq, (list, tuple)) and seq:
        return seq[0]
    return None


def _decode_args(raw: Any, name: str) -> Dict[str, Any]:
    if raw is None or raw == "":
        return {}
    if isinstance(raw, Mapping):
        return dict(raw)
    if isinstance(raw, str):
        try:
            val = json.loads(raw)
        except ValueError:
            log.warning("Undecodable arguments for %s; using {}", name)
            return {}
        if isinstance(val, dict):
            return val
    log.warning("Non‑object arguments for %s (%s); using {}", name, type(raw).__name__)
    return {}


def _call_from(obj: Any) -> Optional[FunctionCall]:
    name = _get(obj, "name")
    if not isinstance(name, str) or not name:
        return None
    return FunctionCall(name=name, args=_decode_args(_get(obj, "args", "arguments"), name))


def _candidates_of(raw: Any) -> Optional[list]:
    cands = _get(raw, "candidates")
    if not cands:
        cands = _get(_get(raw, "response"), "candidates")
    return list(cands) if isinstance(cands, (list, tuple)) and cands else None


# ─────────────────────────────────────────────────────────────────────────────
# Discriminator
# ─────────────────────────────────────────────────────────────────────────────
def classify_response(raw: Any) -> str:
    """Return the envelope tag for *raw* (see module docstring)."""
    if raw is None:
        return UNKNOWN
    text = _get(raw, "text")
    calls = _get(raw, "functionCalls", "function_calls")
    if isinstance(text, str) or isinstance(calls, (list, tuple)):
        return FLAT
    if _candidates_of(raw):
        return CANDIDATES
    choices = _get(raw, "choices")
    if isinstance(choices, (list, tuple)) and choices:
        return CHAT
    return UNKNOWN


# ─────────────────────────────────────────────────────────────────────────────
# Per‑shape conversion
# ─────────────────────────────────────────────────────────────────────────────
def _from_flat(raw: Any) -> NormalizedResponse:
    text = _get(raw, "text")
    calls = [_call_from(c) for c in (_get(raw, "functionCalls", "function_calls") or [])]
    return NormalizedResponse(
        text=text if isinstance(text, str) else "",
        function_calls=tuple(c for c in calls if c is not None),
    )


def _from_candidates(raw: Any) -> NormalizedResponse:
    content = _get(_first(_candidates_of(raw)), "content")
    parts = _get(content, "parts") or []
    texts: List[str] = []
    calls: List[FunctionCall] = []
    for part in parts:
        text = _get(part, "text")
        if isinstance(text, str):
            texts.append(text)
        call = _call_from(_get(part, "functionCall", "function_call"))
        if call is not None:
            calls.append(call)
    return NormalizedResponse(text="\n".join(texts), function_calls=tuple(calls))


def _from_chat(raw: Any) -> NormalizedResponse:
    message = _get(_first(_get(raw, "choices")), "message")
    content = _get(message, "content")
    calls: List[FunctionCall] = []
    for tc in _get(message, "tool_calls") or []:
        call = _call_from(_get(tc, "function"))
        if call is not None:
            calls.append(call)
    return NormalizedResponse(
        text=content if isinstance(content, str) else "",
        function_calls=tuple(calls),
    )


_CONVERTERS = {
    FLAT: _from_flat,
    CANDIDATES: _from_candidates,
    CHAT: _from_chat,
}


def normalize_response(raw: Any) -> NormalizedResponse:
    """Canonicalise any backend response; unknown shapes become empty."""
    kind = classify_response(raw)
    converter = _CONVERTERS.get(kind)
    if converter is None:
        log.debug("Unrecognised response shape: %s", type(raw).__name__)
        return NormalizedResponse()
    return converter(raw)


__all__ = [
    "FunctionCall",
    "NormalizedResponse",
    "classify_response",
    "normalize_response",
    "FLAT",
    "CANDIDATES",
    "CHAT",
    "UNKNOWN",
]
