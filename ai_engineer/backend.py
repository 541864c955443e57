#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
===============================================================================
AI‑Engineer ▸ Model backend (OpenAI‑compatible Chat Completions)
===============================================================================

One `generate()` call = one model request. The backend translates the
conversation history into chat messages, declares the tools, and returns the
SDK's raw response; `ai_engineer.responses.normalize_response` does the rest.

Gemini serves an OpenAI‑compatible endpoint, so the official `openai` SDK is
used against it by default.

Environment
-----------
GEMINI_API_KEY | GOOGLE_API_KEY | OPENAI_API_KEY   – first one set wins
AI_ENGINEER_BASE_URL | OPENAI_BASE_URL | OPENAI_API_BASE
                                                   – endpoint override
                                                     (default: Gemini's
                                                     OpenAI‑compatible base)

Errors
------
HTTP 404 from the endpoint → `ModelNotFound`; anything else → `TransientBackendError`.
"""
from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence

from ai_engineer import get_logger
from ai_engineer.errors import ModelNotFound, PreflightError, TransientBackendError
from ai_engineer.history import Turn

log = get_logger(__name__)

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"

_API_KEY_VARS: Sequence[str] = ("GEMINI_API_KEY", "GOOGLE_API_KEY", "OPENAI_API_KEY")
_BASE_URL_VARS: Sequence[str] = ("AI_ENGINEER_BASE_URL", "OPENAI_BASE_URL", "OPENAI_API_BASE")


def _first_env(names: Iterable[str]) -> str | None:
    for name in names:
        val = os.getenv(name)
        if val:
            return val
    return None


def resolve_api_key() -> str | None:
    """Return the first configured API key, if any."""
    return _first_env(_API_KEY_VARS)


def resolve_base_url() -> str:
    return _first_env(_BASE_URL_VARS) or DEFAULT_BASE_URL


# ─────────────────────────────────────────────────────────────────────────────
# Model selection
# ─────────────────────────────────────────────────────────────────────────────
@dataclass
class ModelSelector:
    """
    Current model plus a one‑way downgrade to the fallback. Once downgraded
    the selector never returns to the primary model.
    """

    current: str
    fallback: str
    downgraded: bool = False

    def downgrade(self) -> bool:
        """Switch to the fallback. Returns False when already downgraded."""
        if self.downgraded or self.current == self.fallback:
            self.downgraded = True
            return False
        log.warning("Model %s not found; falling back to %s", self.current, self.fallback)
        self.current = self.fallback
        self.downgraded = True
        return True


# ─────────────────────────────────────────────────────────────────────────────
# History → chat messages
# ─────────────────────────────────────────────────────────────────────────────
def _dump(value: Any) -> str:
    return json.dumps(value, default=str)


def to_chat_messages(system: str, history: Sequence[Turn]) -> List[Dict[str, Any]]:
    """
    Translate *history* into Chat Completions messages.

    Each function‑call turn becomes an assistant message with a single
    `tool_calls` entry (`call_<n>`); the result turn that answers it becomes
    the matching `tool` message. A result with no pending call is sent as
    plain user text.
    """
    messages: List[Dict[str, Any]] = [{"role": "system", "content": system}] if system else []
    pending: List[tuple[str, str]] = []
    counter = 0

    for turn in history:
        if turn.function_call is not None:
            call_id = f"call_{counter}"
            counter += 1
            pending.append((turn.function_call.name, call_id))
            messages.append(
                {
                    "role": "assistant",
                    "content": None,
                    "tool_calls": [
                        {
                            "id": call_id,
                            "type": "function",
                            "function": {
                                "name": turn.function_call.name,
                                "arguments": _dump(turn.function_call.args),
                            },
                        }
                    ],
                }
            )
        elif turn.function_result is not None:
            res = turn.function_result
            match = next((i for i, (name, _) in enumerate(pending) if name == res.name), None)
            if match is None:
                messages.append({"role": "user", "content": f"Tool result ({res.name}): {_dump(res.result)}"})
            else:
                _, call_id = pending.pop(match)
                messages.append({"role": "tool", "tool_call_id": call_id, "content": _dump(res.result)})
        else:
            role = "assistant" if turn.role == "model" else "user"
            messages.append({"role": role, "content": turn.text or ""})
    return messages


def to_chat_tools(declarations: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [{"type": "function", "function": dict(decl)} for decl in declarations]


# ─────────────────────────────────────────────────────────────────────────────
# Backends
# ─────────────────────────────────────────────────────────────────────────────
class ModelBackend(Protocol):
    def generate(
        self,
        model: str,
        system: str,
        history: Sequence[Turn],
        tools: Sequence[Dict[str, Any]],
    ) -> Any: ...


def _is_not_found(exc: BaseException) -> bool:
    status = getattr(exc, "status_code", None) or getattr(exc, "status", None)
    if status == 404:
        return True
    return type(exc).__name__ == "NotFoundError"


@dataclass
class OpenAIBackend:
    """
    Chat Completions backend built on the official `openai` SDK.

    The SDK client is created lazily on the first request.
    """

    api_key: Optional[str] = None
    base_url: Optional[str] = None
    timeout_s: int = 120
    _sdk: Any | None = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        self.api_key = self.api_key or resolve_api_key()
        self.base_url = self.base_url or resolve_base_url()

    def _ensure_sdk(self) -> Any:
        if self._sdk is not None:
            return self._sdk
        if not self.api_key:
            raise PreflightError("GEMINI_API_KEY is not set in the environment.")
        try:
            from openai import OpenAI
        except ImportError:
            log.error("OpenAI SDK not installed. Run: pip install 'openai>=1.0.0' (or use --auto-install)")
            raise
        self._sdk = OpenAI(base_url=self.base_url, api_key=self.api_key)
        log.info("Model client initialised | base=%s | timeout=%ss", self.base_url, self.timeout_s)
        return self._sdk

    def generate(
        self,
        model: str,
        system: str,
        history: Sequence[Turn],
        tools: Sequence[Dict[str, Any]],
    ) -> Any:
        sdk = self._ensure_sdk()
        messages = to_chat_messages(system, history)
        log.debug("Request | model=%s | messages=%d | tools=%d", model, len(messages), len(tools))
        try:
            return sdk.chat.completions.create(
                model=model,
                messages=messages,
                tools=to_chat_tools(tools),
                tool_choice="auto",
                timeout=self.timeout_s,
            )
        except Exception as exc:
            if _is_not_found(exc):
                raise ModelNotFound(f"Model {model} not found: {exc}") from exc
            raise TransientBackendError(f"{type(exc).__name__}: {exc}") from exc


__all__ = [
    "DEFAULT_BASE_URL",
    "ModelBackend",
    "ModelSelector",
    "OpenAIBackend",
    "resolve_api_key",
    "resolve_base_url",
    "to_chat_messages",
    "to_chat_tools",
]
