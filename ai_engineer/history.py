#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
===============================================================================
AI‑Engineer ▸ Conversation turns
===============================================================================

The conversation history is an ordered list of `Turn`s. A turn is either plain
text (user or model), a model *function call*, or a user‑side *function
result* answering the preceding call.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from ai_engineer.responses import FunctionCall

USER = "user"
MODEL = "model"


@dataclass(frozen=True)
class FunctionResult:
    name: str
    result: Dict[str, Any]


@dataclass(frozen=True)
class Turn:
    role: str
    text: Optional[str] = None
    function_call: Optional[FunctionCall] = None
    function_result: Optional[FunctionResult] = None

    @property
    def kind(self) -> str:
        if self.function_call is not None:
            return "call"
        if self.function_result is not None:
            return "result"
        return "text"


def user_text(text: str) -> Turn:
    return Turn(role=USER, text=text)


def model_text(text: str) -> Turn:
    return Turn(role=MODEL, text=text)


def model_call(call: FunctionCall) -> Turn:
    return Turn(role=MODEL, function_call=call)


def user_result(name: str, result: Dict[str, Any]) -> Turn:
    return Turn(role=USER, function_result=FunctionResult(name=name, result=result))


__all__ = [
    "Turn",
    "FunctionResult",
    "USER",
    "MODEL",
    "user_text",
    "model_text",
    "model_call",
    "user_result",
]
