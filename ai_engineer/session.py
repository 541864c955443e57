#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
===============================================================================
AI‑Engineer ▸ Session recorder (JSONL transcript)
===============================================================================

Append‑only transcript of one process run, one JSON object per line:

    {"role": "user",  "text": "..."}
    {"role": "model", "functionCall": {"name": "...", "args": {...}}}
    {"role": "tool",  "name": "...", "result": {...}}
    {"role": "model", "text": "..."}

Every string that reaches disk is passed through `redact()`, which masks
credential‑shaped assignments (`API_KEY=…`, `TOKEN=…`, `PASS=`/`PASSWORD=…`,
case‑insensitive). Write failures are logged and never interrupt the loop.
"""
from __future__ import annotations

import json
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from ai_engineer import get_logger

log = get_logger(__name__)

REDACTED = "[redacted]"
_SECRET_RE = re.compile(r"""([A-Z0-9_]*KEY|PASS(?:WORD)?|TOKEN)\s*=\s*["']?[^"'\s]+""", re.IGNORECASE)


def redact(value: Any) -> Any:
    """Mask credential assignments in *value* (strings, nested dicts/lists)."""
    if isinstance(value, str):
        return _SECRET_RE.sub(lambda m: f"{m.group(1)}={REDACTED}", value)
    if isinstance(value, dict):
        return {k: redact(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [redact(v) for v in value]
    return value


def session_filename(now: Optional[datetime] = None) -> str:
    stamp = (now or datetime.now(timezone.utc)).strftime("%Y-%m-%dT%H-%M-%S-%fZ")
    return f"{stamp}.jsonl"


class SessionRecorder:
    """
    Writes redacted transcript entries to `<sessions_dir>/<timestamp>.jsonl`.
    """

    def __init__(self, sessions_dir: Path, *, filename: Optional[str] = None) -> None:
        self.sessions_dir = Path(sessions_dir)
        self.sessions_dir.mkdir(parents=True, exist_ok=True)
        self.path = self.sessions_dir / (filename or session_filename())
        log.debug("Session log: %s", self.path)

    def write(self, entry: Dict[str, Any]) -> None:
        # ASCII escapes keep lone surrogates from model JSON writable
        line = json.dumps(redact(entry), default=str)
        try:
            with self.path.open("a", encoding="utf-8") as fh:
                fh.write(line + "\n")
        except (OSError, ValueError) as exc:
            log.warning("Could not append to session log %s: %s", self.path, exc)

    # Convenience wrappers -------------------------------------------------
    def user(self, text: str) -> None:
        self.write({"role": "user", "text": text})

    def model_text(self, text: str) -> None:
        self.write({"role": "model", "text": text})

    def function_call(self, name: str, args: Dict[str, Any]) -> None:
        self.write({"role": "model", "functionCall": {"name": name, "args": args}})

    def tool_result(self, name: str, result: Any) -> None:
        self.write({"role": "tool", "name": name, "result": result})

    def entries(self) -> list:
        """Read the transcript back (used by tests and post‑mortems)."""
        if not self.path.exists():
            return []
        with self.path.open(encoding="utf-8") as fh:
            return [json.loads(line) for line in fh if line.strip()]


__all__ = ["SessionRecorder", "redact", "session_filename", "REDACTED"]
