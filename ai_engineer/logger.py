#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
===============================================================================
AI‑Engineer ▸ Diagnostic logging
===============================================================================

    from ai_engineer import get_logger
    log = get_logger(__name__)

Only the "ai_engineer" logger owns handlers: a console handler and a daily
rotating `ai_engineer.log` file. Module loggers carry no handlers and
propagate, so repeated `get_logger` calls never duplicate output. The
conversation transcript is separate (`ai_engineer.session`).

Environment:
    AI_ENGINEER_LOG_DIR   file directory (default ./logs, temp dir fallback)
    AI_ENGINEER_LOG_LVL   console level, name or number (default INFO)
    AI_ENGINEER_LOG_ROT   rotation `when` (default midnight)
    AI_ENGINEER_LOG_BACK  rotated files kept (default 7)
    AI_ENGINEER_LOG_UTC   truthy → UTC timestamps and rotation
    AI_ENGINEER_LOG_JSON  truthy → JSON lines on the console
"""
from __future__ import annotations

import json
import logging
import os
import tempfile
import time
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Optional

_ROOT = "ai_engineer"
_FORMAT = "%(asctime)s | %(name)s | %(levelname)-8s | %(message)s"


def _flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in {"1", "true", "yes", "on"}


def _level(raw: Optional[str]) -> int:
    raw = (raw or "").strip()
    if raw.isdigit():
        return int(raw)
    level = logging.getLevelName(raw.upper())
    return level if isinstance(level, int) else logging.INFO


class JsonLineFormatter(logging.Formatter):
    """One JSON object per record: ts, name, level, msg (+ exc_info)."""

    def __init__(self, utc: bool = False):
        super().__init__()
        self.utc = utc

    def format(self, record: logging.LogRecord) -> str:
        stamp = time.gmtime(record.created) if self.utc else time.localtime(record.created)
        data = {
            "ts": time.strftime("%Y-%m-%dT%H:%M:%S%z", stamp),
            "name": record.name,
            "level": record.levelname,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            data["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(data, default=str)


def _text_formatter(utc: bool) -> logging.Formatter:
    fmt = logging.Formatter(_FORMAT, "%Y-%m-%d %H:%M:%S")
    if utc:
        fmt.converter = time.gmtime  # type: ignore[assignment]
    return fmt


def _file_handler(utc: bool) -> Optional[logging.Handler]:
    candidates = (
        Path(os.getenv("AI_ENGINEER_LOG_DIR", "logs")).expanduser(),
        Path(tempfile.gettempdir()) / "ai-engineer-logs",
    )
    for directory in candidates:
        try:
            directory.mkdir(parents=True, exist_ok=True)
            handler = TimedRotatingFileHandler(
                directory / "ai_engineer.log",
                when=os.getenv("AI_ENGINEER_LOG_ROT", "midnight"),
                backupCount=int(os.getenv("AI_ENGINEER_LOG_BACK", "7")),
                encoding="utf-8",
                utc=utc,
            )
        except (OSError, ValueError):
            continue
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(_text_formatter(utc))
        return handler
    return None


def _configure(root: logging.Logger) -> None:
    utc = _flag("AI_ENGINEER_LOG_UTC")
    root.setLevel(logging.DEBUG)
    root.propagate = False

    console = logging.StreamHandler()
    console.setLevel(_level(os.getenv("AI_ENGINEER_LOG_LVL")))
    console.setFormatter(JsonLineFormatter(utc) if _flag("AI_ENGINEER_LOG_JSON") else _text_formatter(utc))
    root.addHandler(console)

    handler = _file_handler(utc)
    if handler is not None:
        root.addHandler(handler)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return the project logger (configured on first use) or a child of it."""
    root = logging.getLogger(_ROOT)
    if not root.handlers:
        _configure(root)
    if name is None or name == _ROOT:
        return root
    logger = logging.getLogger(name)
    logger.propagate = True
    return logger


__all__ = ["get_logger", "JsonLineFormatter"]
