#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
===============================================================================
AI‑Engineer ▸ Model turn driver (retry + model fallback)
===============================================================================

One *turn* = one logical model request, attempted at most `attempts` times:

* `ModelNotFound` while the primary model is selected → downgrade the shared
  `ModelSelector` to the fallback and retry immediately (no backoff). The
  downgrade persists for every later turn.
* any other backend error, or a normalized response with neither text nor
  function calls → sleep `attempt * base_delay` seconds and retry.
* attempts exhausted → `ModelTurnFailed`.
"""
from __future__ import annotations

import time
from typing import Any, Callable, Dict, Optional, Sequence

from ai_engineer import get_logger
from ai_engineer.backend import ModelBackend, ModelSelector
from ai_engineer.errors import ModelNotFound, ModelTurnFailed, TransientBackendError
from ai_engineer.history import Turn
from ai_engineer.responses import NormalizedResponse, normalize_response

log = get_logger(__name__)

DEFAULT_ATTEMPTS = 3
DEFAULT_BASE_DELAY = 0.4


class ModelTurnDriver:
    """
    Drive single model turns against *backend* using *selector*'s model.

    Parameters
    ----------
    backend : ModelBackend
        Object exposing `generate(model, system, history, tools)`.
    selector : ModelSelector
        Shared model selection state; mutated on downgrade.
    system : str
        System instruction sent with every request.
    attempts : int
        Maximum attempts per turn.
    base_delay : float
        Linear backoff unit in seconds.
    sleep : callable
        Injected for tests; defaults to `time.sleep`.
    """

    def __init__(
        self,
        backend: ModelBackend,
        selector: ModelSelector,
        *,
        system: str = "",
        attempts: int = DEFAULT_ATTEMPTS,
        base_delay: float = DEFAULT_BASE_DELAY,
        sleep: Callable[[float], Any] = time.sleep,
    ) -> None:
        self.backend = backend
        self.selector = selector
        self.system = system
        self.attempts = max(1, attempts)
        self.base_delay = base_delay
        self._sleep = sleep

    def turn(self, history: Sequence[Turn], tools: Sequence[Dict[str, Any]]) -> NormalizedResponse:
        last_error: Optional[BaseException] = None
        for attempt in range(1, self.attempts + 1):
            model = self.selector.current
            try:
                raw = self.backend.generate(model, self.system, history, tools)
            except ModelNotFound as exc:
                last_error = exc
                if self.selector.downgrade():
                    continue
                log.warning("Attempt %d/%d: %s", attempt, self.attempts, exc)
            except TransientBackendError as exc:
                last_error = exc
                log.warning("Attempt %d/%d failed: %s", attempt, self.attempts, exc)
            else:
                resp = normalize_response(raw)
                if not resp.is_empty:
                    log.debug(
                        "Turn ok | model=%s | attempt=%d | calls=%d",
                        model,
                        attempt,
                        len(resp.function_calls),
                    )
                    return resp
                last_error = None
                log.warning("Attempt %d/%d: empty response from %s", attempt, self.attempts, model)

            if attempt < self.attempts:
                self._sleep(attempt * self.base_delay)

        reason = str(last_error) if last_error is not None else "empty response"
        raise ModelTurnFailed(f"Model turn failed after {self.attempts} attempts: {reason}")


__all__ = ["ModelTurnDriver", "DEFAULT_ATTEMPTS", "DEFAULT_BASE_DELAY"]
