#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
===============================================================================
AI‑Engineer ▸ Conversation controller (tool‑calling loop)
===============================================================================

State machine
-------------
    RUNNING ─► AWAITING_MODEL ─► EXECUTING_TOOLS ─┐
                    ▲                             │
                    └─────────────────────────────┘
    text‑only reply / max_tool_iters ─► DONE        (pass ends)
    until‑done: DONE ─► VERIFYING ─► run_tests
        exit 0                          ─► DONE
        failure, passes < max           ─► next pass (result fed back)
        failure, passes == max          ─► ABORTED
    ModelTurnFailed at any point        ─► ABORTED

Function calls from one model turn are dispatched strictly in order. Each one
is appended to the history as a model function‑call turn followed by the user
function‑result turn, and both go to the session log. An unknown tool name is
answered with an "Unknown tool <name>" model text turn instead.

After `stall_passes` consecutive passes without a patch, an explicit
instruction turn is injected asking the model to write files.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List

from ai_engineer import get_logger
from ai_engineer.config import AgentConfig
from ai_engineer.driver import ModelTurnDriver
from ai_engineer.errors import ModelTurnFailed
from ai_engineer.history import Turn, model_call, model_text, user_result, user_text
from ai_engineer.session import SessionRecorder
from ai_engineer.tools import ToolDispatcher, ToolOutcome, tool_declarations

log = get_logger(__name__)


class ConversationState(str, Enum):
    RUNNING = "running"
    AWAITING_MODEL = "awaiting_model"
    EXECUTING_TOOLS = "executing_tools"
    VERIFYING = "verifying"
    DONE = "done"
    ABORTED = "aborted"


def base_instruction(workspace: Path) -> str:
    return (
        f"You are an AI engineering assistant operating inside {workspace}.\n"
        "Use tools in this order: search_files → read_file → run_cmd/run_tests → apply_patch.\n"
        "When writing files, ALWAYS call apply_patch with the FULL updated file content.\n"
        'After any write, run "git_diff" and show a summary. Keep output concise.'
    )


def stall_instruction(passes: int) -> str:
    return (
        f"No files have been patched in the last {passes} passes and the tests still fail. "
        "Stop describing changes: call apply_patch now with the FULL updated content "
        "of every file that must change, then run_tests."
    )


@dataclass(frozen=True)
class TaskOutcome:
    state: ConversationState
    passes: int
    model_turns: int
    final_text: str = ""

    @property
    def ok(self) -> bool:
        return self.state is ConversationState.DONE


@dataclass
class _PassResult:
    model_turns: int = 0
    patched: bool = False
    text: str = ""


class Conversation:
    """
    Holds the turn history for one process and runs tasks against it.

    History persists across `run_task` calls, so interactive follow‑ups keep
    their context.
    """

    def __init__(
        self,
        config: AgentConfig,
        driver: ModelTurnDriver,
        dispatcher: ToolDispatcher,
        session: SessionRecorder,
        *,
        echo: Callable[[str], Any] = print,
    ) -> None:
        self.config = config
        self.driver = driver
        self.dispatcher = dispatcher
        self.session = session
        self.echo = echo
        self.tools: List[Dict[str, Any]] = tool_declarations()
        self.history: List[Turn] = [user_text(base_instruction(config.workspace))]
        self.state = ConversationState.RUNNING
        self.model_turns = 0

    # ─────────────────────────────────────────────────────────────────────
    # One pass of the tool‑calling loop
    # ─────────────────────────────────────────────────────────────────────
    def _execute(self, name: str, args: Dict[str, Any]) -> ToolOutcome:
        log.info("🔧 Executing tool: %s", name)
        self.session.function_call(name, args)
        outcome = self.dispatcher.dispatch(name, args)
        if not outcome.known:
            msg = f"Unknown tool {name}"
            self.history.append(model_text(msg))
            self.session.tool_result(name, msg)
            log.warning("❓ %s", msg)
            return outcome

        self.session.tool_result(name, outcome.result)
        if outcome.failed:
            log.warning("Tool %s returned an error: %s", name, outcome.result.get("error"))
        else:
            log.info("✅ Tool %s complete", name)
        return outcome

    def run_pass(self) -> _PassResult:
        result = _PassResult()
        while result.model_turns < self.config.max_tool_iters:
            result.model_turns += 1
            self.model_turns += 1
            self.state = ConversationState.AWAITING_MODEL
            resp = self.driver.turn(self.history, self.tools)

            if resp.function_calls:
                self.state = ConversationState.EXECUTING_TOOLS
                for call in resp.function_calls:
                    outcome = self._execute(call.name, call.args)
                    if not outcome.known:
                        continue
                    self.history.append(model_call(call))
                    self.history.append(user_result(call.name, outcome.result))
                    if call.name == "apply_patch" and not outcome.failed:
                        result.patched = True
                continue

            out = resp.text.strip()
            if out:
                self.history.append(model_text(out))
                self.session.model_text(out)
                self.echo(out)
            result.text = out
            break
        else:
            log.warning("Tool iteration limit reached (%d); ending pass", self.config.max_tool_iters)
        return result

    # ─────────────────────────────────────────────────────────────────────
    # Task entry point
    # ─────────────────────────────────────────────────────────────────────
    def _verify(self) -> Dict[str, Any]:
        self.state = ConversationState.VERIFYING
        log.info("🧪 Running verification tests…")
        outcome = self.dispatcher.dispatch("run_tests", {})
        self.session.tool_result("run_tests", outcome.result)
        return outcome.result

    def run_task(self, text: str) -> TaskOutcome:
        task = (text or "").strip()
        if not task:
            return TaskOutcome(ConversationState.DONE, passes=0, model_turns=0)

        log.info("📝 Task: %s", task)
        self.state = ConversationState.RUNNING
        self.history.append(user_text(task))
        self.session.user(task)

        passes = 0
        start = self.model_turns
        idle = 0
        final_text = ""
        while True:
            passes += 1
            try:
                pr = self.run_pass()
            except ModelTurnFailed as exc:
                log.error("Aborting task: %s", exc)
                self.state = ConversationState.ABORTED
                return TaskOutcome(self.state, passes, self.model_turns - start, final_text)
            final_text = pr.text or final_text

            if not self.config.until_done:
                break

            idle = 0 if pr.patched else idle + 1
            test = self._verify()
            if test.get("exitCode") == 0:
                log.info("✅ Success: tests/build completed without errors.")
                break

            self.history.append(user_result("run_tests", test))
            if passes >= self.config.max_verify_passes:
                log.error("Tests still failing after %d passes; giving up", passes)
                self.state = ConversationState.ABORTED
                return TaskOutcome(self.state, passes, self.model_turns - start, final_text)

            log.info("❌ Tests still failing; handing results back to model.")
            if idle >= self.config.stall_passes:
                nudge = stall_instruction(idle)
                self.history.append(user_text(nudge))
                self.session.user(nudge)
                idle = 0

        self.state = ConversationState.DONE
        return TaskOutcome(self.state, passes, self.model_turns - start, final_text)


__all__ = [
    "Conversation",
    "ConversationState",
    "TaskOutcome",
    "base_instruction",
    "stall_instruction",
]
