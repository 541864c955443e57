#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
===============================================================================
AI‑Engineer ▸ Tool declarations & dispatcher
===============================================================================

The model may call exactly these tools:

| tool              | required            | optional                 |
|-------------------|---------------------|--------------------------|
| search_files      | query               | globs[], max_results     |
| read_file         | filepath            | max_bytes                |
| run_tests         |                     | cmd, timeout_ms          |
| run_cmd           | command             | timeout_ms               |
| apply_patch       | filepath, new_content | rationale              |
| git_make_branch   | name                |                          |
| git_commit        | message             |                          |
| git_diff          |                     |                          |

Each tool has a JSON‑Schema parameter spec (sent to the model verbatim) and a
frozen dataclass argument type. `parse_call` validates the raw argument bag
with `jsonschema` and builds the typed arguments; `ToolDispatcher.dispatch`
executes them. Dispatch never raises: validation errors and tool failures
come back as `{"error": "..."}` results, unknown names as `known=False`.
"""
from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Dict, List, Mapping, Optional, Tuple, Type, Union

from jsonschema import Draft7Validator

from ai_engineer import get_logger
from ai_engineer.commands import run_cmd, run_tests
from ai_engineer.config import TEST_TIMEOUT_MS, AgentConfig
from ai_engineer.errors import ToolExecutionError, UnknownTool
from ai_engineer.git_ops import GitOps
from ai_engineer.patches import PatchRecorder, apply_patch
from ai_engineer.workspace import DEFAULT_MAX_RESULTS, Workspace, matches_to_dicts

log = get_logger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# Typed argument variants
# ─────────────────────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class SearchFilesArgs:
    query: str
    globs: Tuple[str, ...] = ("**/*",)
    max_results: int = DEFAULT_MAX_RESULTS


@dataclass(frozen=True)
class ReadFileArgs:
    filepath: str
    max_bytes: Optional[int] = None


@dataclass(frozen=True)
class RunTestsArgs:
    cmd: Optional[str] = None
    timeout_ms: int = TEST_TIMEOUT_MS


@dataclass(frozen=True)
class RunCmdArgs:
    command: str
    timeout_ms: int = 0


@dataclass(frozen=True)
class ApplyPatchArgs:
    filepath: str
    new_content: str
    rationale: Optional[str] = None


@dataclass(frozen=True)
class GitMakeBranchArgs:
    name: str


@dataclass(frozen=True)
class GitCommitArgs:
    message: str


@dataclass(frozen=True)
class GitDiffArgs:
    pass


ToolArgs = Union[
    SearchFilesArgs,
    ReadFileArgs,
    RunTestsArgs,
    RunCmdArgs,
    ApplyPatchArgs,
    GitMakeBranchArgs,
    GitCommitArgs,
    GitDiffArgs,
]


@dataclass(frozen=True)
class ToolSpec:
    name: str
    description: str
    parameters: Dict[str, Any]
    args_type: Type[Any]

    def declaration(self) -> Dict[str, Any]:
        """`{name, description, parameters}` as sent to the model."""
        return {"name": self.name, "description": self.description, "parameters": self.parameters}


def _obj(properties: Dict[str, Any], required: List[str] | None = None) -> Dict[str, Any]:
    schema: Dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        schema["required"] = required
    return schema


_STR = {"type": "string"}
_INT = {"type": "integer"}

TOOL_SPECS: Tuple[ToolSpec, ...] = (
    ToolSpec(
        "search_files",
        "Search workspace files for text (ripgrep syntax, smart case). Returns file/line/text matches.",
        _obj({"query": _STR, "globs": {"type": "array", "items": _STR}, "max_results": _INT}, ["query"]),
        SearchFilesArgs,
    ),
    ToolSpec(
        "read_file",
        "Read a workspace file. Returns its content (up to max_bytes), byte count and sha256.",
        _obj({"filepath": _STR, "max_bytes": {"type": "integer", "minimum": 1}}, ["filepath"]),
        ReadFileArgs,
    ),
    ToolSpec(
        "run_tests",
        "Run the project's tests/build. Defaults to the detected runner's command.",
        _obj({"cmd": _STR, "timeout_ms": _INT}),
        RunTestsArgs,
    ),
    ToolSpec(
        "run_cmd",
        "Run a shell command in the workspace. Returns exitCode, stdout and stderr.",
        _obj({"command": _STR, "timeout_ms": _INT}, ["command"]),
        RunCmdArgs,
    ),
    ToolSpec(
        "apply_patch",
        "Replace a file with its FULL new content (never a diff). Creates the file if missing.",
        _obj({"filepath": _STR, "new_content": _STR, "rationale": _STR}, ["filepath", "new_content"]),
        ApplyPatchArgs,
    ),
    ToolSpec(
        "git_make_branch",
        "Create and switch to a new git branch.",
        _obj({"name": _STR}, ["name"]),
        GitMakeBranchArgs,
    ),
    ToolSpec(
        "git_commit",
        "Commit all tracked changes with a message.",
        _obj({"message": _STR}, ["message"]),
        GitCommitArgs,
    ),
    ToolSpec(
        "git_diff",
        "Show the working-tree git diff.",
        _obj({}),
        GitDiffArgs,
    ),
)

TOOLS_BY_NAME: Dict[str, ToolSpec] = {spec.name: spec for spec in TOOL_SPECS}
_VALIDATORS: Dict[str, Draft7Validator] = {
    spec.name: Draft7Validator(spec.parameters) for spec in TOOL_SPECS
}


def tool_declarations() -> List[Dict[str, Any]]:
    return [spec.declaration() for spec in TOOL_SPECS]


# ─────────────────────────────────────────────────────────────────────────────
# Validation
# ─────────────────────────────────────────────────────────────────────────────
def parse_call(name: str, args: Optional[Mapping[str, Any]]) -> ToolArgs:
    """
    Validate *args* against the schema of tool *name* and build its typed
    argument object.

    Raises
    ------
    UnknownTool
        *name* is not a declared tool.
    ToolExecutionError
        The arguments violate the tool's schema.
    """
    spec = TOOLS_BY_NAME.get(name)
    if spec is None:
        raise UnknownTool(name)
    if args is not None and not isinstance(args, Mapping):
        raise ToolExecutionError(f"Arguments for {name} must be an object, got {type(args).__name__}")
    bag = dict(args or {})
    errors = sorted(_VALIDATORS[name].iter_errors(bag), key=lambda e: list(e.path))
    if errors:
        first = errors[0]
        where = ".".join(str(p) for p in first.path) or "$"
        raise ToolExecutionError(f"Invalid arguments for {name} at {where}: {first.message}")

    known = {f.name for f in fields(spec.args_type)}
    values = {k: v for k, v in bag.items() if k in known and v is not None}
    if "globs" in values:
        values["globs"] = tuple(values["globs"]) or SearchFilesArgs.globs
    for key in ("max_results", "max_bytes", "timeout_ms"):
        if key in values:
            values[key] = int(values[key])
    return spec.args_type(**values)


# ─────────────────────────────────────────────────────────────────────────────
# Dispatcher
# ─────────────────────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class ToolOutcome:
    """Result of one dispatched call. `known=False` for undeclared tools."""

    name: str
    result: Dict[str, Any]
    known: bool = True

    @property
    def failed(self) -> bool:
        return "error" in self.result

    @property
    def wrote(self) -> bool:
        return self.result.get("wrote") is True


class ToolDispatcher:
    """
    Executes validated tool calls against the workspace primitives.
    """

    def __init__(self, config: AgentConfig, *, recorder: Optional[PatchRecorder] = None):
        self.config = config
        self.workspace = Workspace(config.workspace, byte_limit=config.byte_limit)
        self.git = GitOps(config.workspace)
        self.recorder = recorder or PatchRecorder(config.patches_dir)

    def dispatch(self, name: str, args: Optional[Mapping[str, Any]] = None) -> ToolOutcome:
        try:
            parsed = parse_call(name, args)
        except UnknownTool as exc:
            log.warning("%s", exc)
            return ToolOutcome(name=name, result={"error": str(exc)}, known=False)
        except ToolExecutionError as exc:
            log.warning("%s", exc)
            return ToolOutcome(name=name, result={"error": str(exc)})

        try:
            result = self._execute(parsed)
        except Exception as exc:
            log.warning("Tool %s failed: %s", name, exc)
            result = {"error": f"{type(exc).__name__}: {exc}"}
        return ToolOutcome(name=name, result=result)

    def _execute(self, args: ToolArgs) -> Dict[str, Any]:
        cfg = self.config
        if isinstance(args, SearchFilesArgs):
            matches = matches_to_dicts(self.workspace.search(args.query, args.globs, args.max_results))
            return {"matches": matches, "count": len(matches)}
        if isinstance(args, ReadFileArgs):
            return self.workspace.read(args.filepath, args.max_bytes)
        if isinstance(args, RunTestsArgs):
            return run_tests(
                args.cmd,
                workspace=cfg.workspace,
                default_cmd=cfg.test_command or "",
                timeout_ms=args.timeout_ms,
            ).to_dict()
        if isinstance(args, RunCmdArgs):
            return run_cmd(args.command, workspace=cfg.workspace, timeout_ms=args.timeout_ms).to_dict()
        if isinstance(args, ApplyPatchArgs):
            return apply_patch(
                cfg.workspace,
                args.filepath,
                args.new_content,
                approve=cfg.writes_enabled,
                recorder=self.recorder,
                rationale=args.rationale,
                git=self.git,
            )
        if isinstance(args, GitMakeBranchArgs):
            return self.git.make_branch(args.name)
        if isinstance(args, GitCommitArgs):
            return self.git.commit(args.message)
        if isinstance(args, GitDiffArgs):
            return self.git.diff()
        raise ToolExecutionError(f"No implementation for {type(args).__name__}")


__all__ = [
    "TOOL_SPECS",
    "TOOLS_BY_NAME",
    "ToolDispatcher",
    "ToolOutcome",
    "ToolSpec",
    "parse_call",
    "tool_declarations",
    "SearchFilesArgs",
    "ReadFileArgs",
    "RunTestsArgs",
    "RunCmdArgs",
    "ApplyPatchArgs",
    "GitMakeBranchArgs",
    "GitCommitArgs",
    "GitDiffArgs",
]
