"""Input and output gates around tool execution.

Every call passes the input gate (loop, stale context, protected paths,
shell substitution) before it may run; every result from a mutating call
passes the output gate (line-edit invalidation, retry limiter, auto-verify)
before the agent sees it. Gates never raise: internal faults are logged and
the call degrades to pass-through.
"""

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from . import fmt
from .calls import (
    FILE_KINDS,
    MUTATING_KINDS,
    ToolCall,
    ToolKind,
    ToolResult,
    primary_path,
    shell_command,
    target_paths,
)
from .config import GuardrailConfig
from .loop import LoopDetector
from .policy import PROTECTED_MESSAGE, blocked_command, protected_paths
from .projects import resolve
from .report import ReportCollector
from .runner import exec_command
from .snapshots import LocalFileSystem, SnapshotStore
from .verify import AllowList, Runner, is_full_success, run_verification

logger = logging.getLogger(__name__)

LINE_EDIT_WARNING = (
    "\n\nWARNING: line numbers in {path} have shifted. "
    "You MUST call 'read_file' on {path} again before editing it further."
)


@dataclass
class Decision:
    allowed: bool
    gate: str | None = None
    message: str = ""

    def as_result(self) -> ToolResult:
        return ToolResult(self.message, is_error=True)


ALLOW = Decision(allowed=True)


class RetryLimiter:
    """Bounds consecutive verification overrides per tool.

    Reaching the maximum resets the counter and lets one result through
    untouched, so a tool is never blocked for good.
    """

    def __init__(self, max_retries: int = 3):
        self.max_retries = max_retries
        self.counters: dict[str, int] = {}

    @staticmethod
    def key(tool_name: str) -> str:
        return f"{tool_name}_output"

    def count(self, tool_name: str) -> int:
        return self.counters.get(self.key(tool_name), 0)

    def exhausted(self, tool_name: str) -> bool:
        """True (and reset to zero) if the tool has used up its overrides."""
        key = self.key(tool_name)
        if self.counters.get(key, 0) >= self.max_retries:
            self.counters[key] = 0
            return True
        return False

    def record_failure(self, tool_name: str) -> int:
        key = self.key(tool_name)
        self.counters[key] = self.counters.get(key, 0) + 1
        return self.counters[key]

    def reset(self) -> None:
        self.counters.clear()


@dataclass
class GuardrailState:
    """All mutable guardrail state for one process."""

    loop: LoopDetector = field(default_factory=LoopDetector)
    snapshots: SnapshotStore = field(default_factory=SnapshotStore)
    retries: RetryLimiter = field(default_factory=RetryLimiter)
    allowed_commands: AllowList = field(default_factory=AllowList)

    @classmethod
    def from_config(
        cls,
        config: GuardrailConfig,
        clock: Callable[[], float] = time.monotonic,
        fs: LocalFileSystem | None = None,
    ) -> "GuardrailState":
        return cls(
            loop=LoopDetector(
                capacity=config.loop_history_size,
                lookback=config.loop_lookback,
                threshold=config.loop_threshold,
                min_history=config.loop_min_history,
                window=config.loop_window,
                cooldown=config.loop_cooldown,
                clock=clock,
            ),
            snapshots=SnapshotStore(fs=fs),
            retries=RetryLimiter(config.max_output_retries),
            allowed_commands=AllowList(
                config.allowed_commands, env_var=config.allowed_commands_env
            ),
        )

    def reset(self) -> None:
        self.loop.reset()
        self.snapshots.clear()
        self.retries.reset()


def input_gate(
    state: GuardrailState,
    call: ToolCall,
    config: GuardrailConfig,
    fs: LocalFileSystem,
) -> Decision:
    """Decide whether a call may run."""
    try:
        return _input_gate(state, call, config, fs)
    except Exception as e:
        logger.exception("input gate failed for %s, allowing call", call.name)
        if config.verbose:
            fmt.warning(f"input gate fault on {call.name}, call allowed: {e}")
        return ALLOW


def _input_gate(state, call, config, fs) -> Decision:
    if state.loop.check(call.name, call.args) is not None:
        return Decision(
            False,
            "loop",
            f"LOOP DETECTED: You've called '{call.name}' with similar arguments "
            f"{config.loop_threshold} or more times within {config.loop_window:g}s. "
            "STOP and try a different approach or ask the user for guidance.",
        )

    kind = call.kind
    paths = target_paths(call) if kind in FILE_KINDS else []

    if kind in MUTATING_KINDS:
        stale = state.snapshots.stale_paths(paths, fs)
        if stale:
            return Decision(
                False,
                "stale_context",
                "SAFETY BLOCK: The following files have changed on disk since you "
                f"read them: {', '.join(stale)}.\n\nYou rely on stale context. "
                "You MUST call 'read_file' on these files again before "
                f"calling '{call.name}'.",
            )

    if paths:
        protected = protected_paths(paths)
        if protected:
            return Decision(
                False,
                "protected_path",
                PROTECTED_MESSAGE.format(paths=", ".join(protected)),
            )

    if kind is ToolKind.SHELL:
        command = shell_command(call.args)
        match = blocked_command(command)
        if match is not None:
            prefix, redirect = match
            return Decision(
                False,
                "shell_filter",
                f"BLOCKED COMMAND: '{prefix.strip()}' is not allowed here. {redirect}",
            )

    return ALLOW


def output_gate(
    state: GuardrailState,
    call: ToolCall,
    result: ToolResult,
    config: GuardrailConfig,
    fs: LocalFileSystem,
    *,
    cwd: str,
    runner: Runner = exec_command,
    report: ReportCollector | None = None,
) -> ToolResult:
    """Post-process a tool result; returns the original result on internal faults."""
    try:
        return _output_gate(state, call, result, config, fs, cwd, runner, report)
    except Exception as e:
        logger.exception("output gate failed for %s, passing result through", call.name)
        if config.verbose:
            fmt.warning(f"output gate fault on {call.name}, result unchanged: {e}")
        if report:
            report.record_fault("output", call.name, str(e))
        return result


def _invalidate_line_edit(state, call, result, config) -> ToolResult:
    path = primary_path(call)
    if path is None:
        return result
    state.snapshots.invalidate(path)
    if config.verbose:
        fmt.snapshot_invalidated(path)
    warning = LINE_EDIT_WARNING.format(path=path)
    if warning in result.content:
        return result
    return ToolResult(result.content + warning, is_error=result.is_error)


def _output_gate(state, call, result, config, fs, cwd, runner, report) -> ToolResult:
    kind = call.kind
    if kind not in MUTATING_KINDS:
        return result

    if kind is ToolKind.LINE_EDIT and not result.is_error:
        result = _invalidate_line_edit(state, call, result, config)
    elif not result.is_error:
        # the agent knows what it just wrote
        for path in target_paths(call):
            if path in state.snapshots:
                state.snapshots.refresh(path, fs.read_bytes(path))

    if state.retries.exhausted(call.name):
        logger.info("retry limit reached for %s, skipping verification", call.name)
        if config.verbose:
            fmt.retry_reset(call.name, state.retries.max_retries)
        if report:
            report.record_retry_reset(call.name, RetryLimiter.key(call.name))
        return result

    if not config.auto_verify or not is_full_success(result):
        return result

    path = primary_path(call)
    if not path:
        return result

    project = resolve(path, fs, config.projects)
    if project is None or not (project.build_cmd or project.test_cmd):
        return result

    state.allowed_commands.add(project.build_cmd)
    state.allowed_commands.add(project.test_cmd)

    outcome = run_verification(
        project,
        cwd,
        runner=runner,
        timeout=config.verify_timeout,
        build_chars=config.build_output_chars,
        test_chars=config.test_output_chars,
        verbose=config.verbose,
    )
    if outcome.failed:
        state.retries.record_failure(call.name)
    if report:
        report.record_verification(
            call.name,
            outcome.project_type,
            not outcome.failed,
            outcome.duration,
            outcome.lines,
        )
    return outcome.augment(result)


class Guardrail:
    """Guardrail engine bound to one working directory.

    Holds the process-lifetime state and wraps any tool executor with
    ``execute()``. The read tool reports what it read through
    ``record_read()`` so stale-context checks have something to compare.
    """

    def __init__(
        self,
        base_dir: str | Path,
        config: GuardrailConfig | None = None,
        *,
        state: GuardrailState | None = None,
        runner: Runner = exec_command,
        report: ReportCollector | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.base_dir = str(base_dir)
        self.config = config or GuardrailConfig()
        self.fs = LocalFileSystem(self.base_dir)
        self.state = state or GuardrailState.from_config(
            self.config, clock=clock, fs=self.fs
        )
        self.runner = runner
        self.report = report

    @property
    def snapshots(self) -> SnapshotStore:
        return self.state.snapshots

    @property
    def allowed_commands(self) -> AllowList:
        return self.state.allowed_commands

    def record_read(self, path: str, data: bytes | None = None) -> None:
        if data is None:
            data = self.fs.read_bytes(path)
        self.state.snapshots.record_read(path, data)

    def check_input(self, call: ToolCall) -> Decision:
        decision = input_gate(self.state, call, self.config, self.fs)
        if self.report:
            self.report.record_decision(
                call.name,
                decision.allowed,
                gate=decision.gate,
                message=decision.message or None,
            )
        if not decision.allowed and self.config.verbose:
            fmt.denial(call.name, decision.gate, decision.message)
        return decision

    def process_output(self, call: ToolCall, result: ToolResult) -> ToolResult:
        return output_gate(
            self.state,
            call,
            result,
            self.config,
            self.fs,
            cwd=self.base_dir,
            runner=self.runner,
            report=self.report,
        )

    def execute(
        self, call: ToolCall, executor: Callable[[ToolCall], ToolResult]
    ) -> ToolResult:
        """Gate, run and post-process one call."""
        decision = self.check_input(call)
        if not decision.allowed:
            return decision.as_result()
        return self.process_output(call, executor(call))

    def reset(self) -> None:
        self.state.reset()
