"""Auto-verification: run build/test after a code edit and fold the outcome back."""

import logging
import os
import re
import time
from dataclasses import dataclass, field
from typing import Callable

from . import fmt
from .calls import ToolResult
from .projects import ProjectConfig
from .runner import CommandResult, exec_command

logger = logging.getLogger(__name__)

VERIFY_SEPARATOR = "\n\n--- AUTO-VERIFY ---\n"
BUILD_OUTPUT_CHARS = 1000
TEST_OUTPUT_CHARS = 1500
FAILURE_INSTRUCTION = "\n\nFix the issues above before proceeding."
SUCCESS_INSTRUCTION = (
    "\n\n<system-reminder>\n"
    "Build and tests have ALREADY been executed by the guardrail. "
    "Do NOT run build/test commands yourself. Proceed to the next task.\n"
    "</system-reminder>"
)

# a standalone "partial"/"PARTIAL"; partial.py or src/partial/x are paths
_PARTIAL_RE = re.compile(
    r"(?<![\w/\\-])(?:partial|PARTIAL)(?:ly|LY)?(?![\w/\\-]|\.\w)"
)

Runner = Callable[[str, str, int], CommandResult]


class AllowList:
    """Process-wide set of commands a downstream command gate must permit.

    Append-only and idempotent. When ``env_var`` is set, the list is mirrored
    into that environment variable as a comma-separated string so child
    processes and out-of-process gates see the same set.
    """

    def __init__(self, initial=(), env_var: str | None = None):
        self._commands: list[str] = []
        self.env_var = env_var
        if env_var:
            for cmd in os.environ.get(env_var, "").split(","):
                self.add(cmd)
        for cmd in initial:
            self.add(cmd)

    def add(self, command: str | None) -> bool:
        """Add command; return True if it was not already present."""
        if not command or not command.strip():
            return False
        command = command.strip()
        if command in self._commands:
            return False
        self._commands.append(command)
        if self.env_var:
            os.environ[self.env_var] = ",".join(self._commands)
        return True

    def __contains__(self, command: str) -> bool:
        return command.strip() in self._commands

    def __iter__(self):
        return iter(self._commands)

    def __len__(self) -> int:
        return len(self._commands)

    def permits(self, command: str) -> bool:
        """True if the full command or its first word is allowed."""
        command = command.strip()
        if not command:
            return False
        return command in self._commands or command.split()[0] in self._commands


@dataclass
class VerificationOutcome:
    project_type: str
    lines: list[str] = field(default_factory=list)
    failed: bool = False
    duration: float = 0.0

    def augment(self, result: ToolResult) -> ToolResult:
        text = result.content + VERIFY_SEPARATOR + "\n".join(self.lines)
        if self.failed:
            return ToolResult(text + FAILURE_INSTRUCTION, is_error=True)
        return ToolResult(text + SUCCESS_INSTRUCTION, is_error=False)


def is_full_success(result: ToolResult) -> bool:
    """No error flag and no partial-success marker in the output."""
    return not result.is_error and not _PARTIAL_RE.search(result.content or "")


def _exit_label(run: CommandResult) -> str:
    if run.timed_out:
        return "timeout"
    return str(run.exit_code)


def run_verification(
    project: ProjectConfig,
    cwd: str,
    *,
    runner: Runner = exec_command,
    timeout: int = 120,
    build_chars: int = BUILD_OUTPUT_CHARS,
    test_chars: int = TEST_OUTPUT_CHARS,
    verbose: bool = False,
) -> VerificationOutcome:
    """Run the build step, then the test step unless the build failed."""
    outcome = VerificationOutcome(project_type=project.project_type)
    t0 = time.monotonic()
    kind = project.project_type

    if project.build_cmd:
        if verbose:
            fmt.verify_start(kind, project.build_cmd)
        logger.debug("running build for %s: %s", kind, project.build_cmd)
        build = runner(project.build_cmd, cwd, timeout)
        if not build.ok:
            outcome.failed = True
            outcome.lines.append(
                f"BUILD FAILED [{kind}] (exit {_exit_label(build)}):\n"
                f"{build.output[:build_chars]}"
            )
        else:
            outcome.lines.append(f"BUILD [{kind}]: OK")

    if project.test_cmd and not outcome.failed:
        if verbose:
            fmt.verify_start(kind, project.test_cmd)
        logger.debug("running tests for %s: %s", kind, project.test_cmd)
        test = runner(project.test_cmd, cwd, timeout)
        if not test.ok:
            outcome.failed = True
            outcome.lines.append(
                f"TESTS FAILED [{kind}] (exit {_exit_label(test)}):\n"
                f"{test.output[:test_chars]}"
            )
        else:
            outcome.lines.append(f"TESTS [{kind}]: OK")

    outcome.duration = time.monotonic() - t0
    if verbose:
        fmt.verify_result(kind, not outcome.failed, outcome.duration)
    return outcome
