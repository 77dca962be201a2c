"""Reference tool implementations for driving the guardrail end to end."""

from pathlib import Path

from .calls import ToolCall, ToolResult, shell_command
from .runner import exec_command

TOOLS = [
    {
        "type": "function",
        "function": {
            "name": "read_file",
            "description": (
                "Read a file. Returns lines prefixed with line numbers. "
                "Use start_line/line_count to paginate."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "path": {"type": "string", "description": "File to read."},
                    "start_line": {
                        "type": "integer",
                        "description": "1-based line to start from. Defaults to 1.",
                        "default": 1,
                    },
                    "line_count": {
                        "type": "integer",
                        "description": "Maximum number of lines to return.",
                    },
                },
                "required": ["path"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "write_file",
            "description": (
                "Create or overwrite a file, creating parent directories as needed."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "path": {"type": "string", "description": "File to write."},
                    "content": {"type": "string", "description": "New content."},
                },
                "required": ["path", "content"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "edit_lines",
            "description": (
                "Replace an inclusive 1-based line range of an existing file. "
                "Line numbers shift afterwards: read the file again before the next edit."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "path": {"type": "string", "description": "File to edit."},
                    "start_line": {"type": "integer", "minimum": 1},
                    "end_line": {"type": "integer", "minimum": 1},
                    "new_content": {
                        "type": "string",
                        "description": "Replacement text for the range.",
                    },
                },
                "required": ["path", "start_line", "end_line", "new_content"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "run_cmd",
            "description": "Run an allowed shell command and return its output.",
            "parameters": {
                "type": "object",
                "properties": {
                    "command": {"type": "string", "description": "Shell command."},
                    "timeout": {
                        "type": "integer",
                        "description": "Timeout in seconds (1-600). Defaults to 30.",
                        "default": 30,
                    },
                },
                "required": ["command"],
            },
        },
    },
]

MAX_LINE_LENGTH = 2000
DEFAULT_LINE_COUNT = 2000


def safe_resolve(file_path: str, base_dir: str, unrestricted: bool = False) -> Path:
    """Resolve a file path, ensuring it stays within base_dir.

    Raises:
        ValueError: If the resolved path escapes base_dir (when not unrestricted).
    """
    base = Path(base_dir).resolve()
    if Path(file_path).is_absolute():
        resolved = Path(file_path).resolve()
    else:
        resolved = (base / file_path).resolve()

    if unrestricted or resolved.is_relative_to(base):
        return resolved

    raise ValueError(
        f"Path {file_path!r} resolves to {resolved}, "
        f"which is outside base directory {base}"
    )


def _error(msg: str) -> ToolResult:
    return ToolResult(f"error: {msg}", is_error=True)


def _read_file(
    file_path: str,
    base_dir: str,
    start_line: int = 1,
    line_count: int | None = None,
    unrestricted: bool = False,
    snapshots=None,
) -> ToolResult:
    """Read a file with line numbers and record a snapshot of what was seen."""
    try:
        resolved = safe_resolve(file_path, base_dir, unrestricted)
    except ValueError as exc:
        return _error(str(exc))

    if not resolved.is_file():
        return _error(f"file does not exist: {file_path}")

    try:
        data = resolved.read_bytes()
        text = data.decode("utf-8")
    except UnicodeDecodeError as exc:
        return _error(f"failed to decode {file_path} as UTF-8: {exc}")
    except PermissionError as exc:
        return _error(str(exc))

    lines = text.splitlines()
    start = max(start_line - 1, 0)
    if start and start >= len(lines):
        return _error(
            f"start_line {start_line} exceeds file length ({len(lines)} lines)"
        )
    count = line_count if line_count else DEFAULT_LINE_COUNT
    selected = lines[start : start + count]

    output = [
        f"{i}: {line[:MAX_LINE_LENGTH]}"
        for i, line in enumerate(selected, start=start + 1)
    ]
    remaining = len(lines) - (start + len(selected))
    if remaining > 0:
        next_line = start + len(selected) + 1
        output.append(
            f"[{remaining} more lines, use start_line={next_line} to continue]"
        )

    if snapshots is not None:
        snapshots.record_read(str(resolved), data)
    return ToolResult("\n".join(output))


def _write_file(
    file_path: str, content: str, base_dir: str, unrestricted: bool = False
) -> ToolResult:
    """Create or overwrite a file with content."""
    try:
        resolved = safe_resolve(file_path, base_dir, unrestricted)
    except ValueError as exc:
        return _error(str(exc))

    resolved.parent.mkdir(parents=True, exist_ok=True)
    data = content.encode("utf-8")
    resolved.write_bytes(data)
    return ToolResult(f"Wrote {len(data)} bytes to {file_path}")


def _edit_lines(
    file_path: str,
    start_line: int,
    end_line: int,
    new_content: str,
    base_dir: str,
    unrestricted: bool = False,
) -> ToolResult:
    """Replace lines start_line..end_line (inclusive, 1-based) with new_content."""
    try:
        resolved = safe_resolve(file_path, base_dir, unrestricted)
    except ValueError as exc:
        return _error(str(exc))

    if not resolved.is_file():
        return _error(f"file does not exist: {file_path}")

    try:
        text = resolved.read_text(encoding="utf-8")
    except (UnicodeDecodeError, PermissionError, OSError) as exc:
        return _error(str(exc))

    lines = text.splitlines(keepends=True)
    if start_line < 1 or end_line < start_line:
        return _error(f"invalid line range {start_line}-{end_line}")
    if start_line > len(lines) + 1:
        return _error(
            f"start_line {start_line} exceeds file length ({len(lines)} lines)"
        )

    replacement = new_content.splitlines(keepends=True)
    if replacement and not replacement[-1].endswith("\n") and end_line < len(lines):
        replacement[-1] += "\n"
    lines[start_line - 1 : end_line] = replacement
    resolved.write_text("".join(lines), encoding="utf-8")
    return ToolResult(
        f"Replaced lines {start_line}-{end_line} of {file_path} "
        f"with {len(replacement)} lines"
    )


def _run_cmd(
    command: str,
    base_dir: str,
    allowed_commands=None,
    timeout: int = 30,
    unrestricted: bool = False,
) -> ToolResult:
    """Execute a shell command if it is on the allow-list."""
    if not command.strip():
        return _error("command is empty")

    if not unrestricted and (
        allowed_commands is None or not allowed_commands.permits(command)
    ):
        allowed = ", ".join(sorted(allowed_commands or ())) or "(none)"
        return _error(f"command {command!r} is not allowed. Allowed commands: {allowed}")

    run = exec_command(command, base_dir, timeout)
    if run.timed_out:
        return _error(f"command timed out after {timeout}s\n{run.output}".rstrip())

    parts = []
    if run.exit_code != 0:
        parts.append(f"Exit code: {run.exit_code}")
    if run.output:
        parts.append(run.output)
    return ToolResult("\n".join(parts) if parts else "(no output)")


def dispatch(call: ToolCall, base_dir: str, **kwargs) -> ToolResult:
    """Route a tool call to the appropriate implementation.

    Raises:
        KeyError: If the tool name is not recognized.
    """
    args = call.args
    unrestricted = kwargs.get("unrestricted", False)

    if call.name == "read_file":
        return _read_file(
            file_path=args["path"],
            base_dir=base_dir,
            start_line=args.get("start_line", 1),
            line_count=args.get("line_count"),
            unrestricted=unrestricted,
            snapshots=kwargs.get("snapshots"),
        )
    elif call.name == "write_file":
        return _write_file(
            file_path=args["path"],
            content=args["content"],
            base_dir=base_dir,
            unrestricted=unrestricted,
        )
    elif call.name == "edit_lines":
        return _edit_lines(
            file_path=args["path"],
            start_line=args["start_line"],
            end_line=args["end_line"],
            new_content=args["new_content"],
            base_dir=base_dir,
            unrestricted=unrestricted,
        )
    elif call.name == "run_cmd":
        return _run_cmd(
            command=shell_command(args),
            base_dir=base_dir,
            allowed_commands=kwargs.get("allowed_commands"),
            timeout=args.get("timeout", 30),
            unrestricted=unrestricted,
        )
    else:
        raise KeyError(f"Unknown tool: {call.name!r}")


def make_executor(base_dir: str, guardrail=None, unrestricted: bool = False):
    """Bind dispatch() to a working directory and a guardrail's shared state.

    Handler exceptions become error results, the way a host reports them to
    the agent.
    """

    def executor(call: ToolCall) -> ToolResult:
        try:
            return dispatch(
                call,
                base_dir,
                unrestricted=unrestricted,
                snapshots=guardrail.snapshots if guardrail else None,
                allowed_commands=guardrail.allowed_commands if guardrail else None,
            )
        except Exception as e:
            return _error(str(e))

    return executor
