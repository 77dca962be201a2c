"""Tool call model, tool-kind classification and semantic signatures."""

import enum
import json
from dataclasses import dataclass, field
from typing import Any

MAX_QUERY_SIGNATURE = 50


class ToolKind(enum.Enum):
    READ = "read"
    WRITE = "write"
    PATCH = "patch"
    LINE_EDIT = "line_edit"
    SEARCH = "search"
    POSITION_QUERY = "position_query"
    SHELL = "shell"
    OTHER = "other"


TOOL_KINDS: dict[str, ToolKind] = {
    "read_file": ToolKind.READ,
    "write_file": ToolKind.WRITE,
    "patch": ToolKind.PATCH,
    "edit_lines": ToolKind.LINE_EDIT,
    "replace_lines": ToolKind.LINE_EDIT,
    "search_code": ToolKind.SEARCH,
    "mgrep": ToolKind.SEARCH,
    "grep": ToolKind.SEARCH,
    "search_files": ToolKind.SEARCH,
    "list_files": ToolKind.SEARCH,
    "find_references": ToolKind.POSITION_QUERY,
    "hover": ToolKind.POSITION_QUERY,
    "goto_definition": ToolKind.POSITION_QUERY,
    "run_cmd": ToolKind.SHELL,
    "run_command": ToolKind.SHELL,
}

MUTATING_KINDS = frozenset({ToolKind.WRITE, ToolKind.PATCH, ToolKind.LINE_EDIT})
FILE_KINDS = MUTATING_KINDS | {ToolKind.READ}


def tool_kind(name: str) -> ToolKind:
    return TOOL_KINDS.get(name, ToolKind.OTHER)


@dataclass(frozen=True)
class ToolCall:
    """A single agent-issued invocation. Built once per call by the host."""

    name: str
    args: dict[str, Any] = field(default_factory=dict)

    @property
    def kind(self) -> ToolKind:
        return tool_kind(self.name)


@dataclass(frozen=True)
class ToolResult:
    content: str
    is_error: bool = False


def _header_path(raw: str) -> str | None:
    path = raw.split("\t", 1)[0].strip()
    if path == "/dev/null":
        return None
    if path.startswith(("a/", "b/")):
        path = path[2:]
    return path or None


def parse_diff_paths(diff: str) -> list[str]:
    """Return target paths from the ``---``/``+++`` header pairs of a diff.

    ``a/`` and ``b/`` prefixes are dropped when present, so ``--no-prefix``
    and hand-written headers work too. Deleted files (``+++ /dev/null``) fall
    back to their source path. Order of first appearance is preserved,
    duplicates dropped.
    """
    if not isinstance(diff, str) or not diff:
        return []
    paths: list[str] = []
    lines = diff.splitlines()
    for source, target in zip(lines, lines[1:]):
        if not (source.startswith("--- ") and target.startswith("+++ ")):
            continue
        path = _header_path(target[4:]) or _header_path(source[4:])
        if path and path not in paths:
            paths.append(path)
    return paths


def _path_arg(args: dict) -> str:
    for key in ("path", "file_path", "filepath"):
        value = args.get(key)
        if isinstance(value, str) and value:
            return value
    paths = args.get("paths")
    if isinstance(paths, list) and paths and isinstance(paths[0], str):
        return paths[0]
    return ""


def target_paths(call: ToolCall) -> list[str]:
    """Every file path a call touches, as given by the agent."""
    args = call.args
    if call.kind is ToolKind.PATCH:
        paths = parse_diff_paths(args.get("unified_diff") or args.get("diff") or "")
        direct = _path_arg(args)
        if direct and direct not in paths:
            paths.append(direct)
        return paths
    paths = []
    for key in ("path", "file_path", "filepath"):
        value = args.get(key)
        if isinstance(value, str) and value and value not in paths:
            paths.append(value)
    extra = args.get("paths")
    if isinstance(extra, list):
        for value in extra:
            if isinstance(value, str) and value and value not in paths:
                paths.append(value)
    return paths


def primary_path(call: ToolCall) -> str | None:
    """The single path auto-verification keys on: direct path, or first diff target."""
    paths = target_paths(call)
    return paths[0] if paths else None


def shell_command(args: dict) -> str:
    command = args.get("command", "")
    if isinstance(command, list):
        return " ".join(str(part) for part in command)
    return command if isinstance(command, str) else ""


def _canonical(payload: dict) -> str:
    return json.dumps(payload, sort_keys=True, default=str)


def signature(name: str, args: dict) -> str:
    """Canonical string capturing the intent of a call, for loop comparison.

    Retries that differ only in content (diff body, written text, replacement
    lines) collide on purpose.
    """
    kind = tool_kind(name)
    if kind is ToolKind.PATCH:
        files = parse_diff_paths(args.get("unified_diff") or args.get("diff") or "")
        return _canonical({"tool": name, "files": sorted(files)})
    if kind is ToolKind.LINE_EDIT:
        start = args.get("start_line", 0)
        return _canonical(
            {
                "tool": name,
                "path": _path_arg(args),
                "start": start,
                "end": args.get("end_line", start),
            }
        )
    if kind is ToolKind.READ:
        # pagination is part of the intent: sequential pages never collide
        return _canonical(
            {
                "tool": name,
                "path": _path_arg(args),
                "start": args.get("start_line", 0),
                "count": args.get("line_count", "all"),
            }
        )
    if kind is ToolKind.WRITE:
        return _canonical({"tool": name, "path": _path_arg(args)})
    if kind is ToolKind.SEARCH:
        query = args.get("query") or args.get("pattern") or ""
        if not isinstance(query, str):
            query = str(query)
        scope = args.get("scope") or args.get("path") or "."
        return _canonical(
            {"tool": name, "query": query[:MAX_QUERY_SIGNATURE], "scope": scope}
        )
    if kind is ToolKind.POSITION_QUERY:
        return _canonical(
            {
                "tool": name,
                "path": _path_arg(args),
                "line": args.get("line"),
                "column": args.get("column", args.get("character")),
            }
        )
    if kind is ToolKind.SHELL:
        return _canonical({"tool": name, "command": shell_command(args)})
    return _canonical({"tool": name, "args": args})
