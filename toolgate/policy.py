"""Stateless policy gates: protected paths and blocked shell commands."""

import re

PROTECTED_PATTERNS = [
    re.compile(r"(?:^|[/\\])\.env(?:\..+)?$"),  # .env, .env.local, .env.production
    re.compile(r"id_rsa"),
    re.compile(r"id_ed25519"),
    re.compile(r"\.pem$"),
    re.compile(r"(?:^|[/\\])secrets?\.(?:json|ya?ml)$", re.IGNORECASE),
    re.compile(r"(?:^|[/\\])\.git[/\\]"),
]

PROTECTED_MESSAGE = (
    "SECURITY BLOCK: You are not allowed to access protected files "
    "(.env, SSH keys, certificates, secrets, .git internals): {paths}"
)

# (prefix, redirect). Prefixes end with a space so "ls" blocks "ls -la" but
# not "lsof"; longer prefixes come first.
BLOCKED_COMMANDS: list[tuple[str, str]] = [
    (
        "rm -rf ",
        "Recursive deletion is irreversible. Delete individual files with the delete_file tool.",
    ),
    (
        "rm -r ",
        "Recursive deletion is irreversible. Delete individual files with the delete_file tool.",
    ),
    ("chmod ", "Permission changes are not allowed from the agent."),
    ("chown ", "Ownership changes are not allowed from the agent."),
    (
        "git reset --hard ",
        "Discarding work is irreversible. Use the git tool and ask the user first.",
    ),
    (
        "git checkout ",
        "Use the git tool instead of running git checkout through the shell.",
    ),
    ("git status ", "Use the git tool (git status) instead of the shell."),
    ("git diff ", "Use the git tool (git diff) instead of the shell."),
    ("git log ", "Use the git tool (git log) instead of the shell."),
    ("git show ", "Use the git tool (git show) instead of the shell."),
    ("ls ", "Use the list_files tool to list directories."),
    ("find ", "Use the list_files tool to find files."),
    ("cat ", "Use the read_file tool to read files."),
    ("head ", "Use the read_file tool with start_line/line_count."),
    ("tail ", "Use the read_file tool with start_line/line_count."),
    ("less ", "Use the read_file tool to read files."),
    ("more ", "Use the read_file tool to read files."),
    ("grep ", "Use the search_code tool to search file contents."),
    ("rg ", "Use the search_code tool to search file contents."),
    ("sed ", "Use the patch or edit_lines tool to edit files."),
    ("awk ", "Use the read_file or search_code tool instead of awk."),
]

_SEGMENT_SPLIT_RE = re.compile(r"&&|\|\||;")


def protected_paths(paths: list[str]) -> list[str]:
    return [p for p in paths if any(pat.search(p) for pat in PROTECTED_PATTERNS)]


def is_protected(path: str) -> bool:
    return bool(protected_paths([path]))


def blocked_command(command: str) -> tuple[str, str] | None:
    """Return (prefix, redirect) for the first blocked segment of command."""
    for segment in _SEGMENT_SPLIT_RE.split(command):
        normalized = " ".join(segment.split()) + " "
        for prefix, redirect in BLOCKED_COMMANDS:
            if normalized.startswith(prefix):
                return prefix, redirect
    return None
