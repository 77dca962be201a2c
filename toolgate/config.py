"""Configuration file loading and merging for toolgate.

Reads TOML config from ~/.config/toolgate/config.toml (global) and
<base_dir>/toolgate.toml (project). Precedence: overrides > project > global > defaults.
"""

import os
import sys
import tomllib
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

from .loop import (
    LOOP_COOLDOWN,
    LOOP_LOOKBACK,
    LOOP_THRESHOLD,
    LOOP_WINDOW,
    MAX_TOOL_HISTORY,
)
from .projects import DEFAULT_PROJECTS, ProjectConfig, merge_projects
from .report import ConfigError
from .verify import BUILD_OUTPUT_CHARS, TEST_OUTPUT_CHARS

MAX_VERIFY_TIMEOUT = 600


# --- Schema ---

CONFIG_KEYS: dict[str, type | tuple[type, ...]] = {
    "loop_threshold": int,
    "loop_lookback": int,
    "loop_min_history": int,
    "loop_history_size": int,
    "loop_window": (int, float),
    "loop_cooldown": (int, float),
    "max_output_retries": int,
    "auto_verify": bool,
    "verify_timeout": int,
    "build_output_chars": int,
    "test_output_chars": int,
    "allowed_commands": list,
    "allowed_commands_env": str,
    "verbose": bool,
}

_POSITIVE_KEYS = {
    "loop_threshold",
    "loop_lookback",
    "loop_history_size",
    "max_output_retries",
    "verify_timeout",
}

_PROJECT_FIELD_TYPES: dict[str, type] = {
    "markers": list,
    "extensions": list,
    "build_cmd": str,
    "test_cmd": str,
}


@dataclass
class GuardrailConfig:
    """Thresholds shared by every tool kind, plus the toolchain table."""

    loop_threshold: int = LOOP_THRESHOLD
    loop_lookback: int = LOOP_LOOKBACK
    loop_min_history: int | None = None
    loop_history_size: int = MAX_TOOL_HISTORY
    loop_window: float = LOOP_WINDOW
    loop_cooldown: float = LOOP_COOLDOWN
    max_output_retries: int = 3
    auto_verify: bool = True
    verify_timeout: int = 120
    build_output_chars: int = BUILD_OUTPUT_CHARS
    test_output_chars: int = TEST_OUTPUT_CHARS
    allowed_commands: list[str] = field(default_factory=list)
    allowed_commands_env: str | None = None
    verbose: bool = False
    projects: tuple[ProjectConfig, ...] = DEFAULT_PROJECTS

    @classmethod
    def from_dict(cls, config: dict) -> "GuardrailConfig":
        """Build from a merged config dict, ignoring keys that are not fields."""
        names = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in config.items() if k in names and k != "projects"}
        if "verify_timeout" in kwargs:
            kwargs["verify_timeout"] = max(
                1, min(kwargs["verify_timeout"], MAX_VERIFY_TIMEOUT)
            )
        projects = config.get("projects")
        if projects:
            kwargs["projects"] = merge_projects(DEFAULT_PROJECTS, projects)
        return cls(**kwargs)


# --- Internal helpers ---


def global_config_dir() -> Path:
    """Return the global config directory, respecting XDG_CONFIG_HOME."""
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "toolgate"
    return Path.home() / ".config" / "toolgate"


def _type_name(expected: type | tuple[type, ...]) -> str:
    """Format an expected type spec as a human-readable string."""
    if isinstance(expected, tuple):
        return " or ".join(t.__name__ for t in expected)
    return expected.__name__


def _validate_config(config: dict, source: str) -> None:
    """Validate types and ranges in a parsed config dict.

    Raises ConfigError for type mismatches or out-of-range values.
    Prints warnings for unknown keys.
    """
    for key, value in config.items():
        if key not in CONFIG_KEYS:
            print(f"warning: {source}: unknown config key {key!r}", file=sys.stderr)
            continue

        expected = CONFIG_KEYS[key]
        # bool is a subclass of int, reject it for numeric fields explicitly.
        if isinstance(value, bool) and expected is not bool:
            raise ConfigError(
                f"{source}: {key!r} expected {_type_name(expected)}, got bool"
            )
        if not isinstance(value, expected):
            raise ConfigError(
                f"{source}: {key!r} expected {_type_name(expected)}, got {type(value).__name__}"
            )
        if key in _POSITIVE_KEYS and value < 1:
            raise ConfigError(f"{source}: {key!r} must be >= 1, got {value}")
        if key in ("loop_window", "loop_cooldown") and value < 0:
            raise ConfigError(f"{source}: {key!r} must be >= 0, got {value}")

        if key == "allowed_commands":
            for i, elem in enumerate(value):
                if not isinstance(elem, str):
                    raise ConfigError(
                        f"{source}: {key}[{i}]: expected string, got {type(elem).__name__}"
                    )


def _validate_projects(projects: Any, source: str) -> None:
    """Validate ``[projects.<name>]`` tables."""
    if not isinstance(projects, dict):
        raise ConfigError(f"{source}: 'projects' must be a table")
    for name, table in projects.items():
        prefix = f"{source}: projects.{name}"
        if not isinstance(table, dict):
            raise ConfigError(f"{prefix} must be a table")
        for key, value in table.items():
            expected = _PROJECT_FIELD_TYPES.get(key)
            if expected is None:
                print(f"warning: {prefix}: unknown key {key!r}", file=sys.stderr)
                continue
            if not isinstance(value, expected):
                raise ConfigError(
                    f"{prefix}.{key}: expected {expected.__name__}, "
                    f"got {type(value).__name__}"
                )
            if expected is list:
                for i, elem in enumerate(value):
                    if not isinstance(elem, str):
                        raise ConfigError(
                            f"{prefix}.{key}[{i}]: expected string, "
                            f"got {type(elem).__name__}"
                        )


def _load_single(path: Path, label: str) -> dict:
    """Load and validate a single TOML config file. Returns empty dict if missing."""
    if not path.is_file():
        return {}
    try:
        with open(path, "rb") as f:
            config = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"{label}: invalid TOML: {e}") from e

    # projects is a nested table, validated on its own
    projects = config.pop("projects", None)

    _validate_config(config, label)
    known = {k: v for k, v in config.items() if k in CONFIG_KEYS}

    if projects is not None:
        _validate_projects(projects, label)
        known["projects"] = projects

    return known


def merge_project_tables(
    global_projects: dict | None, project_projects: dict | None
) -> dict:
    """Merge ``projects`` tables by toolchain name; the project file wins per field."""
    merged: dict[str, dict] = {}
    for tables in (global_projects, project_projects):
        for name, table in (tables or {}).items():
            merged.setdefault(name, {}).update(table)
    return merged


# --- Public API ---


def load_config(base_dir: str | Path) -> dict:
    """Load and merge global + project config.

    Returns a flat dict with config-canonical keys. Only keys that were
    actually set in config files are included (no defaults injected).
    """
    config_dir = global_config_dir()
    global_path = config_dir / "config.toml"
    global_config = _load_single(global_path, str(global_path))

    project_path = Path(base_dir).resolve() / "toolgate.toml"
    project_config = _load_single(project_path, str(project_path))

    global_projects = global_config.pop("projects", None)
    project_projects = project_config.pop("projects", None)
    merged = {**global_config, **project_config}

    projects = merge_project_tables(global_projects, project_projects)
    if projects:
        merged["projects"] = projects

    return merged


def build_config(base_dir: str | Path, **overrides) -> GuardrailConfig:
    """Load config files and apply explicit overrides on top."""
    config = load_config(base_dir)
    for key, value in overrides.items():
        if value is not None:
            config[key] = value
    return GuardrailConfig.from_dict(config)


def generate_config(project: bool = False) -> str:
    """Return a commented-out template config string."""
    lines = [
        "# toolgate configuration file",
        f"# {'Project' if project else 'Global'} config: "
        f"{'<project>/toolgate.toml' if project else '~/.config/toolgate/config.toml'}",
        "#",
        "# Only uncomment what you need.",
        "",
        "# --- Loop detection ---",
        f"# loop_threshold = {LOOP_THRESHOLD}        # repeats of one intent that count as a loop",
        f"# loop_lookback = {LOOP_LOOKBACK}         # most recent calls inspected",
        f"# loop_history_size = {MAX_TOOL_HISTORY}",
        f"# loop_window = {LOOP_WINDOW:g}          # seconds; older calls do not count",
        f"# loop_cooldown = {LOOP_COOLDOWN:g}        # seconds other calls pass after a block",
        "",
        "# --- Auto-verification ---",
        "# auto_verify = true",
        "# verify_timeout = 120",
        "# max_output_retries = 3",
        f"# build_output_chars = {BUILD_OUTPUT_CHARS}",
        f"# test_output_chars = {TEST_OUTPUT_CHARS}",
        '# allowed_commands = ["make"]',
        '# allowed_commands_env = "TOOLGATE_ALLOWED_COMMANDS"',
        "",
        "# --- Toolchains ---",
        "# [projects.python]",
        '# test_cmd = "pytest -x -q"',
        "",
        "# [projects.zig]",
        '# markers = ["build.zig"]',
        '# extensions = [".zig"]',
        '# build_cmd = "zig build"',
        '# test_cmd = "zig build test"',
        "",
        "# --- UI ---",
        "# verbose = false",
        "",
    ]
    return "\n".join(lines)
