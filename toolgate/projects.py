"""Project toolchain detection from a file path and working-directory markers."""

import os
from dataclasses import dataclass, replace

_C_FAMILY = (".c", ".cpp", ".cc", ".cxx", ".h", ".hpp")


@dataclass(frozen=True)
class ProjectConfig:
    project_type: str
    marker_files: tuple[str, ...]
    extensions: tuple[str, ...]
    build_cmd: str | None = None
    test_cmd: str | None = None


# Order matters: CMake and Meson win over a plain Makefile for C/C++ sources.
DEFAULT_PROJECTS: tuple[ProjectConfig, ...] = (
    ProjectConfig(
        "node",
        ("package.json",),
        (".js", ".ts", ".jsx", ".tsx", ".mjs", ".cjs"),
        build_cmd="npm run build",
        test_cmd="npm test",
    ),
    ProjectConfig(
        "rust",
        ("Cargo.toml",),
        (".rs",),
        build_cmd="cargo build",
        test_cmd="cargo test",
    ),
    ProjectConfig(
        "python",
        ("pyproject.toml", "setup.py", "requirements.txt"),
        (".py",),
        build_cmd=None,
        test_cmd="pytest",
    ),
    ProjectConfig(
        "go",
        ("go.mod",),
        (".go",),
        build_cmd="go build ./...",
        test_cmd="go test ./...",
    ),
    ProjectConfig(
        "cmake",
        ("CMakeLists.txt",),
        _C_FAMILY,
        build_cmd="cmake --build build",
        test_cmd="ctest --test-dir build",
    ),
    ProjectConfig(
        "meson",
        ("meson.build",),
        _C_FAMILY,
        build_cmd="meson compile -C builddir",
        test_cmd="meson test -C builddir",
    ),
    ProjectConfig(
        "make",
        ("Makefile", "makefile", "GNUmakefile"),
        _C_FAMILY,
        build_cmd="make",
        test_cmd="make test",
    ),
)


def merge_projects(
    base: tuple[ProjectConfig, ...], overrides: dict[str, dict]
) -> tuple[ProjectConfig, ...]:
    """Apply ``[projects.<name>]`` config tables to a toolchain table.

    Known names are updated in place (keeping their priority); new names are
    appended after the built-in entries. An empty string for build_cmd or
    test_cmd disables that step.
    """
    by_name = {p.project_type: p for p in base}
    order = [p.project_type for p in base]
    for name, table in overrides.items():
        fields = {}
        if "markers" in table:
            fields["marker_files"] = tuple(table["markers"])
        if "extensions" in table:
            fields["extensions"] = tuple(table["extensions"])
        for key in ("build_cmd", "test_cmd"):
            if key in table:
                fields[key] = table[key] or None
        if name in by_name:
            by_name[name] = replace(by_name[name], **fields)
        else:
            by_name[name] = ProjectConfig(
                project_type=name,
                marker_files=fields.get("marker_files", ()),
                extensions=fields.get("extensions", ()),
                build_cmd=fields.get("build_cmd"),
                test_cmd=fields.get("test_cmd"),
            )
            order.append(name)
    return tuple(by_name[name] for name in order)


def _has_marker(config: ProjectConfig, fs) -> bool:
    return any(fs.exists(marker) for marker in config.marker_files)


def resolve(
    file_path: str, fs, projects: tuple[ProjectConfig, ...] = DEFAULT_PROJECTS
) -> ProjectConfig | None:
    """Find the toolchain for a mutated file.

    First pass: toolchains claiming the file's extension, in table order,
    whose marker exists. Second pass: any toolchain whose marker exists.
    Returns None when no marker is found, so verification is skipped.
    """
    ext = os.path.splitext(file_path)[1]
    if ext:
        for config in projects:
            if ext in config.extensions and _has_marker(config, fs):
                return config

    for config in projects:
        if _has_marker(config, fs):
            return config

    return None
