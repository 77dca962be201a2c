"""Tests for protected-path and blocked-shell-command gates."""

import pytest

from toolgate.policy import blocked_command, is_protected, protected_paths


@pytest.mark.parametrize(
    "path",
    [
        ".env",
        "/srv/app/.env",
        "config/.env.local",
        "C:\\proj\\.env.production",
        "/home/u/.ssh/id_rsa",
        "keys/id_rsa.pub",
        "id_ed25519",
        "certs/server.pem",
        "secrets.json",
        "deploy/secret.yaml",
        "conf/Secrets.YML",
        ".git/config",
        "repo/.git/HEAD",
        "repo\\.git\\index",
    ],
)
def test_protected(path):
    assert is_protected(path)


@pytest.mark.parametrize(
    "path",
    [
        "my.environment.ts",
        "src/env.py",
        ".envrc.example/readme.md",
        "docs/pem-format.md",
        "mysecrets.json",
        ".gitignore",
        ".github/workflows/ci.yml",
        "src/app.py",
    ],
)
def test_not_protected(path):
    assert not is_protected(path)


def test_protected_paths_filters_list():
    assert protected_paths(["a.py", ".env", "b/.git/x"]) == [".env", "b/.git/x"]


@pytest.mark.parametrize(
    "command, tool",
    [
        ("ls -la", "list_files"),
        ("ls", "list_files"),
        ("cat README.md", "read_file"),
        ("grep -rn foo src", "search_code"),
        ("sed -i s/a/b/ f.py", "edit_lines"),
        ("rm -rf build", "delete_file"),
        ("  rm   -rf  /", "delete_file"),
        ("git status", "git tool"),
    ],
)
def test_blocked_commands_name_builtin(command, tool):
    match = blocked_command(command)
    assert match is not None
    assert tool in match[1]


@pytest.mark.parametrize(
    "command",
    [
        "lsof -i",
        "catkin build",
        "grepper",
        "make test",
        "npm test",
        "rm file.txt",
        "git commit -m wip",
        "",
    ],
)
def test_allowed_commands(command):
    assert blocked_command(command) is None


def test_chained_segments_checked():
    assert blocked_command("make && cat out.log") is not None
    assert blocked_command("cd src; ls") is not None
    assert blocked_command("false || rm -rf tmp") is not None


def test_pipe_filter_allowed():
    assert blocked_command("make 2>&1 | tee build.log") is None


def test_longest_prefix_wins():
    prefix, _ = blocked_command("rm -rf dist")
    assert prefix == "rm -rf "
