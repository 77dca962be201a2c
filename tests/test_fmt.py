"""Tests for the fmt module (stderr status lines)."""

from io import StringIO

from rich.console import Console

from toolgate import fmt


def _capture(func, *args, **kwargs):
    """Call a fmt function with a captured console and return plain-text output."""
    buf = StringIO()
    old = fmt._console
    fmt._console = Console(file=buf, no_color=True, width=80)
    try:
        func(*args, **kwargs)
    finally:
        fmt._console = old
    return buf.getvalue()


class TestDenial:
    def test_names_tool_and_gate(self):
        out = _capture(fmt.denial, "run_cmd", "shell_filter", "BLOCKED COMMAND: 'ls'")
        assert "run_cmd denied by shell_filter" in out
        assert "BLOCKED COMMAND: 'ls'" in out

    def test_only_first_message_line(self):
        out = _capture(fmt.denial, "patch", "stale_context", "SAFETY BLOCK: a.py\n\nmore")
        assert "SAFETY BLOCK: a.py" in out
        assert "more" not in out


class TestVerify:
    def test_start(self):
        out = _capture(fmt.verify_start, "rust", "cargo build")
        assert "verify [rust] cargo build" in out

    def test_passed(self):
        out = _capture(fmt.verify_result, "python", True, 1.26)
        assert "verify [python] passed" in out
        assert "1.3s" in out

    def test_failed(self):
        out = _capture(fmt.verify_result, "go", False, 0.4)
        assert "verify [go] failed" in out


def test_snapshot_invalidated():
    out = _capture(fmt.snapshot_invalidated, "src/a.py")
    assert "src/a.py invalidated" in out


def test_retry_reset():
    out = _capture(fmt.retry_reset, "write_file", 3)
    assert "write_file hit 3 verification overrides" in out


class TestDiagnostics:
    def test_warning(self):
        out = _capture(fmt.warning, "slow build")
        assert "Warning: slow build" in out

    def test_markup_not_interpreted(self):
        out = _capture(fmt.warning, "[bold]literal[/bold]")
        assert "[bold]literal[/bold]" in out
