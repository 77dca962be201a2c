"""ANSI-formatted stderr output using Rich."""

from rich.console import Console
from rich.text import Text

_console = Console(stderr=True)


def init(*, color: bool = False, no_color: bool = False) -> None:
    """Reconfigure the module-level console.

    Call once at startup, before any output.
    """
    global _console
    kwargs: dict = {"stderr": True}
    if color:
        kwargs["force_terminal"] = True
        kwargs["no_color"] = False
    if no_color:
        kwargs["no_color"] = True
    _console = Console(**kwargs)


# -- Gate decisions ----------------------------------------------------------


def denial(tool_name: str, gate: str, message: str) -> None:
    header = Text()
    header.append("  \u2717 Guardrail: ", style="bold red")
    header.append(f"{tool_name} denied by {gate}", style="red")
    _console.print(header)
    first_line = message.split("\n", 1)[0]
    _console.print(Text(f"    {first_line}", style="dim"))


def snapshot_invalidated(path: str) -> None:
    _console.print(
        Text(f"  [snapshot] {path} invalidated, re-read required", style="yellow")
    )


# -- Verification ------------------------------------------------------------


def verify_start(project_type: str, command: str) -> None:
    line = Text()
    line.append(f"  \u25b6 verify [{project_type}] ", style="bold magenta")
    line.append(command, style="magenta")
    _console.print(line)


def verify_result(project_type: str, succeeded: bool, elapsed: float) -> None:
    if succeeded:
        _console.print(
            Text(
                f"  \u2713 verify [{project_type}] passed  {elapsed:.1f}s",
                style="green",
            )
        )
    else:
        _console.print(
            Text(
                f"  \u2717 verify [{project_type}] failed  {elapsed:.1f}s",
                style="bold red",
            )
        )


def retry_reset(tool_name: str, limit: int) -> None:
    line = Text()
    line.append("  \u26a0 Guardrail: ", style="bold yellow")
    line.append(
        f"{tool_name} hit {limit} verification overrides, passing result through",
        style="yellow",
    )
    _console.print(line)


# -- Diagnostics -------------------------------------------------------------


def warning(msg: str) -> None:
    line = Text()
    line.append("  \u26a0 Warning: ", style="yellow")
    line.append(msg, style="yellow")
    _console.print(line)
