"""Tool-call guardrails for autonomous coding agents."""

from .calls import ToolCall, ToolKind, ToolResult
from .config import GuardrailConfig, build_config, load_config
from .engine import Decision, Guardrail, GuardrailState, input_gate, output_gate
from .report import ConfigError, GuardrailError, ReportCollector

__all__ = [
    "ConfigError",
    "Decision",
    "Guardrail",
    "GuardrailConfig",
    "GuardrailError",
    "GuardrailState",
    "ReportCollector",
    "ToolCall",
    "ToolKind",
    "ToolResult",
    "build_config",
    "input_gate",
    "load_config",
    "output_gate",
]
