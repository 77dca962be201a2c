"""Error types and JSON report generation for guardrail decisions."""

import json
from datetime import datetime, timezone


class GuardrailError(Exception):
    """Raised for reportable guardrail setup failures."""


class ConfigError(GuardrailError):
    """Raised for invalid configuration (bad types, unknown toolchains, etc.)."""


class ReportCollector:
    """Accumulates gate decisions and verification runs for JSON report output."""

    def __init__(self):
        self.events: list[dict] = []
        self.tool_stats: dict[str, dict[str, int]] = {}
        self.denials_by_gate: dict[str, int] = {}
        self.verifications = 0
        self.verification_failures = 0
        self.retry_resets = 0
        self.internal_faults = 0
        self.total_verify_time = 0.0
        self._last_report: dict | None = None

    def record_decision(
        self,
        name: str,
        allowed: bool,
        gate: str | None = None,
        message: str | None = None,
    ):
        stats = self.tool_stats.setdefault(name, {"allowed": 0, "denied": 0})
        if allowed:
            stats["allowed"] += 1
        else:
            stats["denied"] += 1
            self.denials_by_gate[gate or "unknown"] = (
                self.denials_by_gate.get(gate or "unknown", 0) + 1
            )
        event: dict = {"type": "decision", "name": name, "allowed": allowed}
        if gate is not None:
            event["gate"] = gate
        if message is not None:
            event["message"] = message
        self.events.append(event)

    def record_verification(
        self,
        name: str,
        project_type: str,
        succeeded: bool,
        duration: float,
        steps: list[str],
    ):
        self.verifications += 1
        if not succeeded:
            self.verification_failures += 1
        self.total_verify_time += duration
        self.events.append(
            {
                "type": "verification",
                "name": name,
                "project_type": project_type,
                "succeeded": succeeded,
                "duration_s": round(duration, 3),
                "steps": steps,
            }
        )

    def record_retry_reset(self, name: str, key: str):
        self.retry_resets += 1
        self.events.append({"type": "retry_reset", "name": name, "key": key})

    def record_fault(self, stage: str, name: str, error: str):
        self.internal_faults += 1
        self.events.append(
            {"type": "fault", "stage": stage, "name": name, "error": error}
        )

    def build_report(self) -> dict:
        allowed = sum(s["allowed"] for s in self.tool_stats.values())
        denied = sum(s["denied"] for s in self.tool_stats.values())
        return {
            "version": 1,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "stats": {
                "tool_calls_total": allowed + denied,
                "tool_calls_allowed": allowed,
                "tool_calls_denied": denied,
                "tool_calls_by_name": dict(self.tool_stats),
                "denials_by_gate": dict(self.denials_by_gate),
                "verifications": self.verifications,
                "verification_failures": self.verification_failures,
                "retry_resets": self.retry_resets,
                "internal_faults": self.internal_faults,
                "total_verify_time_s": round(self.total_verify_time, 3),
            },
            "timeline": self.events,
        }

    def write(self, path: str):
        if self._last_report is None:
            self._last_report = self.build_report()
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self._last_report, f, indent=2)
            f.write("\n")

    def finalize(self) -> dict:
        """Build the report and keep it for a later write()."""
        self._last_report = self.build_report()
        return self._last_report
