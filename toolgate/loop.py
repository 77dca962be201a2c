"""Loop detection over a rolling history of call signatures."""

import time
from collections import Counter, deque
from dataclasses import dataclass
from typing import Callable

from .calls import ToolKind, signature, tool_kind

MAX_TOOL_HISTORY = 20
LOOP_LOOKBACK = 6
LOOP_THRESHOLD = 4
LOOP_WINDOW = 30.0  # seconds
LOOP_COOLDOWN = 10.0  # seconds


@dataclass
class HistoryEntry:
    signature: str
    timestamp: float
    was_blocked: bool = False
    blocked_signature: str | None = None


class LoopDetector:
    """Flags bursts of calls that share the same intent.

    A call is a loop when its signature (or any other) occurs at least
    ``threshold`` times among the last ``lookback`` entries that are younger
    than ``window`` seconds. After a block, calls whose signature differs
    from the looping one pass unrecorded for ``cooldown`` seconds so the
    agent can change course; repeating the looping signature is still
    evaluated.
    """

    def __init__(
        self,
        *,
        capacity: int = MAX_TOOL_HISTORY,
        lookback: int = LOOP_LOOKBACK,
        threshold: int = LOOP_THRESHOLD,
        min_history: int | None = None,
        window: float = LOOP_WINDOW,
        cooldown: float = LOOP_COOLDOWN,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.capacity = capacity
        self.lookback = lookback
        self.threshold = threshold
        self.min_history = threshold if min_history is None else min_history
        self.window = window
        self.cooldown = cooldown
        self.clock = clock
        self.history: deque[HistoryEntry] = deque()

    def _last_blocked(self) -> HistoryEntry | None:
        for entry in reversed(self.history):
            if entry.was_blocked:
                return entry
        return None

    def check(self, name: str, args: dict) -> str | None:
        """Record the call and return the looping signature, or None if allowed."""
        if tool_kind(name) is ToolKind.READ:
            return None

        now = self.clock()
        sig = signature(name, args)

        blocked = self._last_blocked()
        if (
            blocked is not None
            and now - blocked.timestamp < self.cooldown
            and blocked.blocked_signature != sig
        ):
            return None

        entry = HistoryEntry(signature=sig, timestamp=now)
        self.history.append(entry)
        while len(self.history) > self.capacity:
            self.history.popleft()

        if len(self.history) < self.min_history:
            return None

        recent = list(self.history)[-self.lookback :]
        recent = [e for e in recent if now - e.timestamp <= self.window]
        counts = Counter(e.signature for e in recent)
        looping, count = counts.most_common(1)[0] if counts else ("", 0)
        if count >= self.threshold:
            entry.was_blocked = True
            entry.blocked_signature = looping
            return looping
        return None

    def reset(self) -> None:
        self.history.clear()
