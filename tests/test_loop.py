"""Tests for the rolling-window loop detector."""

from toolgate.loop import LoopDetector


class FakeClock:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def _write(path="a.ts", content="x"):
    return "write_file", {"path": path, "content": content}


def test_fourth_identical_call_is_a_loop():
    clock = FakeClock()
    det = LoopDetector(clock=clock)
    results = []
    for i in range(4):
        results.append(det.check(*_write(content=str(i))))
        clock.advance(1)
    assert results[:3] == [None, None, None]
    assert results[3] is not None
    assert det.history[-1].was_blocked


def test_later_calls_stay_denied():
    clock = FakeClock()
    det = LoopDetector(clock=clock)
    for _ in range(3):
        det.check(*_write())
        clock.advance(1)
    for _ in range(3):
        assert det.check(*_write()) is not None
        clock.advance(1)


def test_calls_spread_beyond_window_allowed():
    clock = FakeClock()
    det = LoopDetector(clock=clock)
    for _ in range(4):
        assert det.check(*_write()) is None
        clock.advance(40)


def test_read_file_never_tracked():
    det = LoopDetector(clock=FakeClock())
    for _ in range(20):
        assert det.check("read_file", {"path": "a.ts"}) is None
    assert len(det.history) == 0


def test_history_capacity_fifo():
    clock = FakeClock()
    det = LoopDetector(capacity=5, clock=clock)
    for i in range(12):
        det.check("write_file", {"path": f"f{i}.ts"})
        clock.advance(1)
    assert len(det.history) == 5
    assert '"f7.ts"' in det.history[0].signature
    assert '"f11.ts"' in det.history[-1].signature


def test_min_history_required():
    clock = FakeClock()
    det = LoopDetector(min_history=6, clock=clock)
    results = [det.check(*_write()) for _ in range(5)]
    assert results == [None] * 5
    assert det.check(*_write()) is not None


def test_only_lookback_entries_count():
    clock = FakeClock()
    det = LoopDetector(lookback=6, clock=clock)
    for _ in range(3):
        det.check(*_write())
    for i in range(3):
        det.check("write_file", {"path": f"other{i}.ts"})
    # a.ts x3 + others x3 in the last 6; one more a.ts pushes one a.ts out
    assert det.check(*_write()) is None


def test_cooldown_lets_different_calls_through():
    clock = FakeClock()
    det = LoopDetector(clock=clock)
    for _ in range(4):
        det.check(*_write())
    assert det.history[-1].was_blocked
    size = len(det.history)

    clock.advance(2)
    assert det.check("write_file", {"path": "b.ts"}) is None
    assert len(det.history) == size  # passed unrecorded


def test_cooldown_does_not_cover_blocked_signature():
    clock = FakeClock()
    det = LoopDetector(clock=clock)
    for _ in range(4):
        det.check(*_write())
    clock.advance(2)
    assert det.check(*_write()) is not None


def test_after_cooldown_other_calls_are_evaluated():
    clock = FakeClock()
    det = LoopDetector(clock=clock)
    for _ in range(4):
        det.check(*_write())
    clock.advance(11)
    # a.ts still dominates the recent window
    assert det.check("write_file", {"path": "b.ts"}) is not None


def test_reset_clears_history():
    det = LoopDetector(clock=FakeClock())
    det.check(*_write())
    det.reset()
    assert len(det.history) == 0


def test_blocked_entry_remembers_looping_signature():
    clock = FakeClock()
    det = LoopDetector(clock=clock)
    for _ in range(4):
        looping = det.check(*_write())
    clock.advance(11)
    # a.ts still dominates the window, so b.ts is blocked on its behalf
    assert det.check("write_file", {"path": "b.ts"}) == looping
    assert det.history[-1].blocked_signature == looping


def test_interleaved_call_does_not_open_cooldown_for_looping_call():
    clock = FakeClock()
    det = LoopDetector(clock=clock)
    for _ in range(4):
        det.check(*_write())
    clock.advance(11)
    det.check("write_file", {"path": "b.ts"})
    size = len(det.history)

    for i in range(6):
        clock.advance(1)
        assert det.check(*_write()) is not None
        assert len(det.history) == size + i + 1
