from __future__ import annotations

import threading
import time

from ticker import PeriodicTicker


def test_ticks_until_cancelled() -> None:
    ticks: list[int] = []
    reached = threading.Event()

    def on_tick() -> None:
        ticks.append(1)
        if len(ticks) >= 3:
            reached.set()

    ticker = PeriodicTicker(0.01, on_tick, name="test")
    ticker.start()
    assert reached.wait(timeout=2.0)
    ticker.cancel()
    ticker.join(timeout=2.0)

    count = len(ticks)
    assert ticker.running is False
    time.sleep(0.05)
    assert len(ticks) == count


def test_cancel_before_start_never_ticks() -> None:
    ticks: list[int] = []
    ticker = PeriodicTicker(0.01, lambda: ticks.append(1))
    ticker.cancel()
    ticker.start()
    ticker.join(timeout=0.5)
    assert ticks == []
    assert ticker.running is False


def test_failing_tick_keeps_loop_alive() -> None:
    calls: list[int] = []
    done = threading.Event()

    def on_tick() -> None:
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("boom")
        done.set()

    ticker = PeriodicTicker(0.01, on_tick)
    ticker.start()
    assert done.wait(timeout=2.0)
    ticker.cancel()
    ticker.join(timeout=2.0)


def test_start_twice_spawns_one_thread() -> None:
    ticker = PeriodicTicker(10.0, lambda: None, name="once")
    ticker.start()
    first = ticker._thread
    ticker.start()
    assert ticker._thread is first
    assert ticker.running is True
    ticker.cancel()
    ticker.join(timeout=2.0)
