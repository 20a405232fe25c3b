"""Periodic background ticker used for the recording timer and playback poller."""

from __future__ import annotations

import threading
from typing import Callable, Optional

from logger import get_logger

logger = get_logger("ticker")


class PeriodicTicker:
    """Calls ``on_tick`` every ``interval_s`` seconds on a daemon thread.

    The stop flag is checked before every reschedule, so once ``cancel`` returns
    at most the tick already in flight can still run.
    """

    def __init__(self, interval_s: float, on_tick: Callable[[], None], name: str = "ticker") -> None:
        self._interval_s = interval_s
        self._on_tick = on_tick
        self._name = name
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive() and not self._stop_event.is_set()

    def start(self) -> None:
        with self._lock:
            if self._thread is not None or self._stop_event.is_set():
                return
            self._thread = threading.Thread(target=self._run, name=self._name, daemon=True)
            self._thread.start()

    def cancel(self) -> None:
        # Never joins: the tick callback may be waiting on a lock held by the caller.
        self._stop_event.set()

    def join(self, timeout: Optional[float] = None) -> None:
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout)

    def _run(self) -> None:
        while not self._stop_event.wait(self._interval_s):
            try:
                self._on_tick()
            except Exception:
                logger.exception("%s tick failed", self._name)
        logger.debug("%s stopped", self._name)
