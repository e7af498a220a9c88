# src/copytrader/core/poller.py
from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Any, Callable, Optional

log = logging.getLogger("copytrader.core.poller")


class PollerState(str, Enum):
    IDLE = "IDLE"
    POLLING = "POLLING"
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"
    WAITING = "WAITING"
    STOPPED = "STOPPED"


class CopyTradePoller(threading.Thread):
    """
    Runs cycles back to back on one thread:
      IDLE -> POLLING -> SUCCESS|FAILURE -> WAITING -> POLLING ...
    The delay is counted from the end of a cycle: poll_sec after success,
    error_retry_sec after any exception. stop() is honoured between cycles;
    a running cycle is never interrupted.
    """

    def __init__(
        self,
        *,
        cycle: Callable[[], Any],
        poll_sec: float = 15.0,
        error_retry_sec: float = 45.0,
        max_cycles: Optional[int] = None,
        wait: Optional[Callable[[float], Any]] = None,
    ):
        super().__init__(daemon=True, name="CopyTradePoller")
        self.cycle = cycle
        self.poll_sec = float(poll_sec)
        self.error_retry_sec = float(error_retry_sec)
        self.max_cycles = max_cycles

        # Thread already uses the name _stop internally
        self._stop_event = threading.Event()
        self._wait = wait if wait is not None else self._stop_event.wait

        self.state = PollerState.IDLE
        self.cycles = 0
        self.failures = 0

    def stop(self) -> None:
        if not self._stop_event.is_set():
            log.info("Stop requested (state=%s)", self.state.value)
        self._stop_event.set()

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def _budget_left(self) -> bool:
        return self.max_cycles is None or self.cycles < self.max_cycles

    def run_once(self) -> float:
        """Run one cycle, return the delay before the next one."""
        self.state = PollerState.POLLING
        try:
            self.cycle()
        except Exception as e:
            self.state = PollerState.FAILURE
            self.failures += 1
            log.exception("Poll cycle failed, retry in %.0fs: %s", self.error_retry_sec, e)
            return self.error_retry_sec
        else:
            self.state = PollerState.SUCCESS
            return self.poll_sec
        finally:
            self.cycles += 1

    def run(self) -> None:
        log.info("Poller started: poll=%.0fs error_retry=%.0fs", self.poll_sec, self.error_retry_sec)

        while not self.stopped and self._budget_left():
            delay = self.run_once()

            if self.stopped or not self._budget_left():
                break

            self.state = PollerState.WAITING
            self._wait(delay)

        self.state = PollerState.STOPPED
        log.info("Poller stopped after %d cycles (%d failed)", self.cycles, self.failures)
