# politeness.py — per-host request spacing
"""
Blocking per-host rate limiter.

Every host gets at least ``BASE_MIN_INTERVAL`` between request attempts; a
crawl-delay hint reported by the fetcher can only raise that interval.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

log = logging.getLogger(__name__)

BASE_MIN_INTERVAL = 0.150          # seconds, applied even without a hint


@dataclass
class HostState:
    last_request: Optional[float] = None
    min_interval: float = BASE_MIN_INTERVAL


class PolitenessController:
    """Owns the per-host state for one crawl. Not thread-safe."""

    def __init__(self,
                 clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], None] = time.sleep,
                 base_interval: float = BASE_MIN_INTERVAL) -> None:
        self._clock = clock
        self._sleep = sleep
        self.base_interval = base_interval
        self.hosts: Dict[str, HostState] = {}

    def _state(self, host: str) -> HostState:
        state = self.hosts.get(host)
        if state is None:
            state = self.hosts[host] = HostState(min_interval=self.base_interval)
        return state

    def min_interval(self, host: str) -> float:
        return self._state(host).min_interval

    def before_request(self, host: str) -> float:
        """
        Block until `host` may be contacted again, then stamp the attempt.
        Returns the number of seconds slept.
        """
        state = self._state(host)
        waited = 0.0
        if state.last_request is not None:
            elapsed = self._clock() - state.last_request
            if elapsed < state.min_interval:
                waited = state.min_interval - elapsed
                log.debug("politeness: waiting %.3fs for %s", waited, host)
                self._sleep(waited)
        state.last_request = self._clock()
        return waited

    def record_request(self, host: str, observed_delay: float = 0.0) -> None:
        """Raise the host's interval after any attempt, successful or not."""
        state = self._state(host)
        updated = max(state.min_interval, observed_delay or 0.0, self.base_interval)
        if updated > state.min_interval:
            log.debug("politeness: %s interval %.3fs -> %.3fs",
                      host, state.min_interval, updated)
        state.min_interval = updated
