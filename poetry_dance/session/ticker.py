"""
Ticker - Session Module
Minimum-interval gate for the per-frame callback.

The host calls ready(now) as often as it likes (every animation frame, every
camera frame); only calls at least `min_interval_ms` after the last accepted
tick pass. Skipped calls are dropped, never queued or caught up.
"""

from typing import Optional


class Ticker:

    def __init__(self, min_interval_ms: float = 120):
        self.min_interval_ms = min_interval_ms
        self.active = True
        self.last_tick: Optional[float] = None
        self.ticks = 0
        self.skipped = 0

    def ready(self, now: float) -> bool:
        if not self.active:
            return False
        if self.last_tick is not None and now - self.last_tick < self.min_interval_ms:
            self.skipped += 1
            return False
        self.last_tick = now
        self.ticks += 1
        return True

    def cancel(self):
        self.active = False

    def reset(self):
        self.active = True
        self.last_tick = None
        self.ticks = 0
        self.skipped = 0
