from __future__ import annotations

import time
from typing import Callable

CHECK_INTERVAL = 0.05

class Deadline:
    """Cooperative wall-clock budget for a sampling loop.

    Reading the clock costs more than a cheap loop iteration, so ``check`` only
    consults it once every ``frequency`` calls. After each consultation the
    frequency doubles if less than ``interval`` seconds passed since the
    previous one and halves (down to 1) otherwise, which settles at roughly
    one clock read per interval.
    """

    def __init__(self, budget: float, interval: float = CHECK_INTERVAL, clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self.budget = budget
        self.interval = interval
        self.start = clock()
        self.last_check = self.start
        self.frequency = 1
        self.current = 0

    def elapsed(self) -> float:
        return self.clock() - self.start

    def check(self) -> bool:
        """Return True once the budget has run out."""
        self.current += 1
        if self.current <= self.frequency:
            return False
        self.current = 0
        now = self.clock()
        if now - self.last_check > self.interval:
            self.frequency = max(1, self.frequency // 2)
        else:
            self.frequency *= 2
        self.last_check = now
        return now - self.start > self.budget
