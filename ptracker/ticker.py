"""Periodic re-evaluation of derived state.

Nothing pushes changes to the tracker, so the elapsed-time display and the
"scheduled now" lookup are recomputed on a timer instead.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence

# Staleness bounds for the tracker display
ELAPSED_INTERVAL = 1.0
SCHEDULE_INTERVAL = 60.0


class Ticker:
    """Calls ``callback`` whenever at least ``interval`` seconds have passed.

    The first ``poll()`` always fires.
    """

    def __init__(
        self,
        interval: float,
        callback: Callable[[], None],
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.interval = interval
        self.callback = callback
        self._clock = clock
        self._last: float | None = None

    def poll(self) -> bool:
        """Fire if due. Returns True if the callback ran."""
        now = self._clock()
        if self._last is not None and now - self._last < self.interval:
            return False
        self._last = now
        self.callback()
        return True

    def seconds_until_due(self) -> float:
        if self._last is None:
            return 0.0
        return max(0.0, self._last + self.interval - self._clock())


def run(
    tickers: Sequence[Ticker],
    should_continue: Callable[[], bool],
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    """Poll ``tickers`` until ``should_continue`` returns False.

    Sleeps until the next ticker is due between rounds.
    """
    while should_continue():
        for ticker in tickers:
            ticker.poll()
        if not tickers:
            return
        sleep(min(ticker.seconds_until_due() for ticker in tickers))
