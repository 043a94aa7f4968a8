"""
Listen time accumulator.

Turns clock progression into seconds of actual listening for the current
session. Samples are taken on a fixed period by a background asyncio task;
a sample is only counted while the player is playing (paused samples move the
anchor forward without counting), and a gap that is not
strictly between 0 and `max_sample` seconds (sleep, clock jump, stalled loop)
is dropped.
"""

from __future__ import annotations
import asyncio
import logging
import time
from typing import Awaitable, Callable

from bluos_listenbrainz.state import TrackSession

log = logging.getLogger("accumulator")

SAMPLE_INTERVAL = 1.0
MAX_SAMPLE_SECONDS = 10.0


class ListenTimeAccumulator:
    def __init__(self, session: TrackSession, clock: Callable[[], float] = time.monotonic,
                 interval: float = SAMPLE_INTERVAL, max_sample: float = MAX_SAMPLE_SECONDS):
        self.session = session
        self.clock = clock
        self.interval = interval
        self.max_sample = max_sample
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def now(self) -> float:
        return self.clock()

    def sample(self, is_playing: bool) -> float:
        """Take one sample. Returns the seconds added to the session (0.0 if none)."""
        session = self.session
        if session.current is None:
            return 0.0

        now = self.clock()
        elapsed = now - session.last_sample_timestamp
        session.last_sample_timestamp = now
        if not is_playing:
            # Re-anchor so the first sample after a pause starts from here
            return 0.0
        if not 0 < elapsed < self.max_sample:
            log.debug("Discarding %.3fs sample for %s", elapsed, session.current.track_name)
            return 0.0

        session.listened_seconds += elapsed
        return elapsed

    def start(self, on_tick: Callable[[], Awaitable[None]]) -> None:
        """(Re)start periodic sampling; `on_tick` runs once per interval."""
        self.stop()
        self._task = asyncio.get_running_loop().create_task(self._run(on_tick))

    def stop(self) -> None:
        """Cancel periodic sampling. Safe to call when not running."""
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()

    async def _run(self, on_tick: Callable[[], Awaitable[None]]) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await on_tick()
            except Exception:
                log.exception("Listen time tick failed")
