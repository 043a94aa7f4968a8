"""
ScrobbleTracker: turns player events and listen-time ticks into ListenBrainz submissions.

Everything runs on one asyncio loop. Handlers update the TrackSession
synchronously before their first await and build submissions from the
snapshot they captured, so a duplicate event arriving while a request is in
flight sees a consistent session.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable

from bluos_listenbrainz.accumulator import ListenTimeAccumulator
from bluos_listenbrainz.config import ConfigProvider, ScrobbleConfig
from bluos_listenbrainz.listenbrainz_client import (
    ListenBrainzAuthError, ListenBrainzClient, ListenBrainzError,
)
from bluos_listenbrainz.player import (
    MEDIA_ITEM_STATE_DID_CHANGE, PLAYBACK_STATE_DID_CHANGE, MediaPlayer,
)
from bluos_listenbrainz.state import SessionSummary, TrackSession, TrackSnapshot, should_scrobble

log = logging.getLogger("tracker")


class ScrobbleTracker:
    def __init__(self, player: MediaPlayer, config: ConfigProvider, client: ListenBrainzClient,
                 accumulator: ListenTimeAccumulator | None = None,
                 clock: Callable[[], float] = time.time):
        self.player = player
        self.config = config
        self.client = client
        self.session = accumulator.session if accumulator else TrackSession()
        self.accumulator = accumulator or ListenTimeAccumulator(self.session)
        self.clock = clock
        self._pending: set[asyncio.Future[object]] = set()

    def attach(self) -> None:
        self.player.add_event_listener(MEDIA_ITEM_STATE_DID_CHANGE, self.on_media_item_state_did_change)
        self.player.add_event_listener(PLAYBACK_STATE_DID_CHANGE, self.on_playback_state_did_change)

    # -------- events --------
    async def on_media_item_state_did_change(self) -> None:
        cfg = self.config()
        if not cfg.enabled:
            return

        item = self.player.now_playing_item
        if item is None:
            # Fires mid-transition before the next item is set; only act at end of queue
            if not self.player.has_next_item:
                await self._finish_queue(cfg)
            return
        if self.session.is_current(item.id):
            return

        track = TrackSnapshot.from_item(item, listened_at=int(self.clock()))
        outgoing = self.session.begin(track, sample_timestamp=self.accumulator.now())
        self.accumulator.start(self.tick)

        if outgoing is not None:
            self._flush(outgoing, cfg)
        log.info("Now playing: %s — %s", track.artist_name, track.track_name)
        self._spawn(self._send_playing_now(track, cfg))

    async def on_playback_state_did_change(self) -> None:
        cfg = self.config()
        if not cfg.enabled:
            return
        if self.player.now_playing_item is None and not self.player.has_next_item:
            await self._finish_queue(cfg)

    async def tick(self) -> None:
        """One accumulator period: count listened time, scrobble once the threshold is met."""
        cfg = self.config()
        if not cfg.enabled:
            return

        self.accumulator.sample(self.player.is_playing)
        track = self.session.current
        if track is None or self.session.has_scrobbled:
            return
        listened = self.session.listened_seconds
        if not should_scrobble(track, listened, cfg):
            return

        # The latch guards the next ticks while the request runs in the background
        self.session.claim(track)
        self._spawn(self._scrobble_current(track, listened, cfg))

    # -------- lifecycle --------
    async def drain(self) -> None:
        """Wait for submissions still in flight."""
        while self._pending:
            pending = list(self._pending)
            await asyncio.gather(*pending, return_exceptions=True)
            self._pending.difference_update(pending)

    async def close(self) -> None:
        self.accumulator.stop()
        await self.drain()

    # -------- internals --------
    async def _finish_queue(self, cfg: ScrobbleConfig) -> None:
        # Clear before any await: the player fires this several times in a row
        outgoing = self.session.clear()
        self.accumulator.stop()
        if outgoing is not None:
            log.info("Queue ended after %s", outgoing.track.track_name)
            self._flush(outgoing, cfg)

    def _flush(self, outgoing: SessionSummary, cfg: ScrobbleConfig) -> None:
        track, listened = outgoing.track, outgoing.listened_seconds
        if outgoing.has_scrobbled:
            log.info("Already scrobbled: %s", track.track_name)
        elif should_scrobble(track, listened, cfg):
            self._spawn(self._send_listen(track, listened, cfg))
        else:
            log.info("Not scrobbled: %s (%ds listened, not enough)", track.track_name, int(listened))

    async def _send_listen(self, track: TrackSnapshot, listened: float,
                           cfg: ScrobbleConfig) -> ListenBrainzError | None:
        try:
            await asyncio.to_thread(self.client.submit_listen, track, listened, cfg)
        except ListenBrainzError as e:
            log.warning("Listen submission failed for %s: %s", track.track_name, e)
            return e
        log.info("Scrobbled: %s — %s (%ds listened)", track.artist_name, track.track_name, int(listened))
        return None

    async def _scrobble_current(self, track: TrackSnapshot, listened: float, cfg: ScrobbleConfig) -> None:
        error = await self._send_listen(track, listened, cfg)
        if isinstance(error, ListenBrainzAuthError):
            # Keep the latch: every later tick would be rejected the same way
            log.error("Listen for %s rejected; not retrying this track", track.track_name)
        elif error is not None:
            self.session.release(track)

    async def _send_playing_now(self, track: TrackSnapshot, cfg: ScrobbleConfig) -> None:
        await asyncio.to_thread(self.client.submit_playing_now, track, cfg)

    def _spawn(self, coro: Awaitable[object]) -> None:
        task = asyncio.ensure_future(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
