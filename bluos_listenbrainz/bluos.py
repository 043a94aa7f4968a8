import asyncio
import hashlib
import logging
import xml.etree.ElementTree as ET
from collections import defaultdict
from dataclasses import dataclass

import requests

from bluos_listenbrainz.player import (
    MEDIA_ITEM_STATE_DID_CHANGE, PLAYBACK_STATE_DID_CHANGE, EventCallback, MediaItem,
)

log = logging.getLogger("bluos")


@dataclass
class BluOSStatus:
    title: str | None
    artist: str | None
    album: str | None
    duration: int | None  # seconds
    secs: int | None      # elapsed seconds
    state: str | None     # 'play', 'pause', 'stop', 'stream', 'connecting'
    song_id: str | None = None

    @property
    def is_playing(self) -> bool:
        return self.state in ("play", "stream")

    @property
    def is_stopped(self) -> bool:
        return self.state in (None, "stop")

    def item_id(self) -> str:
        if self.song_id:
            return self.song_id
        # No id from the device: derive a stable one from the metadata
        key = "\x1f".join(str(v) for v in (self.artist, self.title, self.album, self.duration))
        return hashlib.sha1(key.encode("utf-8")).hexdigest()[:16]

    def to_media_item(self) -> MediaItem | None:
        if self.is_stopped or not self.title:
            return None
        return MediaItem(
            id=self.item_id(),
            name=self.title,
            artist_name=self.artist,
            album_name=self.album,
            duration_ms=(self.duration or 0) * 1000,
        )


class BluOSClient:
    """
    Minimal BluOS client that fetches and parses /Status (XML).
    Uses recursive lookup + tag fallbacks: name/title1, artist, album, secs, totlen, state.
    """
    def __init__(self, host: str, port: int = 11000, timeout: int = 5,
                 session: requests.Session | None = None):
        self.base = f"http://{host}:{port}"
        self.timeout = timeout
        self.session = session or requests.Session()

    def _findtext_any(self, root: ET.Element, *tags: str):
        for t in tags:
            el = root.find(f".//{t}")
            if el is not None and el.text:
                return el.text.strip()
        return None

    def _to_int(self, s):
        if s is None: return None
        try:
            return int(float(s))
        except ValueError:
            return None

    def parse_status(self, text: str) -> BluOSStatus | None:
        try:
            root = ET.fromstring(text)
        except ET.ParseError as e:
            log.debug("Unparsable /Status XML: %s", e)
            return None

        # title appears as <name> and also as <title1>
        title  = self._findtext_any(root, "name", "title1", "title")
        artist = self._findtext_any(root, "artist", "title2")
        album  = self._findtext_any(root, "album", "title3")

        secs     = self._findtext_any(root, "secs", "elapsed", "position", "time")
        duration = self._findtext_any(root, "totlen", "duration", "total", "trackLength", "length")

        state = self._findtext_any(root, "state", "status", "mode")
        state = state.lower() if state else None

        return BluOSStatus(
            title=title,
            artist=artist,
            album=album,
            duration=self._to_int(duration),
            secs=self._to_int(secs),
            state=state,
            song_id=self._findtext_any(root, "songid", "song_id", "trackid"),
        )

    def get_status(self) -> BluOSStatus | None:
        try:
            resp = self.session.get(f"{self.base}/Status", timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as e:
            log.debug("BluOS status fetch failed: %s", e)
            return None
        return self.parse_status(resp.text)


class BluOSPlayer:
    """MediaPlayer backed by polling a BluOS device.

    Fires mediaItemStateDidChange when the playing item changes and
    playbackStateDidChange when the transport state changes. BluOS has no
    visible queue, so 'stop' is read as the end of the queue.
    """

    def __init__(self, client: BluOSClient, poll_interval: float = 3):
        self.client = client
        self.poll_interval = poll_interval
        self.status: BluOSStatus | None = None
        self._listeners: dict[str, list[EventCallback]] = defaultdict(list)

    @property
    def now_playing_item(self) -> MediaItem | None:
        return self.status.to_media_item() if self.status else None

    @property
    def is_playing(self) -> bool:
        return self.status is not None and self.status.is_playing

    @property
    def has_next_item(self) -> bool:
        return self.status is not None and not self.status.is_stopped

    def add_event_listener(self, event: str, callback: EventCallback) -> None:
        self._listeners[event].append(callback)

    async def _dispatch(self, event: str) -> None:
        for callback in list(self._listeners[event]):
            await callback()

    async def poll_once(self) -> None:
        status = await asyncio.to_thread(self.client.get_status)
        if status is None:
            log.debug("Parsed: status=None (unreachable or XML parse failed)")
            return
        log.debug("Parsed: state=%s artist=%s title=%s album=%s elapsed=%s duration=%s",
                  status.state, status.artist, status.title, status.album, status.secs, status.duration)

        previous, self.status = self.status, status
        old_item = previous.to_media_item() if previous else None
        new_item = status.to_media_item()
        old_id = old_item.id if old_item else None
        new_id = new_item.id if new_item else None

        if new_id != old_id:
            await self._dispatch(MEDIA_ITEM_STATE_DID_CHANGE)
        if previous is None or previous.state != status.state:
            await self._dispatch(PLAYBACK_STATE_DID_CHANGE)

    async def run(self) -> None:
        log.info("Polling BluOS device at %s every %ss", self.client.base, self.poll_interval)
        while True:
            await self.poll_once()
            await asyncio.sleep(self.poll_interval)
