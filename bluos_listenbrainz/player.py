"""Media player seam: the state the tracker reads and the events it listens to."""

from dataclasses import dataclass
from typing import Awaitable, Callable, Protocol

PLAYBACK_STATE_DID_CHANGE = "playbackStateDidChange"
MEDIA_ITEM_STATE_DID_CHANGE = "mediaItemStateDidChange"

EventCallback = Callable[[], Awaitable[None]]


@dataclass(frozen=True)
class MediaItem:
    id: str
    name: str | None
    artist_name: str | None
    album_name: str | None
    duration_ms: int  # 0 when unknown
    isrc: str | None = None
    track_number: int | None = None


class MediaPlayer(Protocol):
    """What the tracker needs from a player.

    Events carry no payload; handlers re-read the properties below when they run.
    """

    @property
    def now_playing_item(self) -> MediaItem | None: ...

    @property
    def is_playing(self) -> bool: ...

    @property
    def has_next_item(self) -> bool: ...

    def add_event_listener(self, event: str, callback: EventCallback) -> None: ...
