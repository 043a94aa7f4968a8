from dataclasses import dataclass

from bluos_listenbrainz.config import ScrobbleConfig, ScrobbleMode
from bluos_listenbrainz.player import MediaItem

# Threshold used when the configured mode is not one we know
DEFAULT_REQUIRED_SECONDS = 30.0


# -------------------------
# Immutable view of the tracked track
# -------------------------
@dataclass(frozen=True)
class TrackSnapshot:
    id: str
    duration_ms: int
    artist_name: str | None
    track_name: str | None
    album_name: str | None
    listened_at: int  # epoch seconds when the track became current
    isrc: str | None = None
    track_number: int | None = None

    @property
    def duration_seconds(self) -> float:
        return self.duration_ms / 1000

    @classmethod
    def from_item(cls, item: MediaItem, listened_at: int) -> "TrackSnapshot":
        return cls(
            id=item.id,
            duration_ms=item.duration_ms,
            artist_name=item.artist_name,
            track_name=item.name,
            album_name=item.album_name,
            listened_at=listened_at,
            isrc=item.isrc,
            track_number=item.track_number,
        )


@dataclass(frozen=True)
class SessionSummary:
    """What a session looked like at the moment it was replaced or cleared."""
    track: TrackSnapshot
    listened_seconds: float
    has_scrobbled: bool


# -------------------------
# Eligibility
# -------------------------
def required_listen_seconds(track: TrackSnapshot, config: ScrobbleConfig) -> float:
    duration = track.duration_seconds
    mode = config.scrobble_mode
    if mode is ScrobbleMode.TIME:
        return config.min_listen_time
    if mode is ScrobbleMode.PERCENTAGE:
        return duration * config.listen_percentage / 100
    if mode is ScrobbleMode.HYBRID:
        return min(duration / 2, config.max_listen_time)
    return DEFAULT_REQUIRED_SECONDS


def should_scrobble(track: TrackSnapshot, listened_seconds: float, config: ScrobbleConfig) -> bool:
    """True once `listened_seconds` meets the configured threshold for `track`.

    Tracks shorter than min_track_duration never qualify. Whether the track was
    already submitted is the caller's business.
    """
    if track.duration_seconds < config.min_track_duration:
        return False
    return listened_seconds >= required_listen_seconds(track, config)


class TrackSession:
    """The currently tracked track and what has been listened of it.

    listened_seconds and has_scrobbled only mean something relative to
    `current`; begin() and clear() reset them together with it.
    """

    def __init__(self):
        self.current: TrackSnapshot | None = None
        self.listened_seconds: float = 0.0
        self.has_scrobbled: bool = False
        self.last_sample_timestamp: float = 0.0

    def is_current(self, track_id: str) -> bool:
        return self.current is not None and self.current.id == track_id

    def summary(self) -> SessionSummary | None:
        if self.current is None:
            return None
        return SessionSummary(self.current, self.listened_seconds, self.has_scrobbled)

    def begin(self, track: TrackSnapshot, sample_timestamp: float) -> SessionSummary | None:
        """Make `track` current and return a summary of the session it replaces."""
        outgoing = self.summary()
        self.current = track
        self.listened_seconds = 0.0
        self.has_scrobbled = False
        self.last_sample_timestamp = sample_timestamp
        return outgoing

    def clear(self) -> SessionSummary | None:
        outgoing = self.summary()
        self.current = None
        self.listened_seconds = 0.0
        self.has_scrobbled = False
        return outgoing

    def claim(self, track: TrackSnapshot) -> bool:
        """Latch has_scrobbled for `track`; False if it is not current or already latched."""
        if self.current is not track or self.has_scrobbled:
            return False
        self.has_scrobbled = True
        return True

    def release(self, track: TrackSnapshot) -> None:
        """Undo claim() after a failed submission, unless the session has moved on."""
        if self.current is track:
            self.has_scrobbled = False
