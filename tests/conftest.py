"""Shared test fixtures and utilities."""

import pytest

from bluos_listenbrainz.accumulator import ListenTimeAccumulator
from bluos_listenbrainz.config import ScrobbleConfig, ScrobbleMode
from bluos_listenbrainz.player import MediaItem
from bluos_listenbrainz.state import TrackSession, TrackSnapshot
from bluos_listenbrainz.tracker import ScrobbleTracker
from tests.mocks.mock_client import MockListenBrainzClient
from tests.mocks.mock_player import MockPlayer

WALL_CLOCK = 1_700_000_000


class ManualClock:
    """Monotonic clock the test advances by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class MutableConfig:
    """Config provider whose snapshot a test can swap mid-run."""

    def __init__(self, config: ScrobbleConfig) -> None:
        self.current = config

    def __call__(self) -> ScrobbleConfig:
        return self.current


def make_item(
    item_id: str = "1001",
    name: str = "Heroes",
    duration_ms: int = 200_000,
    isrc: str | None = None,
    track_number: int | None = None,
) -> MediaItem:
    """Helper to create test MediaItem instances."""
    return MediaItem(
        id=item_id,
        name=name,
        artist_name="David Bowie",
        album_name="Heroes",
        duration_ms=duration_ms,
        isrc=isrc,
        track_number=track_number,
    )


def make_track(duration_ms: int = 200_000, **kwargs) -> TrackSnapshot:
    """Helper to create test TrackSnapshot instances."""
    return TrackSnapshot.from_item(make_item(duration_ms=duration_ms, **kwargs), listened_at=WALL_CLOCK)


@pytest.fixture
def settings() -> ScrobbleConfig:
    """Enabled config, percentage mode at 50%."""
    return ScrobbleConfig(
        url="https://lb.example.org",
        api_key="secret-token",
        enabled=True,
        scrobble_mode=ScrobbleMode.PERCENTAGE,
        min_track_duration=30,
        min_listen_time=30,
        listen_percentage=50,
        max_listen_time=240,
    )


@pytest.fixture
def config(settings) -> MutableConfig:
    return MutableConfig(settings)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def player() -> MockPlayer:
    return MockPlayer()


@pytest.fixture
def client() -> MockListenBrainzClient:
    return MockListenBrainzClient()


@pytest.fixture
async def tracker(player, config, client, clock):
    """Tracker wired to mocks; the background sampler never fires on its own."""
    accumulator = ListenTimeAccumulator(TrackSession(), clock=clock, interval=3600)
    tracker = ScrobbleTracker(player, config, client, accumulator=accumulator,
                              clock=lambda: WALL_CLOCK)
    tracker.attach()
    yield tracker
    await tracker.close()
