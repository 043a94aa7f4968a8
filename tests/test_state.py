"""Tests for listen eligibility and TrackSession transitions."""

from dataclasses import replace

import pytest

from bluos_listenbrainz.config import ScrobbleMode
from bluos_listenbrainz.state import (
    DEFAULT_REQUIRED_SECONDS, TrackSession, required_listen_seconds, should_scrobble,
)
from tests.conftest import make_track


class TestEligibility:
    """Tests for should_scrobble() across the scrobble modes."""

    @pytest.mark.parametrize("mode", list(ScrobbleMode))
    def test_short_tracks_never_qualify(self, settings, mode):
        """Tracks under min_track_duration fail regardless of listened time."""
        cfg = replace(settings, scrobble_mode=mode, min_track_duration=30)
        track = make_track(duration_ms=29_999)
        assert should_scrobble(track, 10_000, cfg) is False

    def test_percentage_boundary(self, settings):
        """200s track at 50% needs exactly 100s."""
        track = make_track(duration_ms=200_000)
        assert should_scrobble(track, 99, settings) is False
        assert should_scrobble(track, 100, settings) is True

    def test_hybrid_caps_at_max_listen_time(self, settings):
        cfg = replace(settings, scrobble_mode=ScrobbleMode.HYBRID, max_listen_time=240)
        assert required_listen_seconds(make_track(duration_ms=600_000), cfg) == 240
        assert required_listen_seconds(make_track(duration_ms=100_000), cfg) == 50

    def test_time_mode_ignores_duration(self, settings):
        cfg = replace(settings, scrobble_mode=ScrobbleMode.TIME, min_listen_time=45)
        for duration_ms in (60_000, 300_000, 3_600_000):
            assert required_listen_seconds(make_track(duration_ms=duration_ms), cfg) == 45

    def test_unknown_mode_defaults_to_30_seconds(self, settings):
        cfg = replace(settings, scrobble_mode=ScrobbleMode.parse("whenever"))
        track = make_track(duration_ms=600_000)
        assert required_listen_seconds(track, cfg) == DEFAULT_REQUIRED_SECONDS == 30
        assert should_scrobble(track, 29.9, cfg) is False
        assert should_scrobble(track, 30, cfg) is True

    def test_repeated_checks_are_stable(self, settings):
        """should_scrobble has no latch of its own."""
        track = make_track()
        assert all(should_scrobble(track, 150, settings) for _ in range(5))


class TestTrackSession:
    """Tests for TrackSession begin/clear/claim/release."""

    def test_begin_resets_session_and_returns_outgoing(self):
        session = TrackSession()
        first = make_track(item_id="a")
        assert session.begin(first, sample_timestamp=5.0) is None

        session.listened_seconds = 42.0
        session.has_scrobbled = True
        second = make_track(item_id="b")
        outgoing = session.begin(second, sample_timestamp=9.0)

        assert outgoing.track is first
        assert outgoing.listened_seconds == 42.0
        assert outgoing.has_scrobbled is True
        assert session.current is second
        assert session.listened_seconds == 0.0
        assert session.has_scrobbled is False
        assert session.last_sample_timestamp == 9.0

    def test_clear_empties_session(self):
        session = TrackSession()
        track = make_track()
        session.begin(track, sample_timestamp=0.0)
        session.listened_seconds = 12.5

        outgoing = session.clear()

        assert outgoing.track is track
        assert outgoing.listened_seconds == 12.5
        assert session.current is None
        assert session.listened_seconds == 0.0
        assert session.clear() is None

    def test_is_current_matches_by_id(self):
        session = TrackSession()
        assert session.is_current("1001") is False
        session.begin(make_track(item_id="1001"), sample_timestamp=0.0)
        assert session.is_current("1001") is True
        assert session.is_current("1002") is False

    def test_claim_latches_once(self):
        session = TrackSession()
        track = make_track()
        session.begin(track, sample_timestamp=0.0)

        assert session.claim(track) is True
        assert session.claim(track) is False
        assert session.has_scrobbled is True

    def test_release_ignores_stale_track(self):
        """A failed submission for an old track never touches the new session."""
        session = TrackSession()
        old = make_track(item_id="old")
        session.begin(old, sample_timestamp=0.0)
        session.claim(old)

        new = make_track(item_id="new")
        session.begin(new, sample_timestamp=1.0)
        session.claim(new)
        session.release(old)

        assert session.has_scrobbled is True

        session.release(new)
        assert session.has_scrobbled is False
