import logging
import math
import re
from typing import Any

import requests

from bluos_listenbrainz.config import ScrobbleConfig
from bluos_listenbrainz.state import TrackSnapshot

log = logging.getLogger("listenbrainz")

_ISRC_RE = re.compile(r"[A-Z]{2}-?\w{3}-?\d{2}-?\d{5}")
_ISRC_AT_END_RE = re.compile(_ISRC_RE.pattern + r"$")

# Custom error classes so callers can branch
class ListenBrainzError(Exception): ...
class ListenBrainzAuthError(ListenBrainzError): ...
class ListenBrainzRateLimitError(ListenBrainzError): ...
class ListenBrainzNetworkError(ListenBrainzError): ...
class ListenBrainzUnknownError(ListenBrainzError): ...


def extract_isrc(raw: str | None) -> str | None:
    """Pull the ISRC out of a raw player value; None if there isn't one."""
    if not raw:
        return None
    match = _ISRC_AT_END_RE.search(raw) or _ISRC_RE.search(raw)
    return match.group(0) if match else None


def _track_metadata(track: TrackSnapshot, config: ScrobbleConfig,
                    listened_seconds: float | None) -> dict[str, Any]:
    additional_info: dict[str, Any] = {
        "media_player": config.media_player,
        "submission_client": config.submission_client,
        "music_service": config.music_service,
        "duration_ms": int(track.duration_ms),
    }
    if listened_seconds is not None:
        additional_info["total_listen_time"] = math.floor(listened_seconds)

    isrc = extract_isrc(track.isrc)
    if isrc:
        additional_info["isrc"] = isrc
    if track.track_number and track.track_number > 0:
        additional_info["tracknumber"] = track.track_number

    return {
        "additional_info": additional_info,
        "artist_name": track.artist_name,
        "track_name": track.track_name,
        "release_name": track.album_name,
    }


def build_listen_payload(track: TrackSnapshot, listened_seconds: float,
                         config: ScrobbleConfig) -> dict[str, Any]:
    return {
        "listen_type": "single",
        "payload": [{
            "listened_at": track.listened_at,
            "track_metadata": _track_metadata(track, config, listened_seconds),
        }],
    }


def build_playing_now_payload(track: TrackSnapshot, config: ScrobbleConfig) -> dict[str, Any]:
    return {
        "listen_type": "playing_now",
        "payload": [{
            "track_metadata": _track_metadata(track, config, None),
        }],
    }


class ListenBrainzClient:
    """Thin wrapper over the ListenBrainz HTTP API for playing-now + listens."""

    def __init__(self, session: requests.Session | None = None):
        self.session = session or requests.Session()

    def _headers(self, config: ScrobbleConfig) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Token {config.api_key}",
        }

    def _post(self, config: ScrobbleConfig, body: dict[str, Any]) -> None:
        url = f"{config.url.rstrip('/')}/1/submit-listens"
        try:
            resp = self.session.post(url, json=body, headers=self._headers(config),
                                     timeout=config.request_timeout)
        except requests.RequestException as e:
            raise ListenBrainzNetworkError(str(e)) from e

        if resp.ok:
            return
        msg = f"HTTP {resp.status_code}: {resp.text[:200]}"
        # Map common ListenBrainz status codes
        if resp.status_code in (401, 403):
            raise ListenBrainzAuthError(msg)
        elif resp.status_code == 429:
            raise ListenBrainzRateLimitError(msg)
        else:
            raise ListenBrainzUnknownError(msg)

    def submit_listen(self, track: TrackSnapshot, listened_seconds: float, config: ScrobbleConfig):
        """Submit a listen for `track`. Raises a ListenBrainzError subclass on failure."""
        self._post(config, build_listen_payload(track, listened_seconds, config))

    def submit_playing_now(self, track: TrackSnapshot, config: ScrobbleConfig) -> bool:
        """Push a playing-now notification. Non-fatal on failure."""
        try:
            self._post(config, build_playing_now_payload(track, config))
        except ListenBrainzError as e:
            # Playing-now failures aren't critical; log at DEBUG
            log.debug("playing_now failed for %s: %s", track.track_name, e)
            return False
        return True

    def validate_token(self, config: ScrobbleConfig) -> bool:
        """Ask the server whether the configured token is valid."""
        url = f"{config.url.rstrip('/')}/1/validate-token"
        try:
            resp = self.session.get(url, headers=self._headers(config), timeout=config.request_timeout)
            resp.raise_for_status()
            return bool(resp.json().get("valid"))
        except (requests.RequestException, ValueError) as e:
            log.warning("Token validation failed: %s", e)
            return False
