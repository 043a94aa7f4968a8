"""
Scrobble configuration snapshots.

- ScrobbleConfig is frozen: callers get a snapshot and read it at decision time.
- from_env() builds the base snapshot from environment variables.
- SettingsFile overlays a JSON settings file on top of that base and re-reads it
  whenever the file changes, so toggling `enabled` takes effect without a restart.
"""

from __future__ import annotations
import json
import logging
import os
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Mapping

log = logging.getLogger("config")

DEFAULT_URL = "https://api.listenbrainz.org"


class ScrobbleMode(Enum):
    TIME = "time"
    PERCENTAGE = "percentage"
    HYBRID = "hybrid"
    UNSPECIFIED = "unspecified"  # anything else; falls back to a fixed 30s threshold

    @classmethod
    def parse(cls, value: str | None) -> "ScrobbleMode":
        text = (value or "").strip().lower()
        for mode in cls:
            if mode is not cls.UNSPECIFIED and mode.value == text:
                return mode
        return cls.UNSPECIFIED


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class ScrobbleConfig:
    url: str = DEFAULT_URL
    api_key: str = ""
    enabled: bool = False
    scrobble_mode: ScrobbleMode = ScrobbleMode.HYBRID
    min_track_duration: float = 30
    min_listen_time: float = 30
    listen_percentage: float = 50
    max_listen_time: float = 240
    request_timeout: float = 10
    media_player: str = "Cider"
    submission_client: str = "Cider"
    music_service: str = "music.apple.com"

    @staticmethod
    def from_env() -> "ScrobbleConfig":
        return ScrobbleConfig(
            url=os.getenv("LISTENBRAINZ_URL", DEFAULT_URL),
            api_key=os.getenv("LISTENBRAINZ_TOKEN", ""),
            enabled=_to_bool(os.getenv("SCROBBLE_ENABLED", "true")),
            scrobble_mode=ScrobbleMode.parse(os.getenv("SCROBBLE_MODE", "hybrid")),
            min_track_duration=float(os.getenv("MIN_TRACK_DURATION", "30")),
            min_listen_time=float(os.getenv("MIN_LISTEN_TIME", "30")),
            listen_percentage=float(os.getenv("LISTEN_PERCENTAGE", "50")),
            max_listen_time=float(os.getenv("MAX_LISTEN_TIME", "240")),
            request_timeout=float(os.getenv("REQUEST_TIMEOUT", "10")),
            media_player=os.getenv("MEDIA_PLAYER", "Cider"),
            submission_client=os.getenv("SUBMISSION_CLIENT", "Cider"),
            music_service=os.getenv("MUSIC_SERVICE", "music.apple.com"),
        )

    @staticmethod
    def from_mapping(data: Mapping[str, Any], base: "ScrobbleConfig | None" = None) -> "ScrobbleConfig":
        """Overlay a settings mapping (camelCase keys, as the settings panel stores them)."""
        base = base or ScrobbleConfig()
        changes: dict[str, Any] = {}
        if "url" in data:
            changes["url"] = str(data["url"])
        if "apiKey" in data:
            changes["api_key"] = str(data["apiKey"])
        if "enabled" in data:
            changes["enabled"] = _to_bool(data["enabled"])
        if "scrobbleMode" in data:
            changes["scrobble_mode"] = ScrobbleMode.parse(str(data["scrobbleMode"]))
        for key, field in (
            ("minTrackDuration", "min_track_duration"),
            ("minListenTime", "min_listen_time"),
            ("listenPercentage", "listen_percentage"),
            ("maxListenTime", "max_listen_time"),
        ):
            if key in data:
                try:
                    changes[field] = float(data[key])
                except (TypeError, ValueError):
                    log.warning("Ignoring non-numeric %s=%r", key, data[key])
        return replace(base, **changes)


ConfigProvider = Callable[[], ScrobbleConfig]


class SettingsFile:
    """Callable config provider backed by a JSON file, reloaded on change."""

    def __init__(self, path: str, base: ScrobbleConfig | None = None):
        self.path = path
        self.base = base or ScrobbleConfig.from_env()
        self._mtime: float | None = None
        self._current = self.base

    def __call__(self) -> ScrobbleConfig:
        try:
            mtime = os.path.getmtime(self.path)
        except OSError:
            if self._mtime is not None:
                log.warning("Settings file %s disappeared; using environment settings", self.path)
            self._mtime = None
            self._current = self.base
            return self._current

        if mtime != self._mtime:
            self._mtime = mtime
            self._current = self._load()
        return self._current

    def _load(self) -> ScrobbleConfig:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            log.warning("Could not read settings file %s: %s", self.path, e)
            return self.base
        if not isinstance(data, dict):
            log.warning("Settings file %s is not a JSON object; ignoring", self.path)
            return self.base
        log.info("Loaded settings from %s", self.path)
        return ScrobbleConfig.from_mapping(data, self.base)


def validate(config: ScrobbleConfig, logger: logging.Logger) -> None:
    """Log warnings for settings that will keep anything from being submitted."""
    if not config.enabled:
        logger.warning("Scrobbling is disabled; events will be ignored")
    if not config.api_key:
        logger.warning("LISTENBRAINZ_TOKEN is empty; submissions will be rejected")
    if not 0 <= config.listen_percentage <= 100:
        logger.warning("listen_percentage=%s is outside 0..100", config.listen_percentage)
    if config.scrobble_mode is ScrobbleMode.UNSPECIFIED:
        logger.warning("Unknown scrobble mode; using a fixed 30s listen threshold")
