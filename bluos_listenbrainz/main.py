import asyncio
import logging
import os

from bluos_listenbrainz.bluos import BluOSClient, BluOSPlayer
from bluos_listenbrainz.config import ConfigProvider, ScrobbleConfig, SettingsFile, validate
from bluos_listenbrainz.listenbrainz_client import ListenBrainzClient
from bluos_listenbrainz.tracker import ScrobbleTracker

# -------------------------
# Configuration via ENV VARS
# -------------------------
BLUOS_HOST = os.getenv("BLUOS_HOST", "127.0.0.1")
BLUOS_PORT = int(os.getenv("BLUOS_PORT", "11000"))
POLL_INTERVAL = max(1, int(os.getenv("POLL_INTERVAL", "3")))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
SETTINGS_PATH = os.getenv("SETTINGS_PATH")

log = logging.getLogger("bluos-listenbrainz")


def setup_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        force=True,  # ensure our config is used even if libs pre-configure logging
    )


async def run(config: ConfigProvider, client: ListenBrainzClient) -> None:
    player = BluOSPlayer(BluOSClient(BLUOS_HOST, BLUOS_PORT), poll_interval=POLL_INTERVAL)
    tracker = ScrobbleTracker(player, config, client)
    tracker.attach()
    try:
        await player.run()
    finally:
        await tracker.close()


def main():
    setup_logging()
    base = ScrobbleConfig.from_env()
    config: ConfigProvider = SettingsFile(SETTINGS_PATH, base) if SETTINGS_PATH else (lambda: base)
    current = config()

    # Validate up-front for clear errors
    if current.enabled and not current.api_key:
        raise SystemExit("LISTENBRAINZ_TOKEN is required while scrobbling is enabled")
    validate(current, log)

    client = ListenBrainzClient()
    if current.api_key and not client.validate_token(current):
        log.warning("ListenBrainz did not accept the configured token")

    log.info("Starting BluOS → ListenBrainz bridge. Endpoint: %s | mode=%s",
             current.url, current.scrobble_mode.value)
    try:
        asyncio.run(run(config, client))
    except KeyboardInterrupt:
        log.info("Shutting down…")


if __name__ == "__main__":
    main()
