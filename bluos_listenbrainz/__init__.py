"""Bridge a BluOS player to ListenBrainz: playing-now notifications and listens."""
