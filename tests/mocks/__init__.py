"""Test doubles for the player, the ListenBrainz client and HTTP."""
