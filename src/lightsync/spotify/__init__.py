"""Spotify Web API playback source."""

from .client import SpotifyClient

__all__ = ["SpotifyClient"]
