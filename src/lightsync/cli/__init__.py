"""
CLI entry point for lightsync.

Contains the main executable:
- lightsync: Spotify playback synchronized light control
"""

from .sync_lights import main

__all__ = ["main"]
