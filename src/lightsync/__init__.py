"""lightsync: drive lights in time with the track playing on Spotify."""

__version__ = "0.1.0"
