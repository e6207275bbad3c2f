"""Exception types raised by lightsync."""


class LightSyncError(Exception):
    """Base class for all lightsync errors."""


class ConfigError(LightSyncError, ValueError):
    """Invalid or incomplete configuration."""


class PlaybackSourceError(LightSyncError):
    """Transient failure talking to the music service (network, HTTP, bad JSON)."""


class AuthError(PlaybackSourceError):
    """Token exchange with the music service failed."""


class AnalysisError(LightSyncError):
    """Audio analysis is missing a granularity or holds unusable intervals."""


class NoTrackError(LightSyncError):
    """Operation needs a loaded track but none is active."""


class InvalidArgumentError(LightSyncError, ValueError):
    """Transition requested with an out-of-range brightness or a bad color."""
