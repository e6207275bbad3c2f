"""Configuration schema and loading."""

from .schema import (
    LightSyncConfig,
    SyncConfig,
    TransitionConfig,
    ColorConfig,
    SpotifyConfig,
    HueConfig,
)
from .loader import load_config, save_config

__all__ = [
    "LightSyncConfig",
    "SyncConfig",
    "TransitionConfig",
    "ColorConfig",
    "SpotifyConfig",
    "HueConfig",
    "load_config",
    "save_config",
]
