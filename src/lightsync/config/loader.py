"""Configuration file loading and saving."""

from pathlib import Path
from typing import Any, Optional
import yaml

from ..errors import ConfigError
from ..lights.color import RGB
from .schema import (
    INTERPOLATORS,
    LightSyncConfig,
    SyncConfig,
    TransitionConfig,
    ColorConfig,
    SpotifyConfig,
    HueConfig,
)


def load_config(config_path: Path, debug: Optional[bool] = None) -> LightSyncConfig:
    """
    Load configuration from a YAML file.

    Args:
        config_path: YAML file to read
        debug: Overrides the file's debug flag when not None

    Raises:
        ConfigError: If a value is out of range or a required key is missing
    """
    with open(config_path) as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ConfigError(f"{config_path}: top level must be a mapping")

    # Parse sync config
    sync_data = data.get("sync") or {}
    sync = SyncConfig(
        poll_interval_ms=float(sync_data.get("poll_interval_ms", 1000.0)),
        drift_threshold_ms=float(sync_data.get("drift_threshold_ms", 100.0)),
        request_timeout_s=float(sync_data.get("request_timeout_s", 5.0)),
    )
    if sync.poll_interval_ms <= 0:
        raise ConfigError("sync.poll_interval_ms must be positive")
    if sync.drift_threshold_ms < 0:
        raise ConfigError("sync.drift_threshold_ms must not be negative")

    # Parse transition config
    transition_data = data.get("transitions") or {}
    transitions = TransitionConfig(
        command_delay_ms=float(transition_data.get("command_delay_ms", 50.0)),
        duration_scale=float(transition_data.get("duration_scale", 0.95)),
    )
    if transitions.command_delay_ms <= 0:
        raise ConfigError("transitions.command_delay_ms must be positive")
    if not 0 < transitions.duration_scale <= 1:
        raise ConfigError("transitions.duration_scale must be in (0, 1]")

    # Parse colors
    color_data = data.get("colors") or {}
    colors = ColorConfig(
        start=color_data.get("start", "#0000ff"),
        end=color_data.get("end", "#ff0000"),
        interpolator=color_data.get("interpolator", "hsv_long"),
    )
    if colors.interpolator not in INTERPOLATORS:
        raise ConfigError(
            f"Unknown interpolator '{colors.interpolator}'. "
            f"Available: {list(INTERPOLATORS)}"
        )
    for name in ("start", "end"):
        try:
            RGB.from_hex(getattr(colors, name))
        except (AttributeError, ValueError) as e:
            raise ConfigError(f"colors.{name}: {e}") from e

    # Parse Spotify credentials
    spotify_data = data.get("spotify") or {}
    spotify = SpotifyConfig(
        client_id=spotify_data.get("client_id", ""),
        client_secret=spotify_data.get("client_secret", ""),
        refresh_token=spotify_data.get("refresh_token", ""),
        access_token=spotify_data.get("access_token"),
        market=spotify_data.get("market"),
    )

    # Parse Hue config
    hue = None
    if "hue" in data and data["hue"]:
        hue_data = data["hue"]
        try:
            hue = HueConfig(
                bridge_ip=hue_data["bridge_ip"],
                username=hue_data["username"],
                clientkey=hue_data["clientkey"],
                entertainment_area_id=hue_data["entertainment_area_id"],
                fps=hue_data.get("fps", 25),
                channels=list(hue_data.get("channels", [])),
            )
        except KeyError as e:
            raise ConfigError(f"hue.{e.args[0]} is required") from e

    if debug is None:
        debug = bool(data.get("debug", False))
    if not debug and hue is None:
        raise ConfigError("hue section is required unless debug is enabled")

    return LightSyncConfig(
        sync=sync,
        transitions=transitions,
        colors=colors,
        spotify=spotify,
        hue=hue,
        debug=debug,
        mock_lights=int(data.get("mock_lights", 3)),
        log_level=str(data.get("log_level", "INFO")),
    )


def save_config(config: LightSyncConfig, config_path: Path) -> None:
    """Save configuration to YAML file."""
    data: dict[str, Any] = {
        "sync": {
            "poll_interval_ms": config.sync.poll_interval_ms,
            "drift_threshold_ms": config.sync.drift_threshold_ms,
            "request_timeout_s": config.sync.request_timeout_s,
        },
        "transitions": {
            "command_delay_ms": config.transitions.command_delay_ms,
            "duration_scale": config.transitions.duration_scale,
        },
        "colors": {
            "start": config.colors.start,
            "end": config.colors.end,
            "interpolator": config.colors.interpolator,
        },
        "spotify": {
            "client_id": config.spotify.client_id,
            "client_secret": config.spotify.client_secret,
            "refresh_token": config.spotify.refresh_token,
        },
        "debug": config.debug,
        "mock_lights": config.mock_lights,
        "log_level": config.log_level,
    }

    if config.spotify.access_token:
        data["spotify"]["access_token"] = config.spotify.access_token
    if config.spotify.market:
        data["spotify"]["market"] = config.spotify.market

    if config.hue:
        data["hue"] = {
            "bridge_ip": config.hue.bridge_ip,
            "username": config.hue.username,
            "clientkey": config.hue.clientkey,
            "entertainment_area_id": config.hue.entertainment_area_id,
            "fps": config.hue.fps,
            "channels": list(config.hue.channels),
        }

    with open(config_path, "w") as f:
        yaml.dump(data, f, default_flow_style=False, sort_keys=False)
