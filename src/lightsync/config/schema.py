"""Configuration dataclasses."""

from dataclasses import dataclass, field
from typing import Optional

INTERPOLATORS = ("hsv", "hsv_long", "rgb")


@dataclass
class SyncConfig:
    """Playback polling and drift correction."""
    poll_interval_ms: float = 1000.0
    drift_threshold_ms: float = 100.0
    request_timeout_s: float = 5.0


@dataclass
class TransitionConfig:
    """Brightness/color ramp timing."""
    command_delay_ms: float = 50.0
    duration_scale: float = 0.95  # Fraction of the segment a ramp may use


@dataclass
class ColorConfig:
    """Color range that pitch energy is mapped onto."""
    start: str = "#0000ff"
    end: str = "#ff0000"
    interpolator: str = "hsv_long"  # hsv, hsv_long or rgb


@dataclass
class SpotifyConfig:
    """Spotify Web API credentials."""
    client_id: str = ""
    client_secret: str = ""
    refresh_token: str = ""
    access_token: Optional[str] = None
    market: Optional[str] = None


@dataclass
class HueConfig:
    """Philips Hue bridge configuration."""
    bridge_ip: str
    username: str
    clientkey: str
    entertainment_area_id: str
    fps: int = 25
    channels: list[int] = field(default_factory=list)  # Empty = every channel


@dataclass
class LightSyncConfig:
    """Main application configuration."""
    sync: SyncConfig = field(default_factory=SyncConfig)
    transitions: TransitionConfig = field(default_factory=TransitionConfig)
    colors: ColorConfig = field(default_factory=ColorConfig)
    spotify: SpotifyConfig = field(default_factory=SpotifyConfig)
    hue: Optional[HueConfig] = None
    debug: bool = False
    mock_lights: int = 3
    log_level: str = "INFO"

    @classmethod
    def with_defaults(cls) -> "LightSyncConfig":
        """Create config with sensible defaults (mock lights, no credentials)."""
        return cls(debug=True)
