"""Hue Entertainment API streaming and per-channel actuators."""

from dataclasses import dataclass
import logging
import threading
import time

# Hue bridge uses a self-signed cert
import urllib3
urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

from .color import RGB

logger = logging.getLogger(__name__)


@dataclass
class LightState:
    """RGB state for a light."""
    light_id: int
    r: int  # 0-255
    g: int
    b: int


class HueStreamer:
    """
    Stream color updates to Hue lights via Entertainment API.

    Uses hue-entertainment-pykit for DTLS connection handling.
    """

    def __init__(
        self,
        bridge_ip: str,
        username: str,
        clientkey: str,
        entertainment_area_id: str,
        fps: int = 25,
    ):
        self.bridge_ip = bridge_ip
        self.username = username
        self.clientkey = clientkey
        self.entertainment_area_id = entertainment_area_id
        self.fps = fps

        self._streaming = None
        self._bridge = None
        self._entertainment = None
        self._running = False
        self._lock = threading.Lock()
        self._pending_states: dict[int, LightState] = {}
        self._channel_map: dict[str, int] = {}  # light_id -> channel_id
        self._render_thread: threading.Thread | None = None

    def start(self) -> None:
        """Start the streaming connection."""
        from hue_entertainment_pykit import Bridge, Entertainment, Streaming

        # hue_app_id is required for DTLS PSK identity (use username)
        self._bridge = Bridge(
            ip_address=self.bridge_ip,
            username=self.username,
            clientkey=self.clientkey,
            hue_app_id=self.username,
        )

        self._entertainment = Entertainment(self._bridge)
        ent_configs_dict = self._entertainment.get_entertainment_configs()
        ent_conf_repo = self._entertainment.get_ent_conf_repo()

        # Find our entertainment area
        target_config = None
        for config_id, config in ent_configs_dict.items():
            if config_id == self.entertainment_area_id or config.id == self.entertainment_area_id:
                target_config = config
                break

        if target_config is None:
            available = list(ent_configs_dict.keys())
            raise ValueError(
                f"Entertainment area '{self.entertainment_area_id}' not found. "
                f"Available: {available}"
            )

        self._channel_map = {}
        for i, channel in enumerate(target_config.channels):
            for member in channel.members:
                self._channel_map[member.service.rid] = i

        self._streaming = Streaming(self._bridge, target_config, ent_conf_repo)
        self._streaming.set_color_space("rgb")
        self._streaming.start_stream()
        self._running = True

        self._render_thread = threading.Thread(
            target=self._render_loop, name="lightsync-hue-render", daemon=True
        )
        self._render_thread.start()

        logger.info("Streaming started to %d lights at %d fps", len(self._channel_map), self.fps)

    def _render_loop(self) -> None:
        """Flush queued colors at a fixed rate so bursts of writes coalesce."""
        interval = 1.0 / self.fps
        while self._running:
            started = time.monotonic()
            self.flush()
            time.sleep(max(0.0, interval - (time.monotonic() - started)))

    def set_light_color(self, channel_id: int, r: int, g: int, b: int) -> None:
        """Queue a color update for one entertainment channel."""
        with self._lock:
            self._pending_states[channel_id] = LightState(
                light_id=channel_id,
                r=max(0, min(255, r)),
                g=max(0, min(255, g)),
                b=max(0, min(255, b)),
            )

    def flush(self, force: bool = False) -> None:
        """Send all pending color updates."""
        if not self._streaming or not (self._running or force):
            return

        with self._lock:
            for channel_id, state in self._pending_states.items():
                try:
                    self._streaming.set_input(
                        (state.r / 255.0, state.g / 255.0, state.b / 255.0, channel_id)
                    )
                except Exception as e:
                    # One dropped frame, not a failure
                    logger.warning("Error setting light %s: %s", channel_id, e)

            self._pending_states.clear()

    def stop(self) -> None:
        """Stop the streaming connection."""
        self._running = False
        if self._render_thread is not None:
            self._render_thread.join(timeout=1.0)
            self._render_thread = None
        # Last frame (usually lights off) still goes out
        self.flush(force=True)

        if self._streaming:
            try:
                self._streaming.stop_stream()
            except Exception as e:
                logger.warning("Error stopping stream: %s", e)
            self._streaming = None

        self._bridge = None
        self._entertainment = None

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def light_count(self) -> int:
        return len(set(self._channel_map.values()))

    def get_channel_ids(self) -> list[int]:
        """Get list of channel IDs (0-indexed)."""
        return list(range(self.light_count))


class HueActuator:
    """
    One entertainment channel driven as an actuator.

    The stream only carries RGB, so power, brightness and color are folded
    into a single frame: color dimmed by brightness, black when off.
    Frames are queued on the streamer and sent by its render thread.
    The streamer is shared between channels; whoever created it stops it.
    """

    def __init__(self, streamer: HueStreamer, channel_id: int, name: str | None = None):
        self.streamer = streamer
        self.channel_id = channel_id
        self.name = name or f"hue-{channel_id}"
        self._power = True
        self._brightness = 100.0
        self._color = RGB.white()
        self._lock = threading.Lock()

    def start(self) -> None:
        if not self.streamer.is_running:
            self.streamer.start()

    def disconnect(self) -> None:
        logger.debug("%s: released", self.name)

    def set_power(self, on: bool) -> None:
        with self._lock:
            self._power = on
        self._push()

    def set_brightness(self, percent: float) -> None:
        with self._lock:
            self._brightness = max(0.0, min(100.0, percent))
        self._push()

    def set_color(self, color: RGB) -> None:
        with self._lock:
            self._color = color
        self._push()

    @property
    def frame(self) -> RGB:
        """The RGB value this channel currently shows."""
        with self._lock:
            if not self._power:
                return RGB.black()
            return self._color.dim(self._brightness / 100.0)

    def _push(self) -> None:
        frame = self.frame
        self.streamer.set_light_color(self.channel_id, frame.r, frame.g, frame.b)

    def __repr__(self) -> str:
        return f"HueActuator({self.name!r}, channel={self.channel_id})"
