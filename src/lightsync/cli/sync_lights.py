"""
lightsync: drive lights from the track currently playing on Spotify.

Usage:
    lightsync --config config.yaml
    lightsync --config config.yaml --debug --log-level DEBUG
"""

from __future__ import annotations

import argparse
import logging
import signal
import threading
from pathlib import Path

from ..config import LightSyncConfig, load_config
from ..coordinator import Coordinator
from ..errors import ConfigError, LightSyncError
from ..lights import (
    Actuator,
    HueActuator,
    HueStreamer,
    LoggingActuator,
    TransitionController,
    make_interpolator,
)
from ..log import setup_logging
from ..spotify import SpotifyClient
from ..sync import Scheduler, SyncEngine, SyncEvent

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lightsync",
        description="Sync lights to the music playing on Spotify",
    )
    parser.add_argument("--config", "-c", type=Path, help="Path to config.yaml")
    parser.add_argument("--debug", action="store_true", help="Use logging mock lights instead of Hue")
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING or ERROR (overrides config)")
    return parser


def build_actuators(config: LightSyncConfig) -> tuple[list[Actuator], HueStreamer | None]:
    """Mock lights in debug mode, otherwise one actuator per Hue channel."""
    if config.debug:
        return [LoggingActuator(f"mock-{i}") for i in range(config.mock_lights)], None

    if config.hue is None:
        raise ConfigError("hue section is required unless debug is enabled")

    hue = config.hue
    streamer = HueStreamer(
        bridge_ip=hue.bridge_ip,
        username=hue.username,
        clientkey=hue.clientkey,
        entertainment_area_id=hue.entertainment_area_id,
        fps=hue.fps,
    )
    streamer.start()
    channels = hue.channels or streamer.get_channel_ids()
    return [HueActuator(streamer, channel_id) for channel_id in channels], streamer


def build_source(config: LightSyncConfig) -> SpotifyClient:
    spotify = config.spotify
    if not spotify.client_id or not (spotify.refresh_token or spotify.access_token):
        raise ConfigError("spotify.client_id and a refresh_token (or access_token) are required")
    return SpotifyClient(
        client_id=spotify.client_id,
        client_secret=spotify.client_secret,
        refresh_token=spotify.refresh_token,
        access_token=spotify.access_token,
        timeout=config.sync.request_timeout_s,
        market=spotify.market,
    )


def run(config: LightSyncConfig, stop: threading.Event) -> None:
    """Wire everything together and block until stop is set."""
    source = build_source(config)
    actuators, streamer = build_actuators(config)
    for light in actuators:
        light.start()
        light.set_power(True)
    logger.info("Driving %d lights: %s", len(actuators), ", ".join(a.name for a in actuators))

    scheduler = Scheduler()
    controller = TransitionController(
        scheduler,
        command_delay_ms=config.transitions.command_delay_ms,
        interpolation=config.colors.interpolator,
    )
    coordinator = Coordinator(
        actuators,
        controller,
        make_interpolator(config.colors.start, config.colors.end, config.colors.interpolator),
        duration_scale=config.transitions.duration_scale,
    )
    engine = SyncEngine(
        source,
        scheduler,
        poll_interval_ms=config.sync.poll_interval_ms,
        drift_threshold_ms=config.sync.drift_threshold_ms,
    )
    coordinator.attach(engine.events)
    engine.events.on(SyncEvent.TRACK_CHANGED, lambda track: logger.info("Now playing: %s", track))

    scheduler.start()
    engine.start()
    try:
        stop.wait()
    finally:
        logger.info("Shutting down")
        engine.stop()
        controller.cancel_all()
        scheduler.stop()
        for light in actuators:
            try:
                light.set_power(False)
                light.disconnect()
            except Exception as e:
                logger.warning("%s: error during shutdown: %s", light.name, e)
        if streamer is not None:
            streamer.stop()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level or "INFO")

    try:
        if args.config:
            config = load_config(args.config, debug=True if args.debug else None)
        else:
            config = LightSyncConfig.with_defaults()
    except (ConfigError, OSError) as e:
        logger.error("Could not load config: %s", e)
        return 2
    setup_logging(args.log_level or config.log_level)

    stop = threading.Event()

    def signal_handler(sig, frame):
        logger.info("Received signal %d, stopping", sig)
        stop.set()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        run(config, stop)
    except LightSyncError as e:
        logger.error("%s", e)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
