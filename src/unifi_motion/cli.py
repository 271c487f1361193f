"""Command line runner for the UniFi Protect motion bridge.

Usage:
    unifi-motion --config ~/.config/unifi-motion/config.yaml
    unifi-motion --env-file .env --debug
    unifi-motion --config config.yaml --detector my_models.coco:create_detector
"""

from __future__ import annotations

import argparse
import asyncio
import importlib
import signal
import sys
from collections.abc import Callable
from pathlib import Path

from loguru import logger  # type: ignore[import-untyped]
from pydantic import ValidationError

from unifi_motion.config import MotionConfig
from unifi_motion.motion import LoggingMotionSink, MotionOrchestrator, ObjectDetector
from unifi_motion.protect import ProtectClientError, UniFiProtectClient


def load_detector(spec: str) -> ObjectDetector:
    """Instantiate a detector from a ``module:factory`` import path.

    Args:
        spec: Import path of a callable returning an ObjectDetector.

    Returns:
        The detector instance.

    Raises:
        ValueError: If the path is malformed or the result is not a detector.
    """
    module_name, _, attr = spec.partition(':')
    if not module_name or not attr:
        raise ValueError(f"Detector must be given as 'module:factory', got {spec!r}")

    factory: Callable[[], object] = getattr(importlib.import_module(module_name), attr)
    detector = factory()
    if not isinstance(detector, ObjectDetector):
        raise ValueError(f'{spec} did not return an object detector')
    return detector


def load_config(args: argparse.Namespace) -> MotionConfig:
    """Load configuration from the YAML file or the environment."""
    if args.config:
        config = MotionConfig.from_yaml(args.config)
    else:
        config = MotionConfig.from_env(env_file=args.env_file)
    if args.debug:
        config.debug = True
    return config


def configure_logging(debug: bool) -> None:
    """Send loguru output to stderr at the requested level."""
    logger.remove()
    logger.add(sys.stderr, level='DEBUG' if debug else 'INFO')


async def run(config: MotionConfig, detector: ObjectDetector | None = None) -> None:
    """Connect to the controller and poll for motion until interrupted.

    Args:
        config: Bridge configuration.
        detector: Object detector for enhanced mode.
    """
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    handled: list[signal.Signals] = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
            handled.append(sig)
        except NotImplementedError:
            pass

    try:
        async with UniFiProtectClient(config) as client:
            for camera in client.cameras:
                stream = camera.highest_resolution_stream
                logger.info(
                    f'Camera {camera.name} ({camera.model}, {camera.ip_address}) '
                    f'best stream: {stream.alias if stream else "none"}'
                )

            orchestrator = MotionOrchestrator(
                client, config, LoggingMotionSink(), detector=detector
            )
            await orchestrator.start()
            try:
                await stop_event.wait()
            finally:
                await orchestrator.stop()
    finally:
        for sig in handled:
            loop.remove_signal_handler(sig)


def main(argv: list[str] | None = None) -> int:
    """Entry point of the ``unifi-motion`` command."""
    parser = argparse.ArgumentParser(description='Poll UniFi Protect for motion events')
    parser.add_argument('--config', type=Path, help='Path to a YAML config file')
    parser.add_argument('--env-file', type=Path, help='Path to an env file')
    parser.add_argument('--debug', action='store_true', help='Enable verbose debug logging')
    parser.add_argument(
        '--detector',
        type=str,
        help="Object detector factory as 'module:callable' (required for enhanced motion)",
    )
    args = parser.parse_args(argv)

    configure_logging(args.debug)

    try:
        config = load_config(args)
    except (FileNotFoundError, ValueError, ValidationError) as e:
        logger.error(f'Invalid configuration: {e}')
        return 2

    detector: ObjectDetector | None = None
    if config.enhanced_motion:
        if not args.detector:
            logger.error('Enhanced motion detection is enabled but no --detector was given')
            return 2
        try:
            detector = load_detector(args.detector)
        except (ImportError, AttributeError, ValueError) as e:
            logger.error(f'Cannot load detector: {e}')
            return 2

    try:
        asyncio.run(run(config, detector))
    except ProtectClientError as e:
        logger.error(f'Startup failed: {e}')
        return 1
    except KeyboardInterrupt:
        pass
    return 0
