"""CLI entry point streaming decoded headset samples to the log."""
from __future__ import annotations

import argparse
import logging
import sys
from argparse import Namespace
from pathlib import Path
from typing import Optional

from ..acquisition import Session
from ..config import AppConfig, OverloadPolicy, load_config
from ..hardware import create_transport, list_devices
from ..reporting import LoggingListener, SessionInfo
from ..service import CaptureWatchdog

logger = logging.getLogger(__name__)


def apply_overrides(config: AppConfig, args: Namespace) -> AppConfig:
    """Apply command-line overrides stored in *args* to *config*."""

    device = config.device
    dispatch = config.dispatch
    session = config.session
    if getattr(args, "transport", None):
        device.transport = args.transport
    if getattr(args, "serial", None):
        device.serial = args.serial
    if getattr(args, "research", False):
        device.research = True
    if getattr(args, "max_frames", None) is not None:
        device.sim_max_frames = args.max_frames if args.max_frames > 0 else None
    if getattr(args, "threads", None) is not None:
        dispatch.threads = max(int(args.threads), 1)
    if getattr(args, "queue_size", None) is not None:
        dispatch.queue_size = max(int(args.queue_size), 1)
    if getattr(args, "overload_policy", None):
        dispatch.overload_policy = OverloadPolicy.parse(args.overload_policy)
    if getattr(args, "name", None):
        session.name = args.name
    if getattr(args, "notes", None):
        session.notes = args.notes
    if getattr(args, "log_every", None) is not None:
        session.log_samples_every = max(int(args.log_every), 1)
    return config


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Decode a headset stream and log the samples.',
        epilog='The session runs until the device disconnects or Ctrl+C is pressed.',
    )
    parser.add_argument('--config', type=str, help='Path to a JSON, TOML or YAML config file.')
    parser.add_argument('--transport', choices=('hid', 'sim'), help='Frame source (default: hid).')
    parser.add_argument('--serial', type=str, help='Select the headset by serial number.')
    parser.add_argument('--research', action='store_true', help='Use the research edition key layout.')
    parser.add_argument('--max-frames', type=int, help='Stop the simulated transport after N frames.')
    parser.add_argument('--threads', type=int, help='Listener worker threads.')
    parser.add_argument('--queue-size', type=int, help='Pending listener tasks per worker.')
    parser.add_argument(
        '--overload-policy',
        choices=[policy.value for policy in OverloadPolicy],
        help='What to do when a worker queue is full (default: discard).',
    )
    parser.add_argument('--name', type=str, help='Session name recorded with each sample.')
    parser.add_argument('--notes', type=str, help='Session notes recorded with each sample.')
    parser.add_argument('--log-every', type=int, help='Log one sample out of every N.')
    parser.add_argument(
        '--watchdog-timeout',
        type=float,
        default=0,
        help='Warn when no frames arrive for this many seconds (0 to disable).',
    )
    parser.add_argument('--list-devices', action='store_true', help='List connected headsets and exit.')
    parser.add_argument('--log-level', default='INFO', help='Logging level (default: INFO).')
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format='%(asctime)s [%(levelname)s] %(message)s',
    )

    config_path = Path(args.config) if args.config else None
    if config_path is not None and not config_path.exists():
        print(f'Config file not found: {config_path}', file=sys.stderr)
        return 1
    config = apply_overrides(load_config(config_path), args)

    if args.list_devices:
        devices = list_devices(config.device.transport, vendor_ids=config.device.vendor_ids)
        print('Connected headsets:')
        if not devices:
            print('  (none)')
            return 1
        for device in devices:
            print(f'  [{device.index}] {device.description or "(no description)"} (S/N {device.serial or "unknown"})')
        return 0

    try:
        session = Session(create_transport(config.device), config.dispatch)
    except (OSError, ValueError, RuntimeError) as exc:
        logger.error('Could not open headset: %s', exc)
        return 1

    info = SessionInfo(
        name=config.session.name,
        notes=config.session.notes,
        serial=session.serial,
    )
    listener = LoggingListener(info, every=config.session.log_samples_every)
    session.add_listener(listener)

    watchdog: Optional[CaptureWatchdog] = None
    if args.watchdog_timeout and args.watchdog_timeout > 0:
        watchdog = CaptureWatchdog(session, timeout_s=args.watchdog_timeout)

    with session:
        session.start()
        if watchdog:
            watchdog.start()
        try:
            while not listener.disconnected.wait(0.5):
                pass
        except KeyboardInterrupt:
            logger.info('Interrupted by user')
        finally:
            if watchdog:
                watchdog.stop()
    session.join(timeout=2.0)
    stats = session.stats
    logger.info(
        'Frames: %d, battery frames: %d, sequence anomalies: %d',
        stats.frames,
        stats.battery_frames,
        stats.sequence_anomalies,
    )
    return 1 if stats.last_error else 0
