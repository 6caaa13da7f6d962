#!/usr/bin/env python3
"""
Main entry point for the Steam update monitor.

Watches a Steam app (Dota 2 by default) for new changelists and posts
each new one to a Discord webhook exactly once.

Usage:
    python main.py             # Start monitoring
    python main.py --test      # Send the latest app state to Discord and exit
    python main.py --verbose   # Debug logging
"""

import argparse
import logging
import signal
import sys
import threading
from dataclasses import replace
from typing import List, Optional

from core.pipeline import MonitorPipeline
from core.settings import ConfigurationError, load_settings, validate_settings
from utils.logger import setup_logging


logger = logging.getLogger('main')


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description='Steam update monitor - posts new app changelists to Discord'
    )
    parser.add_argument(
        '--test',
        action='store_true',
        help='Fetch the latest app data, send it to Discord and exit'
    )
    parser.add_argument(
        '--config',
        type=str,
        default=None,
        help='Path to settings.yaml (default: config/settings.yaml)'
    )
    parser.add_argument(
        '--state-file',
        type=str,
        default=None,
        help='Path to the cursor file (overrides settings)'
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose logging'
    )
    return parser.parse_args(argv)


def log_banner(settings, test_mode: bool) -> None:
    logger.info('=' * 50)
    logger.info('  Steam Update Monitor')
    logger.info(f"  Monitoring AppID: {settings.resource_id} ({settings.resource_label})")
    logger.info(f"  Mode: {'TEST (send latest state)' if test_mode else 'LIVE (monitoring Steam PICS)'}")
    logger.info('=' * 50)


def install_signal_handlers(pipeline: MonitorPipeline, stop_event: threading.Event) -> None:
    """Map SIGINT/SIGTERM to a stop request; repeated signals are harmless."""

    def handle_signal(signum, frame):
        logger.info(f"Received {signal.Signals(signum).name} - stopping...")
        stop_event.set()
        pipeline.request_stop()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)


def run_live_mode(pipeline: MonitorPipeline) -> int:
    stop_event = threading.Event()
    install_signal_handlers(pipeline, stop_event)
    pipeline.run(stop_event)
    return 0


def run_test_mode(pipeline: MonitorPipeline, timeout: float) -> int:
    try:
        sent = pipeline.send_latest(timeout)
    finally:
        pipeline.shutdown()

    if sent:
        logger.info("Test notification sent with the latest app data - check your Discord channel.")
        return 0
    logger.error("Test mode failed")
    return 1


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)

    try:
        settings = load_settings(args.config)
        if args.state_file:
            settings = replace(settings, state_file=args.state_file)
    except ConfigurationError as e:
        setup_logging(level='INFO')
        logger.error(str(e))
        return 1

    setup_logging(
        level='DEBUG' if args.verbose else settings.log_level,
        format_str=settings.log_format,
        log_file=settings.log_file
    )
    log_banner(settings, args.test)

    try:
        validate_settings(settings)
    except ConfigurationError as e:
        logger.error(str(e))
        return 1

    pipeline = MonitorPipeline.from_settings(settings)

    if args.test:
        return run_test_mode(pipeline, settings.connect_timeout)
    return run_live_mode(pipeline)


if __name__ == '__main__':
    sys.exit(main())
