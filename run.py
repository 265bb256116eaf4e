"""
Iron Heart - Main Entry Point
Runs one emission session:
  1. Load settings (iron_heart.toml, or --config)
  2. Configure logging
  3. Start the pipeline (OSC emitter, source, recorders)
  4. Log UI updates to the console until Ctrl+C / SIGTERM
  5. Stop the pipeline (reset packets are sent on the way out)

Usage: python run.py [--config PATH] [--source websocket|ble] [--port N] [--log-level LEVEL]
"""

import argparse
import asyncio
import logging
import signal
import sys

from iron_heart.coordinator import ErrorPopup, ListeningAddress, Severity, StatusUpdate, TaskCoordinator
from iron_heart.errors import SettingsError
from iron_heart.pipeline import SOURCE_BLE, SOURCE_WEBSOCKET, SOURCES, TelemetryPipeline
from iron_heart.settings import Settings, load_settings

LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'

logger = logging.getLogger('iron_heart')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='iron_heart',
        description="Relay heart rate data to avatar parameters over OSC.",
    )
    parser.add_argument("--config", type=str, default=None,
                        help="Settings file (default: ./iron_heart.toml).")
    parser.add_argument("--source", choices=SOURCES, default=SOURCE_WEBSOCKET,
                        help="Primary heart rate source.")
    parser.add_argument("--port", type=int, default=None,
                        help="WebSocket listening port, overrides the settings file.")
    parser.add_argument("--log-level", type=str, default=None,
                        help="Logging level, overrides the settings file.")
    return parser


def setup_logging(settings: Settings, level_override=None):
    level_name = (level_override or settings.misc.log_level).upper()
    logging.basicConfig(level=getattr(logging, level_name, logging.INFO), format=LOG_FORMAT)

    if settings.misc.log_file:
        fh = logging.FileHandler(settings.misc.log_file)
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(logging.Formatter(LOG_FORMAT))
        logging.getLogger().addHandler(fh)


# ------------------------------------------------------------------
# Console display
# ------------------------------------------------------------------

async def display_updates(coordinator: TaskCoordinator):
    """Stand-in UI: logs every update until shutdown."""
    updates = coordinator.broadcaster.subscribe()
    try:
        while True:
            cancelled, update = await coordinator.shutdown.race(updates.get())
            if cancelled:
                return
            if isinstance(update, StatusUpdate):
                status = update.status
                flags = " ↑" if status.twitch_up else " ↓" if status.twitch_down else ""
                logger.info(f"♥ {status.heart_rate_bpm} bpm (battery {status.battery_level}){flags}")
            elif isinstance(update, ListeningAddress):
                logger.info(f"Send heart rate JSON to {update}")
            elif isinstance(update, ErrorPopup) and update.severity is Severity.USER_MUST_DISMISS:
                print(f"\n✗ {update.message}\n")
    finally:
        coordinator.broadcaster.unsubscribe(updates)


# ------------------------------------------------------------------
# Main
# ------------------------------------------------------------------

async def run_session(settings: Settings, source: str, port_override=None):
    pipeline = TelemetryPipeline(settings, source=source, port_override=port_override)
    coordinator = pipeline.coordinator

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, coordinator.shutdown.cancel)

    if source == SOURCE_BLE:
        logger.warning("⚠ BLE source selected: frames arrive only from an attached Bluetooth transport")

    display = asyncio.create_task(display_updates(coordinator))
    try:
        await pipeline.run()
    finally:
        coordinator.shutdown.cancel()
        await display
    logger.info(f"Session summary: {pipeline.get_status()['coordinator']['clock_stats']}")


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = load_settings(args.config)
    except SettingsError as e:
        logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
        logger.error(f"✗ {e}")
        return 1

    setup_logging(settings, args.log_level)

    print()
    print("=" * 50)
    print("  Iron Heart")
    print("=" * 50)
    print()

    try:
        asyncio.run(run_session(settings, args.source, args.port))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        return 1

    print("\n✓ Iron Heart session complete.")
    return 0


if __name__ == '__main__':
    sys.exit(main())
