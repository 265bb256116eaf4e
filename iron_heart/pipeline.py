"""
Iron Heart - Telemetry Pipeline
================================
Central module that owns the full lifecycle of one emission session.

Usage in run.py:
    pipeline = TelemetryPipeline(settings, source='websocket')
    await pipeline.start()
    # ... statuses flow until shutdown is requested ...
    await pipeline.stop()

Tasks managed:
    - osc        : EmissionScheduler sending bundles and heartbeat pulses
    - websocket  : WebsocketActor (when the text feed is the source)
    - bpm_file   : BPMFileWriter (misc.write_bpm_to_file)
    - csv_log    : SessionCSVLogger (misc.log_sessions_to_csv)

With the BLE source no task is started for the input: the Bluetooth
transport calls pipeline.frame_collector directly.

Failure policy:
    If a task fails to set up (socket bind, invalid address) it is skipped
    and a dismissable notification is published. The session continues
    with whichever tasks are available.
"""

import logging
from typing import Optional

from iron_heart.coordinator import ErrorPopup, TaskCoordinator
from iron_heart.errors import SetupError
from iron_heart.osc.scheduler import EmissionScheduler
from iron_heart.recording import BPMFileWriter, SessionCSVLogger
from iron_heart.settings import Settings
from iron_heart.sources.ble.collector import BLEFrameCollector
from iron_heart.sources.websocket.collector import WebsocketActor
from iron_heart.sources.websocket.config import WebSocketConfig

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Task and source labels
# ---------------------------------------------------------------------------
SOURCE_WEBSOCKET = 'websocket'
SOURCE_BLE = 'ble'
SOURCES = (SOURCE_WEBSOCKET, SOURCE_BLE)

TASK_OSC = 'osc'
TASK_WEBSOCKET = 'websocket'
TASK_BPM_FILE = 'bpm_file'
TASK_CSV_LOG = 'csv_log'


class TelemetryPipeline:
    """
    Owns the lifecycle of the source, the OSC emitter and the recorders.

    Responsibilities:
      - Build the single primary source and the emitter
      - Register their tasks with the TaskCoordinator
      - Turn setup failures into notifications instead of crashes
      - Provide a clean start() / stop() interface for run.py
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        source: str = SOURCE_WEBSOCKET,
        port_override: Optional[int] = None,
        coordinator: Optional[TaskCoordinator] = None,
        osc_client=None,
    ):
        """
        Args:
            settings     : Loaded settings, defaults when None
            source       : 'websocket' or 'ble'
            port_override: WebSocket port replacing the configured one
            coordinator  : Shared TaskCoordinator, created when None
            osc_client   : Outbound client with send(packet), opened from
                           settings when None
        """
        if source not in SOURCES:
            raise ValueError(f"Unknown source: {source} (expected one of {', '.join(SOURCES)})")

        self.settings = settings if settings else Settings()
        self.source = source
        self.port_override = port_override
        self.coordinator = coordinator if coordinator else TaskCoordinator()
        self._osc_client = osc_client

        self.scheduler: Optional[EmissionScheduler] = None
        self.websocket: Optional[WebsocketActor] = None
        self.frame_collector: Optional[BLEFrameCollector] = None

        self._active_tasks: list[str] = []
        self._failed_tasks: list[str] = []

        logger.info(f"TelemetryPipeline created (source: {source})")

    # -----------------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------------

    async def start(self):
        """
        Set up and start every task.
        Failed tasks are reported and skipped.
        """
        logger.info("=" * 55)
        logger.info("  Iron Heart Pipeline: starting")
        logger.info("=" * 55)

        self._init_osc()
        if self.source == SOURCE_WEBSOCKET:
            await self._init_websocket()
        else:
            self._init_ble()
        self._init_recorders()

        self.coordinator.start_all_tasks()

        logger.info(
            f"Pipeline ready. Active: {self._active_tasks or 'none'} | "
            f"failed: {self._failed_tasks or 'none'}"
        )

    async def stop(self):
        """Cancel the shutdown token and wait for every task to clean up."""
        logger.info("Stopping telemetry pipeline...")
        await self.coordinator.stop_all_tasks()
        self.coordinator.status_channel.close()
        logger.info("✓ Telemetry pipeline stopped")

    async def run(self):
        """Start, wait for the shutdown token, then stop."""
        await self.start()
        try:
            await self.coordinator.shutdown.cancelled()
        finally:
            await self.stop()

    def get_status(self) -> dict:
        status = {
            'source': self.source,
            'active_tasks': list(self._active_tasks),
            'failed_tasks': list(self._failed_tasks),
            'coordinator': self.coordinator.get_coordinator_status(),
        }
        if self.scheduler:
            status['osc'] = self.scheduler.get_status()
        if self.websocket:
            status['websocket'] = self.websocket.get_status()
        if self.frame_collector:
            status['ble'] = self.frame_collector.get_status()
        return status

    # -----------------------------------------------------------------------
    # Private: task initialisation helpers
    # -----------------------------------------------------------------------

    def _init_osc(self):
        """Open the UDP client and register the emission scheduler."""
        try:
            scheduler = EmissionScheduler(
                status_channel=self.coordinator.status_channel,
                config=self.settings.osc,
                shutdown=self.coordinator.shutdown,
                client=self._osc_client,
                broadcaster=self.coordinator.broadcaster,
            )
        except SetupError as e:
            self._handle_task_failure(TASK_OSC, "Failed to start OSC.", e)
            # No emitter will ever drain the channel
            self.coordinator.status_channel.close()
            return

        self.scheduler = scheduler
        self.coordinator.register_task(TASK_OSC, scheduler.run)
        self._active_tasks.append(TASK_OSC)

    async def _init_websocket(self):
        """Bind the WebSocket listener and register its task."""
        config = WebSocketConfig.with_port_override(self.port_override, self.settings.websocket)
        actor = WebsocketActor(self.coordinator, config)
        try:
            await actor.build()
        except SetupError as e:
            self._handle_task_failure(TASK_WEBSOCKET, "Failed to build websocket.", e)
            self.coordinator.status_channel.close()
            return

        async def run_websocket():
            try:
                await actor.run()
            finally:
                # Only sender of the session is gone
                self.coordinator.status_channel.close()

        self.websocket = actor
        self.coordinator.register_task(TASK_WEBSOCKET, run_websocket)
        self._active_tasks.append(TASK_WEBSOCKET)

    def _init_ble(self):
        """Create the frame collector the Bluetooth transport feeds."""
        self.frame_collector = BLEFrameCollector(self.coordinator, self.settings.ble)
        logger.info("✓ BLE frame collector ready for the transport")

    def _init_recorders(self):
        misc = self.settings.misc
        if misc.write_bpm_to_file:
            writer = BPMFileWriter(self.coordinator, misc.write_bpm_file_path)
            self.coordinator.register_task(TASK_BPM_FILE, writer.run)
            self._active_tasks.append(TASK_BPM_FILE)
        if misc.log_sessions_to_csv:
            csv_logger = SessionCSVLogger(self.coordinator, misc.log_sessions_csv_path)
            self.coordinator.register_task(TASK_CSV_LOG, csv_logger.run)
            self._active_tasks.append(TASK_CSV_LOG)

    # -----------------------------------------------------------------------
    # Private: failure handling
    # -----------------------------------------------------------------------

    def _handle_task_failure(self, task_name: str, message: str, exc: Exception):
        """
        Record a task that could not be set up and tell the user.
        The session continues without it.
        """
        self._failed_tasks.append(task_name)
        logger.warning(f"⚠ {task_name} failed to start, skipping. Error: {exc}")
        self.coordinator.broadcaster.publish(ErrorPopup.detailed(message, exc))

    # -----------------------------------------------------------------------
    # Dunder helpers
    # -----------------------------------------------------------------------

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()

    def __repr__(self):
        return (
            f"<TelemetryPipeline("
            f"source={self.source}, "
            f"active={self._active_tasks}, "
            f"failed={self._failed_tasks})>"
        )
