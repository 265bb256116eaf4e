"""
Status Recorders
Optional outputs fed from the UI update stream: a one-line bpm file for
stream overlays and a CSV log per session
"""

import csv
import logging
from datetime import datetime
from pathlib import Path
from typing import Union

from iron_heart.coordinator import StatusUpdate, TaskCoordinator
from iron_heart.osc.packets import latest_rr_ms

logger = logging.getLogger(__name__)

CSV_COLUMNS = ['timestamp', 'bpm', 'rr_ms', 'battery', 'twitch_up', 'twitch_down']


class StatusRecorder:
    """
    Base class for recorders: subscribes on creation so no update published
    after construction is missed, and records every StatusUpdate until the
    shutdown token is cancelled.
    """

    def __init__(self, coordinator: TaskCoordinator):
        self.coordinator = coordinator
        self._updates = coordinator.broadcaster.subscribe()
        self.records_written = 0

    async def run(self):
        shutdown = self.coordinator.shutdown
        try:
            while True:
                cancelled, update = await shutdown.race(self._updates.get())
                if cancelled:
                    break
                if isinstance(update, StatusUpdate):
                    self.record(update)
                    self.records_written += 1
        finally:
            self.coordinator.broadcaster.unsubscribe(self._updates)
            self.close()

    def record(self, update: StatusUpdate):
        raise NotImplementedError

    def close(self):
        pass


class BPMFileWriter(StatusRecorder):
    """Overwrites a text file with the current bpm on every update."""

    def __init__(self, coordinator: TaskCoordinator, path: Union[str, Path]):
        super().__init__(coordinator)
        self.path = Path(path)
        logger.info(f"Writing bpm to {self.path}")

    def record(self, update: StatusUpdate):
        try:
            self.path.write_text(f"{update.status.heart_rate_bpm}", encoding='utf-8')
        except OSError as e:
            logger.warning(f"Could not write bpm file {self.path}: {e}")


class SessionCSVLogger(StatusRecorder):
    """
    Appends one CSV row per status update.

    The file is named after the session start time and created on the
    first update, so sessions without data leave no empty files behind.
    """

    def __init__(self, coordinator: TaskCoordinator, directory: Union[str, Path]):
        super().__init__(coordinator)
        started = coordinator.clock.started_at
        self.path = Path(directory) / session_log_name(started)
        self._file = None
        self._writer = None

    def record(self, update: StatusUpdate):
        if self._writer is None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._file = open(self.path, 'a', newline='', encoding='utf-8')
            self._writer = csv.writer(self._file)
            if self._file.tell() == 0:
                self._writer.writerow(CSV_COLUMNS)
            logger.info(f"✓ Logging session to {self.path}")

        status = update.status
        self._writer.writerow([
            update.timestamp.isoformat(),
            status.heart_rate_bpm,
            latest_rr_ms(status),
            str(status.battery_level),
            int(status.twitch_up),
            int(status.twitch_down),
        ])
        self._file.flush()

    def close(self):
        if self._file is not None:
            self._file.close()
            self._file = None
            self._writer = None
            logger.info(f"Session log closed: {self.records_written} rows in {self.path}")


def session_log_name(started: datetime) -> str:
    return f"session_{started:%Y%m%d_%H%M%S}.csv"
