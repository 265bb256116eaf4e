"""
Heart Rate Status
The single current belief about heart activity, and the aggregator that folds
decoded measurements and text-feed records into it
"""

import copy
import logging
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import List, Optional, Union

from .feed import JSONHeartRate
from .measurement import HeartRateMeasurement
from .twitcher import Twitcher

logger = logging.getLogger(__name__)


class BatteryState(Enum):
    """Whether the source reports a battery level."""
    NOT_REPORTED = "not_reported"
    UNKNOWN = "unknown"
    LEVEL = "level"


@dataclass(frozen=True)
class BatteryLevel:
    """
    Battery indicator of the heart rate source.

    NOT_REPORTED: the source has no battery reporting at all.
    UNKNOWN: the source may report one but has not yet.
    LEVEL: percent holds the last reported value.
    """
    state: BatteryState = BatteryState.UNKNOWN
    percent: Optional[int] = None

    @classmethod
    def not_reported(cls) -> 'BatteryLevel':
        return cls(state=BatteryState.NOT_REPORTED)

    @classmethod
    def unknown(cls) -> 'BatteryLevel':
        return cls(state=BatteryState.UNKNOWN)

    @classmethod
    def level(cls, percent: int) -> 'BatteryLevel':
        return cls(state=BatteryState.LEVEL, percent=percent)

    def __str__(self):
        if self.state is BatteryState.LEVEL:
            return f"{self.percent}%"
        return self.state.value


@dataclass
class HeartRateStatus:
    """
    Current heart rate status.

    A bpm of zero means no heartbeat is detected and doubles as the
    disconnect sentinel.
    """
    heart_rate_bpm: int = 0
    battery_level: BatteryLevel = field(default_factory=BatteryLevel)
    rr_intervals: List[timedelta] = field(default_factory=list)
    twitch_up: bool = False
    twitch_down: bool = False

    @property
    def connected(self) -> bool:
        return self.heart_rate_bpm > 0

    @property
    def latest_rr(self) -> Optional[timedelta]:
        return self.rr_intervals[-1] if self.rr_intervals else None

    def copy(self) -> 'HeartRateStatus':
        """Independent snapshot, safe to hand to other tasks."""
        return copy.deepcopy(self)


StatusSource = Union[HeartRateMeasurement, JSONHeartRate]


class StatusAggregator:
    """
    Folds incoming updates into the current HeartRateStatus.

    Only the newest RR interval is retained: downstream consumers need the
    current beat period, not a history.
    """

    def __init__(self, twitch_threshold: float, initial_battery: Optional[BatteryLevel] = None):
        """
        Args:
            twitch_threshold: Fraction passed to the Twitcher (0.1 = 10%).
            initial_battery: Battery indicator to start from and to reset to.
        """
        self.twitcher = Twitcher(twitch_threshold)
        self._initial_battery = initial_battery if initial_battery else BatteryLevel.unknown()
        self.status = HeartRateStatus(battery_level=self._initial_battery)
        self.update_count = 0

    def apply(self, update: StatusSource) -> HeartRateStatus:
        """
        Fold one update into the status.

        Args:
            update: A decoded HeartRateMeasurement or a JSONHeartRate record.

        Returns:
            Snapshot of the status after the update.
        """
        if isinstance(update, HeartRateMeasurement):
            bpm = update.bpm
            newest_rr = update.rr_intervals[-1] if update.rr_intervals else None
            battery = None
        elif isinstance(update, JSONHeartRate):
            bpm = update.bpm
            newest_rr = (
                timedelta(milliseconds=update.latest_rr_ms)
                if update.latest_rr_ms is not None else None
            )
            battery = update.battery
        else:
            raise TypeError(f"Unsupported status update: {type(update).__name__}")

        self.status.heart_rate_bpm = bpm
        if newest_rr is not None:
            self.status.rr_intervals = [newest_rr]
        if battery is not None:
            self.status.battery_level = BatteryLevel.level(battery)

        self.status.twitch_up, self.status.twitch_down = self.twitcher.handle(
            self.status.heart_rate_bpm, self.status.rr_intervals
        )
        self.update_count += 1

        return self.status.copy()

    def set_battery(self, percent: int) -> HeartRateStatus:
        """Record a battery level read outside of the measurement stream."""
        self.status.battery_level = BatteryLevel.level(percent)
        return self.status.copy()

    def reset(self) -> HeartRateStatus:
        """Return to the default status, used on disconnect and shutdown."""
        logger.debug("Heart rate status reset")
        self.status = HeartRateStatus(battery_level=self._initial_battery)
        return self.status.copy()

    def __repr__(self):
        return f"<StatusAggregator(bpm={self.status.heart_rate_bpm}, updates={self.update_count})>"
