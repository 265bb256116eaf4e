"""
BLE Heart Rate Collector
Turns raw Heart Rate Measurement notifications into published statuses

The Bluetooth transport (scanning, pairing, connection upkeep) lives outside
this package. It subscribes to the measurement characteristic and hands every
notification to handle_notification(); the callback signature matches a
GATT notification handler (sender, data).
"""

import logging
from typing import Any, Optional

from iron_heart.coordinator import ErrorPopup, TaskCoordinator
from iron_heart.heart_rate.measurement import HeartRateMeasurement, parse_hrm, required_length
from iron_heart.heart_rate.status import HeartRateStatus, StatusAggregator

from .config import BLEConfig

logger = logging.getLogger(__name__)


class BLEFrameCollector:
    """
    Frame collector - validation, decoding and status publishing

    parse_hrm() trusts its input, so every frame is checked against the
    length its flags byte requires before decoding. Short frames are
    dropped and reported.
    """

    def __init__(self, coordinator: TaskCoordinator, config: Optional[BLEConfig] = None):
        """
        Args:
            coordinator: Provides status publishing and notifications.
            config: BLE configuration. Defaults to BLEConfig().
        """
        self.coordinator = coordinator
        self.config = config if config else BLEConfig()
        self.aggregator = StatusAggregator(self.config.rr_twitch_threshold)

        self.connected = False
        self.frame_count = 0
        self.dropped_count = 0
        self.last_measurement: Optional[HeartRateMeasurement] = None

        logger.info("BLE frame collector initialized")

    def handle_notification(self, sender: Any, data: bytes) -> Optional[HeartRateStatus]:
        """
        Decode one measurement notification and publish the new status.

        Args:
            sender: Characteristic handle or object the notification came from.
            data: Raw notification payload.

        Returns:
            The published status, or None if the frame was dropped.
        """
        self.frame_count += 1

        if not data or len(data) < required_length(data[0]):
            self.dropped_count += 1
            self.coordinator.notify(ErrorPopup.intermittent(
                f"Dropped malformed heart rate frame from {sender}: {bytes(data).hex()}"
            ))
            return None

        self.connected = True
        measurement = parse_hrm(data)
        self.last_measurement = measurement
        status = self.aggregator.apply(measurement)
        self.coordinator.publish_status(status)
        return status

    def handle_battery(self, percent: int) -> HeartRateStatus:
        """Publish a battery level read from the battery characteristic."""
        status = self.aggregator.set_battery(percent)
        self.coordinator.publish_status(status)
        return status

    def handle_disconnect(self) -> HeartRateStatus:
        """Reset to the default status and publish it (0 bpm)."""
        logger.info("BLE heart rate monitor disconnected")
        self.connected = False
        status = self.aggregator.reset()
        self.coordinator.publish_status(status)
        return status

    def get_status(self) -> dict:
        return {
            'source': 'ble',
            'connected': self.connected,
            'saved_device': self.config.saved_name or self.config.saved_address or None,
            'frames_received': self.frame_count,
            'frames_dropped': self.dropped_count,
        }

    def __repr__(self):
        status = "connected" if self.connected else "disconnected"
        return f"<BLEFrameCollector(status={status}, frames={self.frame_count})>"
