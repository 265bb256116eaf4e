"""
Tests for the BLE frame collector
"""

from datetime import timedelta

from iron_heart.coordinator import ErrorPopup
from iron_heart.heart_rate.status import BatteryLevel
from iron_heart.sources.ble import BLEConfig, BLEFrameCollector


def test_frame_published(coordinator):
    collector = BLEFrameCollector(coordinator)
    status = collector.handle_notification('hrm', bytes([0b10110, 60, 0, 3]))

    assert status.heart_rate_bpm == 60
    assert status.latest_rr == timedelta(seconds=768 / 1024)
    assert status.twitch_up
    assert collector.last_measurement.sensor_contact.detected is True
    assert coordinator.status_channel.qsize() == 1


def test_short_frames_dropped(coordinator):
    updates = coordinator.broadcaster.subscribe()
    collector = BLEFrameCollector(coordinator)

    assert collector.handle_notification('hrm', b'') is None
    assert collector.handle_notification('hrm', bytes([0b1, 70])) is None
    assert collector.handle_notification('hrm', bytes([0b1000, 70, 1])) is None

    assert collector.dropped_count == 3
    assert coordinator.status_channel.qsize() == 0
    assert all(isinstance(updates.get_nowait(), ErrorPopup) for _ in range(3))


def test_twitch_threshold_from_config(coordinator):
    collector = BLEFrameCollector(coordinator, BLEConfig(rr_twitch_threshold=0.5))
    status = collector.handle_notification('hrm', bytes([0b10000, 60, 0, 3]))
    assert not status.twitch_up


def test_battery_then_disconnect(coordinator):
    collector = BLEFrameCollector(coordinator)
    collector.handle_notification('hrm', bytes([0, 70]))

    assert collector.handle_battery(42).battery_level == BatteryLevel.level(42)

    status = collector.handle_disconnect()
    assert status.heart_rate_bpm == 0
    assert status.battery_level == BatteryLevel.unknown()
    assert not collector.connected
    assert coordinator.status_channel.qsize() == 3


def test_get_status(coordinator):
    collector = BLEFrameCollector(coordinator, BLEConfig(saved_name='Polar H10'))
    collector.handle_notification('hrm', bytes([0, 70]))
    assert collector.get_status() == {
        'source': 'ble',
        'connected': True,
        'saved_device': 'Polar H10',
        'frames_received': 1,
        'frames_dropped': 0,
    }
