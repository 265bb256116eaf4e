"""
Tests for the Heart Rate Measurement decoder
"""

from datetime import timedelta

import pytest

from iron_heart.heart_rate.measurement import (
    HeartRateMeasurement,
    SensorContact,
    frame_layout,
    parse_hrm,
    required_length,
    ticks_to_interval,
)


def rr(ticks):
    return timedelta(seconds=ticks / 1024.0)


@pytest.mark.parametrize("frame, expected", [
    # Simplest: 8-bit bpm, no contact support
    ([0, 70], HeartRateMeasurement(bpm=70)),
    # Contact supported, not detected / detected
    ([0b100, 70], HeartRateMeasurement(bpm=70, sensor_contact=SensorContact.NOT_DETECTED)),
    ([0b110, 70], HeartRateMeasurement(bpm=70, sensor_contact=SensorContact.DETECTED)),
    # 16-bit bpm
    ([1, 70, 0], HeartRateMeasurement(bpm=70)),
    ([1, 10, 1], HeartRateMeasurement(bpm=266)),
    # Energy expended
    ([0b1000, 70, 10, 1], HeartRateMeasurement(bpm=70, energy_expended=266)),
    ([0b1001, 70, 0, 10, 1], HeartRateMeasurement(bpm=70, energy_expended=266)),
    # RR intervals, oldest first
    ([0b10000, 70, 10, 1], HeartRateMeasurement(bpm=70, rr_intervals=[rr(266)])),
    ([0b10000, 70, 10, 1, 11, 2, 12, 3],
     HeartRateMeasurement(bpm=70, rr_intervals=[rr(266), rr(523), rr(780)])),
    ([0b10001, 70, 0, 10, 1], HeartRateMeasurement(bpm=70, rr_intervals=[rr(266)])),
    # Everything at once
    ([0b11001, 70, 0, 11, 2, 10, 1],
     HeartRateMeasurement(bpm=70, energy_expended=523, rr_intervals=[rr(266)])),
])
def test_parse_hrm(frame, expected):
    assert parse_hrm(bytes(frame)) == expected


def test_contact_detected_bit_ignored_without_support_bit():
    measurement = parse_hrm(bytes([0b010, 70]))
    assert measurement.sensor_contact is SensorContact.NOT_SUPPORTED
    assert measurement.sensor_contact.detected is None


def test_contact_detected_property():
    assert SensorContact.DETECTED.detected is True
    assert SensorContact.NOT_DETECTED.detected is False


def test_trailing_odd_byte_ignored():
    measurement = parse_hrm(bytes([0b10000, 70, 10, 1, 99]))
    assert measurement.rr_intervals == [rr(266)]


def test_accepts_bytearray():
    assert parse_hrm(bytearray([0b10000, 70, 10, 1])).rr_intervals == [rr(266)]


@pytest.mark.parametrize("flags, expected", [
    (0b00000, 2),
    (0b00001, 3),
    (0b01000, 4),
    (0b01001, 5),
    (0b10110, 2),
])
def test_required_length(flags, expected):
    assert required_length(flags) == expected


@pytest.mark.parametrize("flags", range(32))
@pytest.mark.parametrize("rr_count", [0, 1, 4])
def test_rr_count_matches_trailing_bytes(flags, rr_count):
    """Any frame of required length plus 2k bytes decodes to k intervals."""
    fixed = required_length(flags)
    frame = bytes([flags]) + bytes(range(1, fixed)) + bytes([0, 4]) * rr_count
    measurement = parse_hrm(frame)
    assert len(measurement.rr_intervals) == rr_count
    assert all(interval == rr(1024) for interval in measurement.rr_intervals)
    assert (measurement.energy_expended is not None) == bool(flags & 0b1000)


def test_frame_layout_field_order():
    names = [name for name, _ in frame_layout(0b1001)]
    assert names == ['bpm', 'energy_expended']


def test_ticks_to_interval():
    assert ticks_to_interval(1024) == timedelta(seconds=1)
    assert ticks_to_interval(512) == timedelta(milliseconds=500)
