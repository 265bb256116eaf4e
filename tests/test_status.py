"""
Tests for the Twitch detector and the Status aggregator
"""

from datetime import timedelta

import pytest

from iron_heart.heart_rate import (
    BatteryLevel,
    BatteryState,
    HeartRateMeasurement,
    HeartRateStatus,
    JSONHeartRate,
    StatusAggregator,
    Twitcher,
)


# ---------------------------------------------------------------------------
# Twitcher
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("interval_s, expected", [
    (0.85, (True, False)),   # heart sped up
    (1.2, (False, True)),    # heart slowed
    (0.95, (False, False)),  # within threshold
    (1.05, (False, False)),
])
def test_twitcher_at_60_bpm(interval_s, expected):
    twitcher = Twitcher(0.1)
    assert twitcher.handle(60, [timedelta(seconds=interval_s)]) == expected


def test_twitcher_exact_threshold_is_not_a_twitch():
    twitcher = Twitcher(0.1)
    assert twitcher.handle(60, [timedelta(seconds=0.9)]) == (False, False)
    assert twitcher.handle(60, [timedelta(seconds=1.1)]) == (False, False)


def test_twitcher_uses_newest_interval():
    twitcher = Twitcher(0.1)
    intervals = [timedelta(seconds=0.5), timedelta(seconds=1.0)]
    assert twitcher.handle(60, intervals) == (False, False)


def test_twitcher_without_intervals_or_bpm():
    twitcher = Twitcher(0.1)
    assert twitcher.handle(60, []) == (False, False)
    assert twitcher.handle(0, [timedelta(seconds=0.5)]) == (False, False)


# ---------------------------------------------------------------------------
# BatteryLevel
# ---------------------------------------------------------------------------

def test_battery_level_str():
    assert str(BatteryLevel.level(87)) == "87%"
    assert str(BatteryLevel.unknown()) == "unknown"
    assert str(BatteryLevel.not_reported()) == "not_reported"


def test_default_status_is_disconnected():
    status = HeartRateStatus()
    assert status.heart_rate_bpm == 0
    assert not status.connected
    assert status.latest_rr is None
    assert status.battery_level.state is BatteryState.UNKNOWN


# ---------------------------------------------------------------------------
# StatusAggregator
# ---------------------------------------------------------------------------

def test_apply_measurement_keeps_only_newest_interval():
    aggregator = StatusAggregator(0.1)
    measurement = HeartRateMeasurement(
        bpm=60,
        rr_intervals=[timedelta(seconds=0.8), timedelta(seconds=0.85)],
    )
    status = aggregator.apply(measurement)

    assert status.heart_rate_bpm == 60
    assert status.rr_intervals == [timedelta(seconds=0.85)]
    assert status.twitch_up and not status.twitch_down


def test_apply_without_interval_keeps_previous_interval():
    aggregator = StatusAggregator(0.1)
    aggregator.apply(HeartRateMeasurement(bpm=60, rr_intervals=[timedelta(seconds=1.0)]))
    status = aggregator.apply(HeartRateMeasurement(bpm=75))

    assert status.heart_rate_bpm == 75
    assert status.rr_intervals == [timedelta(seconds=1.0)]


def test_apply_json_record():
    aggregator = StatusAggregator(0.1, initial_battery=BatteryLevel.not_reported())
    status = aggregator.apply(JSONHeartRate(bpm=72, latest_rr_ms=830, battery=64))

    assert status.heart_rate_bpm == 72
    assert status.latest_rr == timedelta(milliseconds=830)
    assert status.battery_level == BatteryLevel.level(64)


def test_battery_untouched_when_not_reported():
    aggregator = StatusAggregator(0.1)
    aggregator.set_battery(50)
    status = aggregator.apply(JSONHeartRate(bpm=72))
    assert status.battery_level == BatteryLevel.level(50)


def test_reapplying_identical_update_is_idempotent():
    aggregator = StatusAggregator(0.1)
    measurement = HeartRateMeasurement(bpm=60, rr_intervals=[timedelta(seconds=1.2)])

    first = aggregator.apply(measurement)
    second = aggregator.apply(measurement)

    assert first == second
    assert (second.twitch_up, second.twitch_down) == (False, True)


def test_apply_returns_independent_snapshot():
    aggregator = StatusAggregator(0.1)
    snapshot = aggregator.apply(HeartRateMeasurement(bpm=60, rr_intervals=[timedelta(seconds=1)]))
    snapshot.rr_intervals.append(timedelta(seconds=5))
    snapshot.heart_rate_bpm = 1

    assert aggregator.status.heart_rate_bpm == 60
    assert aggregator.status.rr_intervals == [timedelta(seconds=1)]


def test_reset_restores_initial_battery():
    aggregator = StatusAggregator(0.1, initial_battery=BatteryLevel.not_reported())
    aggregator.apply(JSONHeartRate(bpm=72, battery=10))
    status = aggregator.reset()

    assert status == HeartRateStatus(battery_level=BatteryLevel.not_reported())


def test_apply_rejects_unknown_update():
    with pytest.raises(TypeError):
        StatusAggregator(0.1).apply({'bpm': 70})
