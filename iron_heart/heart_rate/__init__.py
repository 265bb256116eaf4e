"""
Heart Rate Module for Iron Heart
Decoding, status aggregation and twitch detection

Architecture:
- measurement: Binary GATT frame decoder
- feed: JSON text-feed record
- status: Current status and the aggregator that updates it
- twitcher: RR interval deviation detector
"""

from .feed import JSONHeartRate
from .measurement import HeartRateMeasurement, SensorContact, parse_hrm, required_length
from .status import BatteryLevel, BatteryState, HeartRateStatus, StatusAggregator
from .twitcher import Twitcher

__all__ = [
    'JSONHeartRate',
    'HeartRateMeasurement',
    'SensorContact',
    'parse_hrm',
    'required_length',
    'BatteryLevel',
    'BatteryState',
    'HeartRateStatus',
    'StatusAggregator',
    'Twitcher',
]
