"""
BLE Source Module for Iron Heart
Heart rate straps speaking the GATT Heart Rate Measurement format

Architecture:
- Config: Saved device and twitch threshold
- Collector: Frame validation, decoding and status publishing
"""

from .collector import BLEFrameCollector
from .config import BLEConfig

__all__ = [
    'BLEFrameCollector',
    'BLEConfig',
]
