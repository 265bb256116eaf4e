"""
Iron Heart Sources
Heart rate inputs folded into the shared status

Available Sources:
- BLE: GATT Heart Rate Measurement frames handed over by the Bluetooth transport
- WebSocket: JSON heart rate messages from phone and watch apps

Only one source feeds a session at a time.
"""

from .ble import BLEConfig, BLEFrameCollector
from .websocket import WebSocketConfig, WebsocketActor

__all__ = [
    # Bluetooth LE frames
    'BLEConfig',
    'BLEFrameCollector',

    # WebSocket text feed
    'WebSocketConfig',
    'WebsocketActor',
]
