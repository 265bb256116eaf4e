"""
WebSocket Source Module for Iron Heart
JSON heart rate feeds over a persistent WebSocket connection

Architecture:
- Config: Listener address and twitch threshold
- Collector: One-client-at-a-time actor folding messages into the status
"""

from .collector import WebsocketActor
from .config import WebSocketConfig

__all__ = [
    'WebsocketActor',
    'WebSocketConfig',
]
