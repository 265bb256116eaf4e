"""
WebSocket Source Configuration
Listener settings for JSON heart rate feeds
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class WebSocketConfig:
    """
    Configuration for the WebSocket text-feed listener.

    Apps connect to ws://<host>:<port>/ and stream one JSON object per
    text frame.
    """

    host: str = '0.0.0.0'
    port: int = 5566

    # Twitch detection
    rr_twitch_threshold: float = 0.1  # Fraction of the expected interval

    @classmethod
    def with_port_override(cls, port_override: Optional[int], base: Optional['WebSocketConfig'] = None) -> 'WebSocketConfig':
        """
        Copy of base (or the defaults) with the port replaced when given.

        Args:
            port_override: Port from the command line, or None.
            base: Configuration loaded from settings.

        Returns:
            WebSocketConfig to bind with.
        """
        config = base if base else cls()
        if port_override is None:
            return config
        return cls(host=config.host, port=port_override, rr_twitch_threshold=config.rr_twitch_threshold)
