"""
BLE Source Configuration
Heart rate strap settings used by the transport and the frame collector
"""

from dataclasses import dataclass


@dataclass
class BLEConfig:
    """
    Configuration for heart rate straps reached over Bluetooth LE.

    The saved device is remembered by the transport so it can reconnect
    without a scan; the collector only uses the twitch threshold.
    """

    never_ask_to_save: bool = False
    saved_address: str = ''
    saved_name: str = ''

    # Twitch detection
    rr_twitch_threshold: float = 0.1  # Fraction of the expected interval
