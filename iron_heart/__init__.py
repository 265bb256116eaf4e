"""
Iron Heart
Relays heart rate data from a Bluetooth strap or a WebSocket text feed to
avatar parameters over OSC.
"""

__version__ = '1.0.0'
