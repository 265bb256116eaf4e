"""
OSC Addresses
Full parameter paths built once per emission session
"""

from dataclasses import dataclass

from .config import OSCConfig


def format_address(prefix: str, param: str) -> str:
    """
    Join prefix and parameter name, collapsing duplicate separators.

    Args:
        prefix: Address prefix, e.g. '/avatar/parameters/'.
        param: Parameter name, e.g. 'HR'.

    Returns:
        Address such as '/avatar/parameters/HR'.
    """
    address = f"{prefix}/{param}"
    while '//' in address:
        address = address.replace('//', '/')
    return address


@dataclass(frozen=True)
class OSCAddresses:
    """Immutable set of the addresses the emitter writes to."""
    beat_toggle: str
    beat_pulse: str
    int_hr: str
    float_hr: str
    connected: str
    latest_rr: str

    @classmethod
    def from_config(cls, config: OSCConfig) -> 'OSCAddresses':
        prefix = config.address_prefix
        return cls(
            beat_toggle=format_address(prefix, config.param_beat_toggle),
            beat_pulse=format_address(prefix, config.param_beat_pulse),
            int_hr=format_address(prefix, config.param_bpm_int),
            float_hr=format_address(prefix, config.param_bpm_float),
            connected=format_address(prefix, config.param_hrm_connected),
            latest_rr=format_address(prefix, config.param_latest_rr_int),
        )
