"""
OSC Emitter Configuration
Target address, parameter names and pulse timing
"""

from dataclasses import dataclass


@dataclass
class OSCConfig:
    """
    Configuration for the OSC emitter.

    Parameter names are joined to address_prefix with '/'; duplicate
    separators are collapsed, so a prefix with or without a trailing
    slash gives the same addresses.
    """

    # Destination
    target_ip: str = '127.0.0.1'
    port: int = 9000

    # Heartbeat pulse
    pulse_length_ms: int = 100  # How long isHRBeat stays true per beat

    # Float bpm mapping
    only_positive_floathr: bool = False  # Map to 0..1 instead of -1..1

    # Disconnect handling
    hide_disconnections: bool = False  # Mimic the last status instead of reporting 0 bpm
    mimic_interval_s: float = 7.0  # Seconds between mimicked bundles
    mimic_jitter_bpm: int = 0  # +/- bpm noise on mimicked bundles, 0 disables

    # Parameter paths
    address_prefix: str = '/avatar/parameters/'
    param_hrm_connected: str = 'isHRConnected'
    param_beat_toggle: str = 'HeartBeatToggle'
    param_beat_pulse: str = 'isHRBeat'
    param_bpm_int: str = 'HR'
    param_bpm_float: str = 'floatHR'
    param_latest_rr_int: str = 'RRInterval'

    @property
    def pulse_length_s(self) -> float:
        return self.pulse_length_ms / 1000.0

    @classmethod
    def for_hidden_disconnections(cls) -> 'OSCConfig':
        """
        Configuration that keeps the avatar display alive through dropouts.

        Returns:
            OSCConfig with hide_disconnections=True.
        """
        return cls(hide_disconnections=True)
