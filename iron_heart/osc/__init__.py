"""
OSC Emitter Module for Iron Heart
Forwards heart rate statuses to avatar parameters over UDP

Architecture:
- config: Target, pulse and parameter settings
- addresses: Parameter paths for one session
- packets: Bundle and beat message construction
- scheduler: Status bundles, heartbeat pulse and disconnect mimicry
"""

from .addresses import OSCAddresses, format_address
from .config import OSCConfig
from .packets import float_hr, form_beat_message, form_bpm_bundle
from .scheduler import EmissionScheduler, EmitterState, open_osc_client, rr_from_bpm

__all__ = [
    'OSCAddresses',
    'format_address',
    'OSCConfig',
    'float_hr',
    'form_beat_message',
    'form_bpm_bundle',
    'EmissionScheduler',
    'EmitterState',
    'open_osc_client',
    'rr_from_bpm',
]
