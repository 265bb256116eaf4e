"""
OSC Packets
Bundle and beat message construction for the avatar parameters
"""

import numpy as np
from pythonosc.osc_bundle import OscBundle
from pythonosc.osc_bundle_builder import IMMEDIATELY, OscBundleBuilder
from pythonosc.osc_message import OscMessage
from pythonosc.osc_message_builder import OscMessageBuilder

from iron_heart.heart_rate.status import HeartRateStatus

from .addresses import OSCAddresses

BPM_INPUT_RANGE = (0.0, 255.0)
FLOAT_HR_RANGE = (-1.0, 1.0)
FLOAT_HR_POSITIVE_RANGE = (0.0, 1.0)


def float_hr(bpm: int, only_positive: bool = False) -> float:
    """
    Map bpm linearly from 0..255 onto the float parameter range.

    Values beyond 255 bpm are clamped to the top of the range.

    Args:
        bpm: Beats per minute.
        only_positive: Map onto 0..1 instead of -1..1.

    Returns:
        Float parameter value.
    """
    output_range = FLOAT_HR_POSITIVE_RANGE if only_positive else FLOAT_HR_RANGE
    return float(np.interp(bpm, BPM_INPUT_RANGE, output_range))


def latest_rr_ms(status: HeartRateStatus) -> int:
    """Newest RR interval in whole milliseconds, 0 when disconnected or unknown."""
    if status.heart_rate_bpm == 0 or status.latest_rr is None:
        return 0
    return int(status.latest_rr.total_seconds() * 1000)


def _message(address: str, value, arg_type: str = None) -> OscMessage:
    builder = OscMessageBuilder(address=address)
    builder.add_arg(value, arg_type)
    return builder.build()


def form_bpm_bundle(
    status: HeartRateStatus,
    addresses: OSCAddresses,
    only_positive_floathr: bool = False,
) -> OscBundle:
    """
    Build the bundle sent on every status change.

    Args:
        status: Status to report.
        addresses: Parameter addresses of the session.
        only_positive_floathr: Passed through to float_hr().

    Returns:
        Immediate OscBundle with RR interval, int bpm, float bpm and connected.
    """
    bpm = status.heart_rate_bpm
    bundle = OscBundleBuilder(IMMEDIATELY)
    bundle.add_content(_message(addresses.latest_rr, latest_rr_ms(status), OscMessageBuilder.ARG_TYPE_INT))
    bundle.add_content(_message(addresses.int_hr, bpm, OscMessageBuilder.ARG_TYPE_INT))
    bundle.add_content(_message(
        addresses.float_hr, float_hr(bpm, only_positive_floathr), OscMessageBuilder.ARG_TYPE_FLOAT
    ))
    bundle.add_content(_message(addresses.connected, bpm > 0))
    return bundle.build()


def form_beat_message(beat: bool, address: str) -> OscMessage:
    """Single boolean message for the beat toggle or beat pulse parameter."""
    return _message(address, bool(beat))
