"""
Heart Rate Measurement Decoder
Parses GATT Heart Rate Measurement notifications into structured readings

Frame layout (all multi-byte fields little-endian):
    byte 0        flags
                    bit 0: bpm is uint16 (else uint8)
                    bit 1: sensor contact detected (only meaningful with bit 2)
                    bit 2: sensor contact is reported
                    bit 3: energy expended field present
    bytes 1..     bpm (1 or 2 bytes)
    optional      energy expended, uint16, right after bpm
    remaining     zero or more uint16 RR interval ticks, 1/1024 s each
"""

import struct
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import List, Optional, Tuple

FLAG_BPM_16_BIT = 0b0001
FLAG_CONTACT_DETECTED = 0b0010
FLAG_CONTACT_SUPPORTED = 0b0100
FLAG_ENERGY_EXPENDED = 0b1000

RR_TICKS_PER_SECOND = 1024.0

_RR_FORMAT = struct.Struct('<H')


class SensorContact(Enum):
    """
    Sensor contact as reported by the strap.

    Kept as three explicit states so that "not supported" can never be
    confused with "supported but no contact".
    """
    NOT_SUPPORTED = "not_supported"
    NOT_DETECTED = "not_detected"
    DETECTED = "detected"

    @classmethod
    def from_flags(cls, flags: int) -> 'SensorContact':
        if not flags & FLAG_CONTACT_SUPPORTED:
            return cls.NOT_SUPPORTED
        if flags & FLAG_CONTACT_DETECTED:
            return cls.DETECTED
        return cls.NOT_DETECTED

    @property
    def detected(self) -> Optional[bool]:
        """None when unsupported, otherwise whether the strap has skin contact."""
        if self is SensorContact.NOT_SUPPORTED:
            return None
        return self is SensorContact.DETECTED


@dataclass
class HeartRateMeasurement:
    """
    One decoded heart rate notification.

    Energy expended is in joules and can wrap on very long sessions; it is
    passed through untouched. RR intervals are oldest first. An empty list
    cannot be told apart from a strap that does not report RR intervals
    at all, since beats can be slower than notifications.
    """
    bpm: int
    sensor_contact: SensorContact = SensorContact.NOT_SUPPORTED
    energy_expended: Optional[int] = None
    rr_intervals: List[timedelta] = field(default_factory=list)


def frame_layout(flags: int) -> List[Tuple[str, struct.Struct]]:
    """
    Ordered list of the fixed fields that follow the flags byte.

    Args:
        flags: First byte of the frame.

    Returns:
        List of (field name, struct) pairs in wire order.
    """
    layout = [('bpm', struct.Struct('<H' if flags & FLAG_BPM_16_BIT else '<B'))]
    if flags & FLAG_ENERGY_EXPENDED:
        layout.append(('energy_expended', struct.Struct('<H')))
    return layout


def required_length(flags: int) -> int:
    """
    Minimum frame length for the given flags byte.

    Args:
        flags: First byte of the frame.

    Returns:
        Number of bytes needed to hold the flags byte and every fixed field.
    """
    return 1 + sum(fmt.size for _, fmt in frame_layout(flags))


def ticks_to_interval(ticks: int) -> timedelta:
    """Convert a 1/1024 s RR tick count into a duration."""
    return timedelta(seconds=ticks / RR_TICKS_PER_SECOND)


def parse_hrm(data: bytes) -> HeartRateMeasurement:
    """
    Decode a heart rate measurement frame.

    The frame is assumed to be well formed: callers must check it against
    required_length() first. A trailing odd byte is ignored.

    Args:
        data: Raw notification payload.

    Returns:
        HeartRateMeasurement decoded from the frame.
    """
    flags = data[0]
    values = {}
    offset = 1
    for name, fmt in frame_layout(flags):
        (values[name],) = fmt.unpack_from(data, offset)
        offset += fmt.size

    rr_count = (len(data) - offset) // _RR_FORMAT.size
    rr_bytes = bytes(data[offset:offset + rr_count * _RR_FORMAT.size])
    rr_intervals = [ticks_to_interval(ticks) for (ticks,) in _RR_FORMAT.iter_unpack(rr_bytes)]

    return HeartRateMeasurement(
        bpm=values['bpm'],
        sensor_contact=SensorContact.from_flags(flags),
        energy_expended=values.get('energy_expended'),
        rr_intervals=rr_intervals,
    )
