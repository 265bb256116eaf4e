"""
RR Twitch Detector
Flags beats whose interval deviates from the interval implied by the bpm
"""

import math
from datetime import timedelta
from typing import Sequence, Tuple


class Twitcher:
    """
    Compares the newest RR interval with the interval expected from bpm.

    A "twitch up" means the heart sped up (interval shorter than expected by
    more than the threshold fraction), a "twitch down" means it slowed.
    Holds no state besides the threshold.
    """

    def __init__(self, threshold: float):
        """
        Args:
            threshold: Fractional deviation needed to flag a twitch (0.1 = 10%).
        """
        self.threshold = threshold

    def handle(self, bpm: int, rr_intervals: Sequence[timedelta]) -> Tuple[bool, bool]:
        """
        Evaluate the newest interval against the bpm.

        Args:
            bpm: Current beats per minute.
            rr_intervals: Current RR intervals, oldest first.

        Returns:
            Tuple of (twitch_up, twitch_down).
        """
        if not rr_intervals or bpm <= 0:
            return False, False

        expected = 60.0 / bpm
        actual = rr_intervals[-1].total_seconds()
        deviation = (expected - actual) / expected

        return self._exceeds(deviation), self._exceeds(-deviation)

    def _exceeds(self, deviation: float) -> bool:
        # A deviation sitting on the threshold is not a twitch
        if math.isclose(deviation, self.threshold, rel_tol=1e-9, abs_tol=1e-12):
            return False
        return deviation > self.threshold

    def __repr__(self):
        return f"<Twitcher(threshold={self.threshold})>"
