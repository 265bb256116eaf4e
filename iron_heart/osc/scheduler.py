"""
OSC Emission Scheduler
Sends status bundles on every update and drives the synthetic heartbeat pulse

States:
    IDLE          no heartbeat known, nothing pulses
    ACTIVE        live statuses arriving, bundles sent and beats pulsing
    MIMICKING     source dropped out with hide_disconnections on; the last
                  status keeps being reported and beats keep pulsing
    SHUTTING_DOWN reset packets sent, loops exiting

Three loops share the scheduler state on one event loop:
    receive  statuses from the channel, bundle on each
    beat     toggle + pulse at the current RR period
    mimic    re-send the cached status every mimic_interval_s while MIMICKING
"""

import asyncio
import ipaddress
import logging
from datetime import timedelta
from enum import Enum
from typing import Optional, Union

import numpy as np
from pythonosc.osc_bundle import OscBundle
from pythonosc.osc_message import OscMessage
from pythonosc.udp_client import SimpleUDPClient

from iron_heart.coordinator.shutdown import ShutdownToken
from iron_heart.coordinator.updates import ErrorPopup, StatusChannel, UpdateBroadcaster
from iron_heart.errors import OSCSetupError
from iron_heart.heart_rate.status import HeartRateStatus

from .addresses import OSCAddresses
from .config import OSCConfig
from .packets import form_beat_message, form_bpm_bundle

logger = logging.getLogger(__name__)

INITIAL_RR = timedelta(seconds=1)


class EmitterState(Enum):
    IDLE = "idle"
    ACTIVE = "active"
    MIMICKING = "mimicking"
    SHUTTING_DOWN = "shutting_down"


def rr_from_bpm(bpm: int) -> timedelta:
    """Beat period implied by bpm, used until a real RR interval is seen."""
    return timedelta(seconds=60.0 / bpm)


def open_osc_client(config: OSCConfig) -> SimpleUDPClient:
    """
    Create the outbound UDP client.

    Raises:
        OSCSetupError if the target is not an IP address or the socket
        cannot be created.
    """
    try:
        ipaddress.ip_address(config.target_ip)
    except ValueError as e:
        raise OSCSetupError(f"Invalid OSC target IP address: {config.target_ip!r}") from e
    if not 0 < config.port < 65536:
        raise OSCSetupError(f"Invalid OSC target port: {config.port}")

    try:
        return SimpleUDPClient(config.target_ip, config.port)
    except OSError as e:
        raise OSCSetupError(f"Failed to bind UDP socket: {e}") from e


class EmissionScheduler:
    """
    OSC emitter for one session.

    Owns the cached status and the UDP client; statuses reach it only
    through the StatusChannel, of which it is the only consumer.
    """

    def __init__(
        self,
        status_channel: StatusChannel,
        config: OSCConfig,
        shutdown: ShutdownToken,
        client: Optional[SimpleUDPClient] = None,
        broadcaster: Optional[UpdateBroadcaster] = None,
        rng: Optional[np.random.Generator] = None,
    ):
        """
        Args:
            status_channel: Channel the sources publish statuses to.
            config: OSC configuration.
            shutdown: Session shutdown token.
            client: Anything with send(packet). Opened from config if None.
            broadcaster: Receives send-failure notifications.
            rng: Random generator for mimic jitter.
        """
        self.status_channel = status_channel
        self.config = config
        self.addresses = OSCAddresses.from_config(config)
        self.client = client if client is not None else open_osc_client(config)
        self.broadcaster = broadcaster
        self._rng = rng if rng is not None else np.random.default_rng()

        # Session token: cancelled with the global one, or alone when the
        # status channel closes
        self._token = shutdown.child_token('osc')

        self.state = EmitterState.IDLE
        self.hr_status = HeartRateStatus()
        self.latest_rr = INITIAL_RR
        self.use_real_rr = False
        self.toggle_beat = True
        self._beating = asyncio.Event()

        self.packets_sent = 0
        self.send_failures = 0
        self._failing = False

        logger.info(
            f"OSC emitter targeting {config.target_ip}:{config.port} "
            f"(prefix {config.address_prefix}, hide disconnections: {config.hide_disconnections})"
        )

    # -----------------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------------

    async def run(self):
        """Run until the shutdown token is cancelled or the channel closes."""
        self.send_reset()
        loops = [
            asyncio.create_task(self._receive_loop(), name='osc-receive'),
            asyncio.create_task(self._beat_loop(), name='osc-beat'),
            asyncio.create_task(self._mimic_loop(), name='osc-mimic'),
        ]
        try:
            await asyncio.gather(*loops)
        finally:
            self._token.cancel()
            # Every loop finishes its own cleanup before the final reset
            await asyncio.gather(*loops, return_exceptions=True)
            self._transition(EmitterState.SHUTTING_DOWN, "shutdown")
            self.send_reset()
            logger.info(f"✓ OSC emitter stopped ({self.packets_sent} packets sent)")

    def handle_status(self, status: HeartRateStatus):
        """
        Apply one status from the channel.

        Args:
            status: Status published by a source.
        """
        if status.heart_rate_bpm > 0:
            self.hr_status = status
            if status.rr_intervals:
                self.latest_rr = status.rr_intervals[-1]
                self.use_real_rr = True
            elif not self.use_real_rr:
                self.latest_rr = rr_from_bpm(status.heart_rate_bpm)
            self._transition(EmitterState.ACTIVE, "heartbeat")
            self.send_bpm_bundle(status)
        elif self.config.hide_disconnections and self.hr_status.heart_rate_bpm > 0:
            self._transition(EmitterState.MIMICKING, "source lost, hiding disconnection")
        else:
            self.hr_status = status
            self._transition(EmitterState.IDLE, "no heartbeat")
            self.send_bpm_bundle(status)

    def mimic_status(self) -> HeartRateStatus:
        """Status derived from the last known one, sent while MIMICKING."""
        mimic = self.hr_status.copy()
        jitter = self.config.mimic_jitter_bpm
        if jitter > 0:
            offset = int(self._rng.integers(-jitter, jitter + 1))
            mimic.heart_rate_bpm = max(1, mimic.heart_rate_bpm + offset)
        return mimic

    def next_beat_delay(self) -> float:
        """Seconds from the end of a pulse to the next beat."""
        return max(self.latest_rr.total_seconds() - self.config.pulse_length_s, 0.0)

    def send_bpm_bundle(self, status: HeartRateStatus):
        self._send(form_bpm_bundle(status, self.addresses, self.config.only_positive_floathr))

    def send_beat_param(self, beat: bool, address: str):
        self._send(form_beat_message(beat, address))

    def send_reset(self):
        """Zero bpm bundle plus both beat parameters off."""
        self.send_bpm_bundle(HeartRateStatus())
        self.send_beat_param(False, self.addresses.beat_toggle)
        self.send_beat_param(False, self.addresses.beat_pulse)

    # -----------------------------------------------------------------------
    # Loops
    # -----------------------------------------------------------------------

    async def _receive_loop(self):
        while True:
            cancelled, status = await self._token.race(self.status_channel.recv())
            if cancelled:
                logger.info("Shutting down OSC emitter")
                return
            if status is None:
                logger.error("OSC: status channel closed")
                self._token.cancel()
                return
            self.handle_status(status)

    async def _beat_loop(self):
        while True:
            if not self._beating.is_set():
                cancelled, _ = await self._token.race(self._beating.wait())
                if cancelled:
                    return

            self.send_beat_param(self.toggle_beat, self.addresses.beat_toggle)
            self.send_beat_param(True, self.addresses.beat_pulse)
            cancelled = await self._token.sleep(self.config.pulse_length_s)
            self.send_beat_param(False, self.addresses.beat_pulse)
            self.toggle_beat = not self.toggle_beat
            if cancelled:
                return

            if await self._token.sleep(self.next_beat_delay()):
                return

    async def _mimic_loop(self):
        while True:
            if await self._token.sleep(self.config.mimic_interval_s):
                return
            if self.state is EmitterState.MIMICKING and self.hr_status.heart_rate_bpm > 0:
                logger.debug(f"Mimicking {self.hr_status.heart_rate_bpm} bpm")
                self.send_bpm_bundle(self.mimic_status())

    # -----------------------------------------------------------------------
    # Private helpers
    # -----------------------------------------------------------------------

    def _transition(self, new_state: EmitterState, reason: str):
        if new_state is self.state:
            return
        logger.info(f"OSC emitter {self.state.value} → {new_state.value} ({reason})")
        self.state = new_state
        if new_state in (EmitterState.ACTIVE, EmitterState.MIMICKING):
            self._beating.set()
        else:
            self._beating.clear()

    def _send(self, packet: Union[OscBundle, OscMessage]):
        try:
            self.client.send(packet)
        except OSError as e:
            self.send_failures += 1
            if not self._failing:
                self._failing = True
                message = f"Failed to send OSC packet: {e}"
                if self.broadcaster:
                    self.broadcaster.notify(ErrorPopup.intermittent(message))
                else:
                    logger.warning(message)
            return
        self._failing = False
        self.packets_sent += 1

    def get_status(self) -> dict:
        return {
            'state': self.state.value,
            'bpm': self.hr_status.heart_rate_bpm,
            'latest_rr_ms': int(self.latest_rr.total_seconds() * 1000),
            'use_real_rr': self.use_real_rr,
            'packets_sent': self.packets_sent,
            'send_failures': self.send_failures,
        }

    def __repr__(self):
        return f"<EmissionScheduler(state={self.state.value}, bpm={self.hr_status.heart_rate_bpm})>"
