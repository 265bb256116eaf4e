"""
Shared fixtures for the Iron Heart test suite
"""

import logging

import pytest
from pythonosc.osc_bundle import OscBundle

from iron_heart.coordinator import TaskCoordinator
from iron_heart.osc.addresses import OSCAddresses
from iron_heart.osc.config import OSCConfig

logging.basicConfig(
    level=logging.DEBUG,
    format='%(asctime)s [%(levelname)s] %(name)s: %(message)s'
)


class FakeOSCClient:
    """Records every packet instead of sending it over UDP."""

    def __init__(self):
        self.packets = []

    def send(self, packet):
        self.packets.append(packet)

    def bundles(self):
        return [p for p in self.packets if isinstance(p, OscBundle)]

    def messages(self):
        return [p for p in self.packets if not isinstance(p, OscBundle)]

    @staticmethod
    def values(bundle: OscBundle) -> dict:
        """Map address -> single param for every message in the bundle."""
        return {message.address: message.params[0] for message in bundle}


class FailingOSCClient(FakeOSCClient):
    def send(self, packet):
        raise OSError("Network is unreachable")


@pytest.fixture
def osc_client():
    return FakeOSCClient()


@pytest.fixture
def failing_osc_client():
    return FailingOSCClient()


@pytest.fixture
def osc_config():
    return OSCConfig()


@pytest.fixture
def addresses(osc_config):
    return OSCAddresses.from_config(osc_config)


@pytest.fixture
def coordinator():
    return TaskCoordinator()
