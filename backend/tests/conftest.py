"""
Pytest configuration and shared fixtures for engine tests.

WHAT: Markers plus fast settings, a simulated clock and sample inputs
WHY: Run the full round loop with zero wall-clock delay
HOW: Register markers, build orchestrators on SimulatedClock
"""

import pytest

from negotiation_engine.core.clock import SimulatedClock
from negotiation_engine.core.config import Settings
from negotiation_engine.core.orchestrator import NegotiationOrchestrator
from negotiation_engine.services.event_channel import EventChannel
from tests.fixtures.sample_data import make_buyer_request, make_product


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests (isolated component tests)"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests (multiple components)"
    )


@pytest.fixture
def fast_settings():
    """
    Settings for tests.

    WHAT: Default limits with pacing still enabled
    WHY: Pacing goes through the simulated clock, so it costs no real time
    HOW: Explicit values, no .env lookup
    """
    return Settings(
        _env_file=None,
        MAX_ROUNDS=8,
        MAX_DURATION_MINUTES=30,
        ROUND_DELAY_SECONDS=0.5,
        LOG_LEVEL="DEBUG",
        LOG_FILE="",
    )


@pytest.fixture
def simulated_clock():
    return SimulatedClock()


@pytest.fixture
def event_channel():
    return EventChannel()


@pytest.fixture
def orchestrator(fast_settings, simulated_clock, event_channel):
    return NegotiationOrchestrator(
        fast_settings,
        clock=simulated_clock,
        events=event_channel,
    )


@pytest.fixture
def buyer_request():
    """Budget 10000 for 100-125 units, low urgency."""
    return make_buyer_request()


@pytest.fixture
def product():
    """80/unit tier at MOQ 100, 5-10 day lead time."""
    return make_product()
