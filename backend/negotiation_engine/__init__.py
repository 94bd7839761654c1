"""B2B bilateral negotiation engine."""

from .core.config import Settings
from .core.clock import SystemClock, SimulatedClock
from .core.orchestrator import NegotiationOrchestrator
from .services.event_channel import EventChannel
from .services.contract_assembler import assemble_contract, approve_contract, reject_contract

__all__ = [
    "Settings",
    "SystemClock",
    "SimulatedClock",
    "NegotiationOrchestrator",
    "EventChannel",
    "assemble_contract",
    "approve_contract",
    "reject_contract",
]
