"""
Pydantic API schemas for the HTTP surface.

WHAT: Request and response models for FastAPI
WHY: Type-safe validation and serialization at the boundary
HOW: Pydantic v2 models wrapping the domain models
"""

from typing import Optional, List
from pydantic import BaseModel, Field
from datetime import datetime

from .b2b import BuyerRequest, B2BProduct
from .negotiation import Strategy, NegotiationPhase, SessionStatus


class StartNegotiationRequest(BaseModel):
    """Start a negotiation between one request and one product."""
    buyer_request: BuyerRequest
    product: B2BProduct
    buyer_strategy: Strategy = "balanced"
    supplier_strategy: Optional[Strategy] = None
    session_id: Optional[str] = Field(default=None, min_length=1, max_length=100)
    max_duration_minutes: Optional[float] = Field(default=None, gt=0)


class ActiveSessionSummary(BaseModel):
    """In-flight session as reported by the active list."""
    session_id: str
    buyer_request_id: str
    product_id: str
    status: SessionStatus
    current_phase: NegotiationPhase
    current_round: int
    rounds_completed: int
    start_time: datetime
    last_activity: datetime


class ActiveSessionsResponse(BaseModel):
    sessions: List[ActiveSessionSummary]
    total: int


class CancelResponse(BaseModel):
    session_id: str
    cancelled: bool
    message: str


class EngineStatusResponse(BaseModel):
    """Configured limits and load."""
    app_name: str
    version: str
    max_rounds: int
    max_duration_minutes: float
    round_delay_seconds: float
    active_sessions: int
    event_subscribers: int
