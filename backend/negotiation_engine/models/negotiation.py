"""
Negotiation domain models.

WHAT: Offers, agent profiles, rounds, sessions, results and events
WHY: Consistent typing across agents, evaluator, orchestrator and API
HOW: Pydantic v2 models; offers and personalities are frozen value types
"""

from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import Literal, Any
from datetime import datetime, timezone
from uuid import uuid4

from .b2b import Warranty
from .contract import Contract


Strategy = Literal[
    "aggressive",
    "balanced",
    "conservative",
    "time_sensitive",
    "price_focused",
    "quality_focused",
]
Role = Literal["buyer", "supplier"]
DecisionAction = Literal["accept", "counter", "reject"]
NegotiationPhase = Literal[
    "initial_offer",
    "counter_negotiation",
    "final_terms",
    "contract_review",
    "completed",
    "failed",
]
SessionStatus = Literal["initializing", "active", "paused", "completed", "failed"]
RoundStatus = Literal["active", "completed", "failed"]
EventType = Literal[
    "session_started",
    "offer_made",
    "offer_received",
    "counter_offer",
    "offer_accepted",
    "offer_rejected",
    "negotiation_completed",
    "negotiation_failed",
    "agent_thinking",
    "phase_changed",
]

STRATEGIES: tuple[str, ...] = (
    "aggressive",
    "balanced",
    "conservative",
    "time_sensitive",
    "price_focused",
    "quality_focused",
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Personality(BaseModel):
    """Negotiation disposition derived from a named strategy."""

    model_config = ConfigDict(frozen=True)

    strategy: Strategy
    price_flexibility: float = Field(ge=0.0, le=1.0)
    time_constraints: float = Field(ge=0.0, le=1.0)
    quality_focus: float = Field(ge=0.0, le=1.0)
    relationship_focus: float = Field(ge=0.0, le=1.0)
    risk_tolerance: float = Field(ge=0.0, le=1.0)


class AgentConstraints(BaseModel):
    """Hard, non-negotiable limits from the originating request or product."""

    model_config = ConfigDict(frozen=True)

    min_price: float | None = Field(default=None, ge=0.0)
    max_price: float | None = Field(default=None, ge=0.0)
    min_quantity: int | None = Field(default=None, ge=0)
    max_quantity: int | None = Field(default=None, ge=0)
    max_delivery_days: int | None = Field(default=None, ge=0)
    required_payment_terms: list[str] = Field(default_factory=list)
    deal_breakers: list[str] = Field(default_factory=list)


class AgentProfile(BaseModel):
    """Identity and disposition of one participant in a session."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    role: Role
    personality: Personality
    constraints: AgentConstraints


class Offer(BaseModel):
    """One party's proposed terms for one round."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    session_id: str
    agent_id: str
    role: Role
    round_number: int = Field(ge=1)
    timestamp: datetime = Field(default_factory=_utcnow)

    price_per_unit: float = Field(ge=0.0)
    currency: str
    quantity: int = Field(ge=1)
    delivery_days: int = Field(ge=0)
    payment_terms: str

    warranty: Warranty | None = None
    custom_terms: dict[str, str] = Field(default_factory=dict)

    reasoning: str = ""
    confidence: float = Field(ge=0.0, le=1.0)
    is_counter_offer: bool = False
    previous_offer_id: str | None = None

    @property
    def total_price(self) -> float:
        return self.price_per_unit * self.quantity


class SuggestedOffer(BaseModel):
    """Evaluator's proposal for the counter; never binding on its own."""

    price_per_unit: float | None = None
    quantity: int | None = None
    delivery_days: int | None = None


class Decision(BaseModel):
    """Outcome of evaluating an incoming offer."""

    action: DecisionAction
    reasoning: str
    confidence: float = Field(ge=0.0, le=1.0)
    price_score: float = Field(ge=0.0, le=1.0)
    quantity_score: float = Field(ge=0.0, le=1.0)
    delivery_score: float = Field(ge=0.0, le=1.0)
    overall_score: float = Field(ge=0.0, le=1.0)
    factors: list[str] = Field(default_factory=list)
    suggested_offer: SuggestedOffer | None = None


class NegotiationRound(BaseModel):
    """One paired exchange: buyer offer plus supplier counter."""

    round_number: int = Field(ge=1)
    buyer_offer: Offer | None = None
    supplier_offer: Offer | None = None
    start_time: datetime
    end_time: datetime | None = None
    status: RoundStatus = "active"
    convergence_score: float = Field(default=0.0, ge=0.0, le=1.0)


class NegotiationSession(BaseModel):
    """A single negotiation attempt, owned by one orchestrator run."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    buyer_request_id: str
    product_id: str
    supplier_id: str

    buyer_agent: AgentProfile
    supplier_agent: AgentProfile

    status: SessionStatus = "initializing"
    current_phase: NegotiationPhase = "initial_offer"
    current_round: int = Field(default=1, ge=1)
    rounds: list[NegotiationRound] = Field(default_factory=list)

    start_time: datetime
    last_activity: datetime
    max_duration: float = Field(gt=0)  # minutes

    final_offer: Offer | None = None
    agreement_reached: bool = False
    failure_reason: str | None = None

    priority: Literal["low", "medium", "high", "urgent"] = "medium"
    tags: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_roles(self):
        """Buyer and supplier slots must hold the matching roles."""
        if self.buyer_agent.role != "buyer" or self.supplier_agent.role != "supplier":
            raise ValueError("buyer_agent/supplier_agent roles are swapped")
        return self


class PriceMovement(BaseModel):
    initial_buyer_offer: float = 0.0
    initial_supplier_offer: float = 0.0
    final_price: float = 0.0
    buyer_savings: float = 0.0  # percentage
    supplier_margin: float = 0.0  # percentage


class SatisfactionScores(BaseModel):
    buyer: float = Field(ge=0.0, le=1.0)
    supplier: float = Field(ge=0.0, le=1.0)


class NegotiationMetrics(BaseModel):
    """Summary analytics computed once at termination."""

    total_rounds: int = Field(ge=0)
    price_movement: PriceMovement
    time_to_agreement: float = Field(ge=0.0)  # minutes
    convergence_rate: float = Field(ge=0.0, le=1.0)
    satisfaction_scores: SatisfactionScores


class NegotiationResult(BaseModel):
    """Terminal output of a negotiation run."""

    session_id: str
    success: bool
    final_offer: Offer | None = None
    rounds: list[NegotiationRound] = Field(default_factory=list)
    total_duration: float = Field(default=0.0, ge=0.0)  # minutes
    reason: str
    metrics: NegotiationMetrics
    contract: Contract | None = None
    contract_error: str | None = None
    cancelled: bool = False


class NegotiationEvent(BaseModel):
    """Lifecycle event published to subscribers."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    session_id: str
    type: EventType
    timestamp: datetime = Field(default_factory=_utcnow)
    agent_id: str | None = None
    message: str = ""
    data: dict[str, Any] = Field(default_factory=dict)
