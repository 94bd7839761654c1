"""
Negotiation agent implementation.

WHAT: One agent type for both buyer and supplier roles
WHY: Roles share control flow and differ only in numeric policy
HOW: Role policy table plus the originating request/product; the
     evaluator proposes, clamp_offer_terms finalizes
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, List

from ..models.b2b import BuyerRequest, B2BProduct
from ..models.negotiation import (
    AgentProfile,
    Decision,
    NegotiationRound,
    Offer,
    Personality,
    SuggestedOffer,
)
from ..services.evaluator import evaluate_offer
from ..services.pricing import (
    base_unit_price,
    delivery_days_for_urgency,
    tier_price_for_quantity,
)
from ..utils.logger import get_logger
from .personality import with_price_flexibility
from .policy import RolePolicy, policy_for

logger = get_logger(__name__)

# Supplier never counters below this share of the applicable tier price
SUPPLIER_PRICE_FLOOR_FACTOR = 0.95
BUYER_DELIVERY_SLACK_DAYS = 3
SUPPLIER_DELIVERY_BIAS_DAYS = 2
TIME_SENSITIVE_LEAD_REDUCTION_DAYS = 3
CONSERVATIVE_LEAD_BUFFER_DAYS = 2

# Walk-away and deal-value normalisers
WALK_AWAY_MINUTES_HORIZON = 60
MIN_TIME_MULTIPLIER = 0.5
MIN_ALTERNATIVE_MULTIPLIER = 0.7
ALTERNATIVE_DISCOUNT = 0.1
DEAL_VALUE_PRICE_SCALE = 1000
DEAL_VALUE_QUANTITY_SCALE = 10000
DEAL_VALUE_DELIVERY_SCALE = 30


@dataclass
class DecisionContext:
    """Per-turn context handed to an agent by the orchestrator."""
    session_id: str
    round_number: int
    current_offer: Optional[Offer] = None
    previous_offers: List[Offer] = field(default_factory=list)
    time_remaining: Optional[float] = None  # minutes
    alternative_options: Optional[int] = None
    timestamp: Optional[datetime] = None


class NegotiationAgent:
    """Buyer or supplier agent driven by a role policy table."""

    def __init__(
        self,
        profile: AgentProfile,
        *,
        buyer_request: Optional[BuyerRequest] = None,
        product: Optional[B2BProduct] = None
    ):
        """
        Initialize agent.

        Args:
            profile: Agent id, role, personality and constraints
            buyer_request: Required for buyer agents
            product: Required for supplier agents

        Raises:
            ValueError: If the role's reference object is missing
        """
        if profile.role == "buyer" and buyer_request is None:
            raise ValueError("Buyer agent requires a buyer request")
        if profile.role == "supplier" and product is None:
            raise ValueError("Supplier agent requires a product")

        self.profile = profile
        self.buyer_request = buyer_request
        self.product = product
        self.policy: RolePolicy = policy_for(profile.role)

    @property
    def id(self) -> str:
        return self.profile.id

    @property
    def role(self) -> str:
        return self.profile.role

    @property
    def personality(self) -> Personality:
        return self.profile.personality

    # ------------------------------------------------------------------
    # Targets
    # ------------------------------------------------------------------

    def target_price(self) -> float:
        """Opening price for this agent's strategy."""
        factor = self.policy.initial_price_factors.get(
            self.personality.strategy, self.policy.default_initial_price_factor
        )
        if self.role == "buyer":
            request = self.buyer_request
            preferred_quantity = request.quantity.max or request.quantity.min
            max_affordable = (request.budget.max or 0.0) / preferred_quantity
            return max_affordable * factor
        return base_unit_price(self.product) * factor

    def target_quantity(self) -> int:
        if self.role == "buyer":
            return self.buyer_request.quantity.max or self.buyer_request.quantity.min
        return self.product.commercial_terms.minimum_order_quantity

    def target_delivery(self) -> int:
        if self.role == "buyer":
            return delivery_days_for_urgency(self.buyer_request.urgency)

        lead_time = self.product.commercial_terms.lead_time
        strategy = self.personality.strategy
        if strategy == "time_sensitive":
            return max(lead_time.min, lead_time.max - TIME_SENSITIVE_LEAD_REDUCTION_DAYS)
        if strategy == "conservative":
            return lead_time.max + CONSERVATIVE_LEAD_BUFFER_DAYS
        return lead_time.max

    def _currency(self) -> str:
        if self.role == "buyer":
            return self.buyer_request.budget.currency
        return self.product.commercial_terms.currency

    def _payment_terms(self) -> str:
        if self.role == "buyer":
            return self.buyer_request.payment_preferences.terms
        return self.product.commercial_terms.payment_terms

    def _warranty(self):
        if self.role == "supplier":
            return self.product.commercial_terms.warranty_period
        return None

    # ------------------------------------------------------------------
    # Offer generation
    # ------------------------------------------------------------------

    def reasoning_text(
        self,
        action: str,
        price: float,
        quantity: int,
        delivery_days: int,
        factors: tuple[str, ...]
    ) -> str:
        return (
            f"Following {self.personality.strategy} strategy: {action} based on "
            f"{', '.join(factors)}. Price: {price:.2f} {self._currency()}, "
            f"Quantity: {quantity}, Delivery: {delivery_days} days."
        )

    def generate_initial_offer(self, context: DecisionContext) -> Offer:
        """
        Produce this agent's opening offer.

        Args:
            context: Decision context for the current round

        Returns:
            Offer at the strategy's opening price, preferred quantity and
            default delivery
        """
        price = self.target_price()
        quantity = max(1, self.target_quantity())
        delivery = self.target_delivery()

        return Offer(
            session_id=context.session_id,
            agent_id=self.id,
            role=self.role,
            round_number=context.round_number,
            timestamp=context.timestamp or datetime.now(timezone.utc),
            price_per_unit=price,
            currency=self._currency(),
            quantity=quantity,
            delivery_days=delivery,
            payment_terms=self._payment_terms(),
            warranty=self._warranty(),
            reasoning=self.reasoning_text(
                "Initial offer", price, quantity, delivery, self.policy.initial_offer_factors
            ),
            confidence=self.policy.initial_offer_confidence,
            is_counter_offer=False,
        )

    def evaluate_offer(self, offer: Offer, context: DecisionContext) -> Decision:
        """Score a counterparty offer and decide accept, counter or reject."""
        return evaluate_offer(
            offer,
            role=self.role,
            personality=self.personality,
            round_number=context.round_number,
            buyer_request=self.buyer_request,
            product=self.product,
        )

    def clamp_offer_terms(
        self,
        price: float,
        quantity: int,
        delivery_days: int
    ) -> tuple[float, int, int]:
        """
        Apply this agent's hard constraints to proposed terms.

        WHAT: Final authority over any counter this agent emits
        WHY: Evaluator suggestions and concession maths may overshoot
        HOW: Buyer caps price and bounds quantity; supplier floors price at
             the tier price * 0.95, floors quantity at MOQ and keeps delivery
             inside the lead-time window

        Returns:
            (price, quantity, delivery_days) within constraints
        """
        constraints = self.profile.constraints
        price = max(0.0, price)
        delivery_days = max(0, int(delivery_days))

        if constraints.min_quantity is not None:
            quantity = max(quantity, constraints.min_quantity)
        if constraints.max_quantity is not None:
            quantity = min(quantity, constraints.max_quantity)
        quantity = max(1, int(quantity))

        if self.role == "buyer":
            if constraints.max_price is not None:
                price = min(price, constraints.max_price)
        else:
            floor = tier_price_for_quantity(self.product, quantity) * SUPPLIER_PRICE_FLOOR_FACTOR
            price = max(price, floor)
            lead_time = self.product.commercial_terms.lead_time
            delivery_days = max(lead_time.min, min(delivery_days, lead_time.max))

        return price, quantity, delivery_days

    def _counter_terms(self, incoming: Offer) -> tuple[float, int, int]:
        target = self.target_price()
        flexibility = self.personality.price_flexibility
        rate = self.policy.concession_rate

        if self.role == "buyer":
            price = target + (incoming.price_per_unit - target) * flexibility * rate
            quantity = max(incoming.quantity, self.buyer_request.quantity.min)
            delivery = min(incoming.delivery_days, self.target_delivery() + BUYER_DELIVERY_SLACK_DAYS)
        else:
            price = target - (target - incoming.price_per_unit) * flexibility * rate
            quantity = max(incoming.quantity, self.product.commercial_terms.minimum_order_quantity)
            delivery = incoming.delivery_days + SUPPLIER_DELIVERY_BIAS_DAYS
        return price, quantity, delivery

    def generate_counter_offer(
        self,
        incoming: Offer,
        context: DecisionContext,
        suggestion: Optional[SuggestedOffer] = None,
        reasoning: Optional[str] = None
    ) -> Offer:
        """
        Produce a counter-offer to the counterparty's latest offer.

        Args:
            incoming: Offer being countered
            context: Decision context for the current round
            suggestion: Evaluator proposal; its values replace the agent's
                own before clamping
            reasoning: Optional reasoning text to carry instead of the
                agent's own

        Returns:
            Counter offer within this agent's hard constraints
        """
        price, quantity, delivery = self._counter_terms(incoming)

        if suggestion is not None:
            if suggestion.price_per_unit is not None:
                price = suggestion.price_per_unit
            if suggestion.quantity is not None:
                quantity = suggestion.quantity
            if suggestion.delivery_days is not None:
                delivery = suggestion.delivery_days

        price, quantity, delivery = self.clamp_offer_terms(price, quantity, delivery)

        return Offer(
            session_id=context.session_id,
            agent_id=self.id,
            role=self.role,
            round_number=context.round_number,
            timestamp=context.timestamp or datetime.now(timezone.utc),
            price_per_unit=price,
            currency=self._currency(),
            quantity=quantity,
            delivery_days=delivery,
            payment_terms=self._payment_terms(),
            warranty=self._warranty(),
            reasoning=reasoning or self.reasoning_text(
                "Counter offer", price, quantity, delivery, self.policy.counter_offer_factors
            ),
            confidence=self.policy.counter_offer_confidence,
            is_counter_offer=True,
            previous_offer_id=incoming.id,
        )

    # ------------------------------------------------------------------
    # Strategy and valuation
    # ------------------------------------------------------------------

    def update_strategy(
        self,
        rounds: List[NegotiationRound],
        *,
        review_interval: int = 3,
        stall_threshold: float = 0.1,
        step: float = 0.1
    ) -> bool:
        """
        Widen price flexibility when the price gap is not closing.

        Checked after every `review_interval` completed rounds. The gap
        reduction is measured from the first round's gap to the latest
        round's gap. Flexibility only ever grows, capped at 1.0.

        Returns:
            True if flexibility was increased
        """
        paired = [r for r in rounds if r.buyer_offer is not None and r.supplier_offer is not None]
        if not paired or len(rounds) % review_interval != 0:
            return False

        first_gap = abs(paired[0].buyer_offer.price_per_unit - paired[0].supplier_offer.price_per_unit)
        last_gap = abs(paired[-1].buyer_offer.price_per_unit - paired[-1].supplier_offer.price_per_unit)
        reduction = (first_gap - last_gap) / first_gap if first_gap > 0 else 1.0

        if reduction >= stall_threshold or self.personality.price_flexibility >= 1.0:
            return False

        old = self.personality.price_flexibility
        self.profile = self.profile.model_copy(
            update={"personality": with_price_flexibility(self.personality, old + step)}
        )
        logger.info(
            f"{self.role} agent {self.id} widened price flexibility "
            f"{old:.2f} -> {self.personality.price_flexibility:.2f} "
            f"(gap reduction {reduction:.1%})"
        )
        return True

    def assess_deal_value(self, offer: Offer) -> float:
        """Rough value of an offer from this agent's side."""
        if self.role == "buyer":
            price_value = 1 - offer.price_per_unit / DEAL_VALUE_PRICE_SCALE
        else:
            price_value = offer.price_per_unit / DEAL_VALUE_PRICE_SCALE
        quantity_value = offer.quantity / DEAL_VALUE_QUANTITY_SCALE
        delivery_value = 1 - offer.delivery_days / DEAL_VALUE_DELIVERY_SCALE
        return (price_value + quantity_value + delivery_value) / 3

    def calculate_walk_away_point(self, context: DecisionContext) -> Optional[float]:
        """
        Deal value below which this agent would rather walk away.

        Shrinks as time runs out and as alternatives grow.

        Returns:
            Walk-away value, or None without a current offer
        """
        if context.current_offer is None:
            return None

        base_value = self.assess_deal_value(context.current_offer)
        time_multiplier = (
            max(MIN_TIME_MULTIPLIER, context.time_remaining / WALK_AWAY_MINUTES_HORIZON)
            if context.time_remaining
            else 1.0
        )
        alternative_multiplier = (
            max(MIN_ALTERNATIVE_MULTIPLIER, 1 - context.alternative_options * ALTERNATIVE_DISCOUNT)
            if context.alternative_options
            else 1.0
        )
        return base_value * time_multiplier * alternative_multiplier

    def commentary(self, offer: Offer) -> str:
        """Strategy commentary on an offer, for agent_thinking events."""
        comment = self.policy.commentary.get(self.personality.strategy, "")
        return (
            f"{comment} Current offer: {offer.price_per_unit:.2f} {offer.currency}/unit, "
            f"{offer.quantity} units, {offer.delivery_days} days delivery."
        ).strip()
