"""
Offer evaluator for buyer and supplier agents.

WHAT: Score an incoming offer on price, quantity and delivery, then decide
WHY: Both agents accept, counter or reject through the same rule
HOW: Role-specific axis scores, mean overall score, strategy thresholds

Scoring (each axis in [0, 1]):
- Buyer price: remaining budget headroom, (budget - total) / budget + 0.5
- Buyer quantity: 0.8 inside requested range, else 0.3
- Buyer delivery: (urgency window - days) / window + 0.5
- Supplier price: margin above 90% of the tier price, relative to tier price
- Supplier quantity: 0.8 at or above MOQ, else 0.2
- Supplier delivery: 0.8 if not faster than minimum lead time, else 0.3
"""

from dataclasses import dataclass, field
from typing import Optional, List

from ..agents.policy import (
    policy_for,
    accept_threshold,
    reject_threshold,
    confidence_for_round,
)
from ..models.b2b import BuyerRequest, B2BProduct
from ..models.negotiation import Offer, Personality, Decision, SuggestedOffer
from .pricing import delivery_days_for_urgency, tier_price_for_quantity
from ..utils.logger import get_logger

logger = get_logger(__name__)

IN_RANGE_SCORE = 0.8
SUPPLIER_DELIVERY_MISS_SCORE = 0.3
MINIMUM_MARGIN_FACTOR = 0.9

SUGGESTED_PRICE_STEP = 0.05
SUGGESTED_PRICE_FLOOR = 0.1
SUGGESTED_DELIVERY_STEP = 0.1


@dataclass
class OfferAnalysis:
    """Per-axis scores for one offer, seen from one role."""
    price_score: float
    quantity_score: float
    delivery_score: float
    confidence: float
    factors: List[str] = field(default_factory=list)

    @property
    def overall_score(self) -> float:
        return (self.price_score + self.quantity_score + self.delivery_score) / 3


def _clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def analyze_for_buyer(offer: Offer, request: BuyerRequest, round_number: int) -> OfferAnalysis:
    """
    Score a supplier offer against the buyer's request.

    Args:
        offer: Incoming supplier offer
        request: Buyer's procurement request
        round_number: Current round (drives confidence)

    Returns:
        OfferAnalysis with buyer-side scores and factor strings
    """
    max_budget = request.budget.max or 0.0
    total_cost = offer.price_per_unit * offer.quantity

    if max_budget > 0:
        price_score = _clamp01((max_budget - total_cost) / max_budget + 0.5)
        utilization = total_cost / max_budget * 100
    else:
        price_score = 0.0
        utilization = 0.0

    quantity_in_range = offer.quantity >= request.quantity.min and (
        request.quantity.max is None or offer.quantity <= request.quantity.max
    )
    quantity_score = IN_RANGE_SCORE if quantity_in_range else policy_for("buyer").quantity_miss_score

    urgency_days = delivery_days_for_urgency(request.urgency)
    delivery_score = _clamp01((urgency_days - offer.delivery_days) / urgency_days + 0.5)

    factors = [
        f"Budget utilization: {utilization:.1f}%",
        f"Quantity {'within' if quantity_in_range else 'outside'} requested range",
        f"Delivery timeline {'acceptable' if offer.delivery_days <= urgency_days else 'too long'}",
    ]

    return OfferAnalysis(
        price_score=price_score,
        quantity_score=quantity_score,
        delivery_score=delivery_score,
        confidence=confidence_for_round("buyer", round_number),
        factors=factors,
    )


def analyze_for_supplier(offer: Offer, product: B2BProduct, round_number: int) -> OfferAnalysis:
    """
    Score a buyer offer against the supplier's product terms.

    Args:
        offer: Incoming buyer offer
        product: Supplier's product listing
        round_number: Current round (drives confidence)

    Returns:
        OfferAnalysis with supplier-side scores and factor strings
    """
    terms = product.commercial_terms
    tier_price = tier_price_for_quantity(product, offer.quantity)
    min_acceptable = tier_price * MINIMUM_MARGIN_FACTOR

    if tier_price > 0:
        price_score = _clamp01((offer.price_per_unit - min_acceptable) / tier_price)
    else:
        price_score = 1.0

    quantity_feasible = offer.quantity >= terms.minimum_order_quantity
    quantity_score = IN_RANGE_SCORE if quantity_feasible else policy_for("supplier").quantity_miss_score

    delivery_feasible = offer.delivery_days >= terms.lead_time.min
    delivery_score = IN_RANGE_SCORE if delivery_feasible else SUPPLIER_DELIVERY_MISS_SCORE

    factors = [
        f"Price {'above' if offer.price_per_unit >= min_acceptable else 'below'} minimum margin",
        f"Quantity {'meets' if quantity_feasible else 'below'} minimum order requirement",
        f"Delivery {'feasible' if delivery_feasible else 'too fast'} for production schedule",
    ]

    return OfferAnalysis(
        price_score=price_score,
        quantity_score=quantity_score,
        delivery_score=delivery_score,
        confidence=confidence_for_round("supplier", round_number),
        factors=factors,
    )


def decide(overall_score: float, strategy: str) -> str:
    """
    Map an overall score to accept, counter or reject.

    Both thresholds are inclusive: a score exactly at the accept
    threshold accepts, exactly at the reject threshold rejects.
    """
    if overall_score >= accept_threshold(strategy):
        return "accept"
    if overall_score <= reject_threshold(strategy):
        return "reject"
    return "counter"


def build_reasoning(role: str, action: str, overall_score: float, round_number: int) -> str:
    """Pick a template for the decision and append the overall alignment."""
    templates = policy_for(role).reasoning_templates[action]
    template = templates[round_number % len(templates)]

    if overall_score > 0.7:
        alignment = "strong"
    elif overall_score > 0.4:
        alignment = "moderate"
    else:
        alignment = "weak"

    return f"{template} Overall assessment shows {alignment} alignment with our requirements."


def suggest_counter_offer(
    offer: Offer,
    analysis: OfferAnalysis,
    personality: Personality,
    role: str
) -> SuggestedOffer:
    """
    Propose counter terms relative to the incoming offer.

    WHAT: Nudge price in the role's favour and delivery by time pressure
    WHY: Gives the counter-producing agent a starting point
    HOW: price * (1 + adj), adj grows as price score falls; quantity kept

    The suggestion is never binding. The owning agent clamps it to its
    hard constraints before it becomes an offer.
    """
    direction = policy_for(role).price_direction
    adjustment = (
        direction * SUGGESTED_PRICE_STEP
        + (0.5 - analysis.price_score) * 0.1
        + direction * personality.price_flexibility * SUGGESTED_PRICE_STEP
    )
    price = max(SUGGESTED_PRICE_FLOOR, offer.price_per_unit * (1 + adjustment))

    if personality.time_constraints > 0.7:
        delivery_factor = 1 - SUGGESTED_DELIVERY_STEP
    elif personality.time_constraints < 0.3:
        delivery_factor = 1 + SUGGESTED_DELIVERY_STEP
    else:
        delivery_factor = 1.0
    delivery_days = max(1, round(offer.delivery_days * delivery_factor))

    return SuggestedOffer(
        price_per_unit=price,
        quantity=offer.quantity,
        delivery_days=delivery_days,
    )


def evaluate_offer(
    offer: Offer,
    *,
    role: str,
    personality: Personality,
    round_number: int,
    buyer_request: Optional[BuyerRequest] = None,
    product: Optional[B2BProduct] = None
) -> Decision:
    """
    Evaluate an incoming offer for one role.

    Args:
        offer: Offer made by the counterparty
        role: Evaluating role ("buyer" or "supplier")
        personality: Evaluating agent's personality (strategy sets thresholds)
        round_number: Current round number
        buyer_request: Required when role is "buyer"
        product: Required when role is "supplier"

    Returns:
        Decision with scores, reasoning, confidence and, for counters,
        a suggested offer

    Raises:
        ValueError: If the role's reference object is missing
    """
    if role == "buyer":
        if buyer_request is None:
            raise ValueError("buyer_request is required to evaluate as buyer")
        analysis = analyze_for_buyer(offer, buyer_request, round_number)
    elif role == "supplier":
        if product is None:
            raise ValueError("product is required to evaluate as supplier")
        analysis = analyze_for_supplier(offer, product, round_number)
    else:
        raise ValueError(f"Unknown agent role: {role}")

    overall = analysis.overall_score
    action = decide(overall, personality.strategy)
    suggestion = (
        suggest_counter_offer(offer, analysis, personality, role)
        if action == "counter"
        else None
    )

    logger.debug(
        f"{role} evaluated offer {offer.id} in round {round_number}: "
        f"price={analysis.price_score:.3f} qty={analysis.quantity_score:.3f} "
        f"delivery={analysis.delivery_score:.3f} overall={overall:.3f} -> {action}"
    )

    return Decision(
        action=action,
        reasoning=build_reasoning(role, action, overall, round_number),
        confidence=analysis.confidence,
        price_score=analysis.price_score,
        quantity_score=analysis.quantity_score,
        delivery_score=analysis.delivery_score,
        overall_score=_clamp01(overall),
        factors=analysis.factors,
        suggested_offer=suggestion,
    )
