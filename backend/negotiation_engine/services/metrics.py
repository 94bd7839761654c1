"""
Negotiation metrics.

WHAT: Round convergence and end-of-session summary analytics
WHY: Callers compare negotiations by price movement and speed
HOW: Pure functions over the round list; satisfaction is pluggable
"""

from typing import Callable, List, Optional

from ..models.negotiation import (
    NegotiationMetrics,
    NegotiationRound,
    Offer,
    PriceMovement,
    SatisfactionScores,
)

# (success, rounds, final_offer) -> scores
SatisfactionScorer = Callable[[bool, List[NegotiationRound], Optional[Offer]], SatisfactionScores]


def _relative_diff(a: float, b: float) -> float:
    largest = max(a, b)
    if largest <= 0:
        return 0.0
    return abs(a - b) / largest


def convergence_score(buyer_offer: Offer, supplier_offer: Offer) -> float:
    """
    Similarity between a round's buyer and supplier offers.

    1 - mean relative difference over price, quantity and delivery,
    floored at 0. Identical offers score 1.0.
    """
    diffs = (
        _relative_diff(buyer_offer.price_per_unit, supplier_offer.price_per_unit),
        _relative_diff(buyer_offer.quantity, supplier_offer.quantity),
        _relative_diff(buyer_offer.delivery_days, supplier_offer.delivery_days),
    )
    return max(0.0, 1 - sum(diffs) / len(diffs))


def fixed_satisfaction_scorer(success_score: float = 0.8, failure_score: float = 0.2) -> SatisfactionScorer:
    """
    Build a scorer that returns one constant per outcome.

    Not a measure of how good the deal was; both roles get the same value.
    """
    def scorer(success, rounds, final_offer) -> SatisfactionScores:
        value = success_score if success else failure_score
        return SatisfactionScores(buyer=value, supplier=value)

    return scorer


def _percent_change(numerator: float, denominator: float) -> float:
    if denominator == 0:
        return 0.0
    return numerator / denominator * 100


def calculate_metrics(
    rounds: List[NegotiationRound],
    final_offer: Optional[Offer],
    success: bool,
    total_duration: float,
    satisfaction_scorer: Optional[SatisfactionScorer] = None
) -> NegotiationMetrics:
    """
    Summarise a finished negotiation.

    Args:
        rounds: Completed round list
        final_offer: Agreed offer, or None on failure
        success: Whether agreement was reached
        total_duration: Session duration in minutes
        satisfaction_scorer: Optional scorer; defaults to 0.8 / 0.2

    Returns:
        NegotiationMetrics. Percentages are 0 when their base price is 0;
        without a final offer the final price and percentages are 0.
    """
    scorer = satisfaction_scorer or fixed_satisfaction_scorer()
    first_round = rounds[0] if rounds else None

    initial_buyer = 0.0
    if first_round is not None and first_round.buyer_offer is not None:
        initial_buyer = first_round.buyer_offer.price_per_unit

    final_price = final_offer.price_per_unit if final_offer is not None else 0.0

    if first_round is not None and first_round.supplier_offer is not None:
        initial_supplier = first_round.supplier_offer.price_per_unit
    else:
        initial_supplier = final_price

    if final_offer is not None:
        buyer_savings = _percent_change(initial_supplier - final_price, initial_supplier)
        supplier_margin = _percent_change(final_price - initial_buyer, initial_buyer)
    else:
        buyer_savings = 0.0
        supplier_margin = 0.0

    return NegotiationMetrics(
        total_rounds=len(rounds),
        price_movement=PriceMovement(
            initial_buyer_offer=initial_buyer,
            initial_supplier_offer=initial_supplier,
            final_price=final_price,
            buyer_savings=buyer_savings,
            supplier_margin=supplier_margin,
        ),
        time_to_agreement=max(0.0, total_duration),
        convergence_rate=1 / len(rounds) if rounds else 0.0,
        satisfaction_scores=scorer(success, rounds, final_offer),
    )
