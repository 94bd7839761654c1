"""
Unit tests for the offer evaluator.

WHAT: Axis scores, thresholds, suggestions and reasoning
WHY: Every accept/counter/reject in a session goes through this rule
HOW: Score hand-built offers against the sample request and product
"""

import pytest

from negotiation_engine.agents.personality import (
    create_buyer_personality,
    create_supplier_personality,
)
from negotiation_engine.agents.policy import accept_threshold, reject_threshold
from negotiation_engine.models.negotiation import STRATEGIES
from negotiation_engine.services.evaluator import (
    analyze_for_buyer,
    analyze_for_supplier,
    decide,
    evaluate_offer,
)
from negotiation_engine.services.pricing import tier_for_quantity
from tests.fixtures.sample_data import make_buyer_request, make_offer, make_product


@pytest.mark.unit
class TestBuyerSide:
    """Buyer evaluating a supplier offer."""

    def test_scores_supplier_counter(self, buyer_request):
        offer = make_offer("supplier", price=76.0, quantity=125, delivery_days=10)

        analysis = analyze_for_buyer(offer, buyer_request, round_number=1)

        assert analysis.price_score == pytest.approx(0.55)
        assert analysis.quantity_score == pytest.approx(0.8)
        assert analysis.delivery_score == pytest.approx(1.0)
        assert analysis.overall_score == pytest.approx((0.55 + 0.8 + 1.0) / 3)
        assert analysis.factors == [
            "Budget utilization: 95.0%",
            "Quantity within requested range",
            "Delivery timeline acceptable",
        ]

    def test_quantity_outside_range_scores_low(self, buyer_request):
        offer = make_offer("supplier", price=50.0, quantity=200, delivery_days=10)

        analysis = analyze_for_buyer(offer, buyer_request, round_number=1)

        assert analysis.quantity_score == pytest.approx(0.3)
        assert "Quantity outside requested range" in analysis.factors

    def test_delivery_score_grades_against_urgency(self):
        request = make_buyer_request(urgency="urgent")
        slow = make_offer("supplier", price=60.0, delivery_days=10)
        fast = make_offer("supplier", price=60.0, delivery_days=3)

        slow_analysis = analyze_for_buyer(slow, request, round_number=1)
        fast_analysis = analyze_for_buyer(fast, request, round_number=1)

        assert slow_analysis.delivery_score == pytest.approx((7 - 10) / 7 + 0.5)
        assert fast_analysis.delivery_score == pytest.approx(1.0)
        assert "Delivery timeline too long" in slow_analysis.factors

    def test_over_budget_price_scores_zero(self):
        request = make_buyer_request(budget_max=5000.0)
        offer = make_offer("supplier", price=76.0, quantity=125, delivery_days=10)

        analysis = analyze_for_buyer(offer, request, round_number=1)

        assert analysis.price_score == 0.0

    def test_confidence_grows_with_round_and_caps(self, buyer_request):
        offer = make_offer("supplier", price=76.0)

        assert analyze_for_buyer(offer, buyer_request, 1).confidence == pytest.approx(0.7)
        assert analyze_for_buyer(offer, buyer_request, 3).confidence == pytest.approx(0.9)
        assert analyze_for_buyer(offer, buyer_request, 8).confidence == pytest.approx(0.95)

    def test_accepts_good_counter(self, buyer_request):
        offer = make_offer("supplier", price=76.0, quantity=125, delivery_days=10)

        decision = evaluate_offer(
            offer,
            role="buyer",
            personality=create_buyer_personality("balanced"),
            round_number=1,
            buyer_request=buyer_request,
        )

        assert decision.action == "accept"
        assert decision.suggested_offer is None
        assert "strong alignment" in decision.reasoning


@pytest.mark.unit
class TestSupplierSide:
    """Supplier evaluating a buyer offer."""

    def test_scores_opening_buyer_offer(self, product):
        offer = make_offer("buyer", price=64.0, quantity=125, delivery_days=30)

        analysis = analyze_for_supplier(offer, product, round_number=1)

        assert analysis.price_score == 0.0
        assert analysis.quantity_score == pytest.approx(0.8)
        assert analysis.delivery_score == pytest.approx(0.8)
        assert analysis.confidence == pytest.approx(0.78)
        assert analysis.factors == [
            "Price below minimum margin",
            "Quantity meets minimum order requirement",
            "Delivery feasible for production schedule",
        ]

    def test_price_score_uses_quantity_tier(self, product):
        # 600 units falls in the 72/unit tier, so 72 is 10% above its floor
        offer = make_offer("buyer", price=72.0, quantity=600, delivery_days=10)

        analysis = analyze_for_supplier(offer, product, round_number=1)

        assert analysis.price_score == pytest.approx((72.0 - 64.8) / 72.0)

    def test_below_moq_and_too_fast(self):
        product = make_product(moq=100, lead_min=10, lead_max=15)
        offer = make_offer("buyer", price=90.0, quantity=50, delivery_days=7)

        analysis = analyze_for_supplier(offer, product, round_number=1)

        assert analysis.quantity_score == pytest.approx(0.2)
        assert analysis.delivery_score == pytest.approx(0.3)
        assert "Quantity below minimum order requirement" in analysis.factors
        assert "Delivery too fast for production schedule" in analysis.factors

    def test_counter_carries_suggestion(self, product):
        offer = make_offer("buyer", price=64.0, quantity=125, delivery_days=30)

        decision = evaluate_offer(
            offer,
            role="supplier",
            personality=create_supplier_personality(product),
            round_number=1,
            product=product,
        )

        assert decision.action == "counter"
        assert decision.overall_score == pytest.approx(1.6 / 3)
        assert "moderate alignment" in decision.reasoning
        # adj = 0.05 + (0.5 - 0) * 0.1 + 0.15 * 0.05
        assert decision.suggested_offer.price_per_unit == pytest.approx(64.0 * 1.1075)
        assert decision.suggested_offer.quantity == 125
        assert decision.suggested_offer.delivery_days == 30

    def test_time_pressure_shortens_suggested_delivery(self, product):
        offer = make_offer("buyer", price=64.0, quantity=125, delivery_days=21)

        decision = evaluate_offer(
            offer,
            role="supplier",
            personality=create_supplier_personality(product, "time_sensitive"),
            round_number=1,
            product=product,
        )

        assert decision.action == "counter"
        assert decision.suggested_offer.delivery_days == 19

    def test_price_focused_supplier_rejects_slow_urgent_order(self):
        product = make_product(lead_min=10, lead_max=15)
        offer = make_offer("buyer", price=64.0, quantity=125, delivery_days=7)

        decision = evaluate_offer(
            offer,
            role="supplier",
            personality=create_supplier_personality(product, "price_focused"),
            round_number=1,
            product=product,
        )

        assert decision.delivery_score == pytest.approx(0.3)
        assert decision.action == "reject"
        assert decision.suggested_offer is None


@pytest.mark.unit
class TestDecisionThresholds:
    """Accept/reject thresholds by strategy."""

    @pytest.mark.parametrize("strategy,accept,reject", [
        ("balanced", 0.75, 0.30),
        ("aggressive", 0.85, 0.40),
        ("conservative", 0.65, 0.25),
        ("time_sensitive", 0.60, 0.30),
        ("price_focused", 0.75, 0.45),
        ("quality_focused", 0.75, 0.30),
    ])
    def test_threshold_values(self, strategy, accept, reject):
        assert accept_threshold(strategy) == pytest.approx(accept)
        assert reject_threshold(strategy) == pytest.approx(reject)

    @pytest.mark.parametrize("strategy", STRATEGIES)
    def test_accept_threshold_is_inclusive(self, strategy):
        assert decide(accept_threshold(strategy), strategy) == "accept"
        assert decide(accept_threshold(strategy) - 1e-9, strategy) == "counter"

    @pytest.mark.parametrize("strategy", STRATEGIES)
    def test_reject_threshold_is_inclusive(self, strategy):
        assert decide(reject_threshold(strategy), strategy) == "reject"
        assert decide(reject_threshold(strategy) + 1e-9, strategy) == "counter"


@pytest.mark.unit
def test_evaluate_requires_reference_object(product):
    offer = make_offer("buyer")

    with pytest.raises(ValueError):
        evaluate_offer(
            offer,
            role="buyer",
            personality=create_buyer_personality("balanced"),
            round_number=1,
            product=product,
        )


@pytest.mark.unit
@pytest.mark.parametrize("quantity,expected_price", [
    (100, 80.0),
    (499, 80.0),
    (600, 72.0),
    (5000, 64.0),
    (50, 64.0),  # no tier contains it: falls back to the last tier
])
def test_tier_lookup(product, quantity, expected_price):
    assert tier_for_quantity(product, quantity).unit_price == pytest.approx(expected_price)
