"""
Personality and constraint factories.

WHAT: Build agent personalities and hard constraints from inputs
WHY: Both are fixed at session creation from request/product data
HOW: Base disposition tables plus per-strategy overrides
"""

from typing import Optional

from ..models.b2b import BuyerRequest, B2BProduct
from ..models.negotiation import Personality, AgentConstraints
from ..services.pricing import lowest_unit_price

BUYER_BASE_DISPOSITION: dict[str, float] = {
    "price_flexibility": 0.3,
    "time_constraints": 0.5,
    "quality_focus": 0.7,
    "relationship_focus": 0.6,
    "risk_tolerance": 0.4,
}

BUYER_STRATEGY_OVERRIDES: dict[str, dict[str, float]] = {
    "aggressive": {"price_flexibility": 0.1, "time_constraints": 0.8},
    "price_focused": {"price_flexibility": 0.2, "quality_focus": 0.4},
    "time_sensitive": {"price_flexibility": 0.6, "time_constraints": 0.9},
    "quality_focused": {"quality_focus": 0.9, "price_flexibility": 0.5},
}

SUPPLIER_BASE_DISPOSITION: dict[str, float] = {
    "time_constraints": 0.4,
    "quality_focus": 0.8,
    "relationship_focus": 0.7,
    "risk_tolerance": 0.3,
}

# Suppliers keep their product-derived flexibility; only these move with strategy
SUPPLIER_STRATEGY_OVERRIDES: dict[str, dict[str, float]] = {
    "aggressive": {"time_constraints": 0.8},
    "time_sensitive": {"time_constraints": 0.9},
    "quality_focused": {"quality_focus": 0.9},
    "price_focused": {"quality_focus": 0.4},
}

# Product price flexibility (percent) above which an unspecified supplier strategy is balanced
BALANCED_SUPPLIER_FLEXIBILITY_PERCENT = 10.0

MINIMUM_MARGIN_FACTOR = 0.9
BUYER_MAX_DELIVERY_DAYS = 30


def create_buyer_personality(strategy: str) -> Personality:
    """
    Build the buyer's personality for a strategy.

    Args:
        strategy: One of the named negotiation strategies

    Returns:
        Frozen Personality with strategy overrides applied
    """
    disposition = dict(BUYER_BASE_DISPOSITION)
    disposition.update(BUYER_STRATEGY_OVERRIDES.get(strategy, {}))
    return Personality(strategy=strategy, **disposition)


def create_supplier_personality(
    product: B2BProduct,
    strategy: Optional[str] = None
) -> Personality:
    """
    Build the supplier's personality from its product listing.

    WHAT: Flexibility comes from the product's negotiation boundaries
    WHY: The supplier agent may only move as far as the listing allows
    HOW: price_flexibility% / 100; strategy defaults from that flexibility

    Args:
        product: Supplier's product listing
        strategy: Explicit strategy, or None to derive one

    Returns:
        Frozen Personality
    """
    flexibility_percent = product.negotiation_boundaries.price_flexibility
    if strategy is None:
        strategy = (
            "balanced"
            if flexibility_percent > BALANCED_SUPPLIER_FLEXIBILITY_PERCENT
            else "conservative"
        )

    disposition = dict(SUPPLIER_BASE_DISPOSITION)
    disposition.update(SUPPLIER_STRATEGY_OVERRIDES.get(strategy, {}))
    return Personality(
        strategy=strategy,
        price_flexibility=min(1.0, flexibility_percent / 100),
        **disposition
    )


def with_price_flexibility(personality: Personality, value: float) -> Personality:
    """Copy of a personality with a new price flexibility, capped at 1.0."""
    return personality.model_copy(update={"price_flexibility": min(1.0, value)})


def create_buyer_constraints(request: BuyerRequest) -> AgentConstraints:
    """Hard limits from a buyer request (max price is per unit at minimum quantity)."""
    budget_max = request.budget.max or 0.0
    min_quantity = request.quantity.min
    max_price = budget_max / min_quantity if min_quantity else budget_max

    return AgentConstraints(
        max_price=max_price,
        min_quantity=min_quantity,
        max_quantity=request.quantity.max,
        max_delivery_days=BUYER_MAX_DELIVERY_DAYS,
        required_payment_terms=[request.payment_preferences.terms],
    )


def create_supplier_constraints(product: B2BProduct) -> AgentConstraints:
    """Hard limits from a product listing."""
    terms = product.commercial_terms
    return AgentConstraints(
        min_price=lowest_unit_price(product) * MINIMUM_MARGIN_FACTOR,
        min_quantity=terms.minimum_order_quantity,
        max_delivery_days=terms.lead_time.max,
        required_payment_terms=[terms.payment_terms],
    )
