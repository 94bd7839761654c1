"""
Pricing helpers shared by agents, evaluator and constraint factories.

WHAT: Tier lookup and urgency-to-delivery mapping
WHY: One definition of "which tier applies" for every caller
HOW: Plain functions over the b2b models
"""

from ..models.b2b import B2BProduct, PricingTier

# Days the buyer is willing to wait, by request urgency
URGENCY_DELIVERY_DAYS: dict[str, int] = {
    "low": 30,
    "medium": 21,
    "high": 14,
    "critical": 7,
    "urgent": 7,
}
DEFAULT_DELIVERY_DAYS = 21


def delivery_days_for_urgency(urgency: str) -> int:
    return URGENCY_DELIVERY_DAYS.get(urgency, DEFAULT_DELIVERY_DAYS)


def tier_for_quantity(product: B2BProduct, quantity: int) -> PricingTier:
    """
    Find the pricing tier that applies to a quantity.

    Args:
        product: Product whose tiers are searched
        quantity: Ordered quantity

    Returns:
        First tier containing the quantity, otherwise the last
        (highest-volume) tier

    Raises:
        ValueError: If the product has no pricing tiers
    """
    tiers = product.commercial_terms.pricing
    if not tiers:
        raise ValueError(f"Product {product.id} has no pricing tiers")

    for tier in tiers:
        if tier.contains(quantity):
            return tier
    return tiers[-1]


def tier_price_for_quantity(product: B2BProduct, quantity: int) -> float:
    return tier_for_quantity(product, quantity).unit_price


def base_unit_price(product: B2BProduct) -> float:
    """Listed price of the first (smallest-quantity) tier."""
    return product.commercial_terms.pricing[0].unit_price


def lowest_unit_price(product: B2BProduct) -> float:
    """Listed price of the last (highest-volume) tier."""
    return product.commercial_terms.pricing[-1].unit_price
