"""
Role policy tables for buyer and supplier agents.

WHAT: Numeric constants and text templates that differ by role
WHY: Buyer and supplier share one control flow; only their numbers differ
HOW: Frozen RolePolicy dataclass per role, looked up with policy_for()
"""

from dataclasses import dataclass, field

# Decision thresholds, adjusted per strategy
BASE_ACCEPT_THRESHOLD = 0.75
BASE_REJECT_THRESHOLD = 0.30

ACCEPT_THRESHOLD_ADJUSTMENTS: dict[str, float] = {
    "aggressive": 0.10,
    "conservative": -0.10,
    "time_sensitive": -0.15,
}
REJECT_THRESHOLD_ADJUSTMENTS: dict[str, float] = {
    "aggressive": 0.10,
    "conservative": -0.05,
    "price_focused": 0.15,
}


def accept_threshold(strategy: str) -> float:
    """Overall score at or above which an offer is accepted."""
    return round(BASE_ACCEPT_THRESHOLD + ACCEPT_THRESHOLD_ADJUSTMENTS.get(strategy, 0.0), 10)


def reject_threshold(strategy: str) -> float:
    """Overall score at or below which an offer is rejected."""
    return round(BASE_REJECT_THRESHOLD + REJECT_THRESHOLD_ADJUSTMENTS.get(strategy, 0.0), 10)


@dataclass(frozen=True)
class RolePolicy:
    """Per-role numeric policy and wording."""
    role: str
    # Initial price multiplier by strategy (buyer: of max affordable, supplier: of list price)
    initial_price_factors: dict[str, float]
    default_initial_price_factor: float
    # Fraction of flexibility used when moving toward the counterparty's price
    concession_rate: float
    # Confidence = min(cap, base + round * step)
    confidence_base: float
    confidence_step: float
    # -1 pushes suggested prices down (buyer), +1 pushes them up (supplier)
    price_direction: int
    quantity_miss_score: float
    # Confidence an agent attaches to its own offers
    initial_offer_confidence: float
    counter_offer_confidence: float
    initial_offer_factors: tuple[str, ...] = ()
    counter_offer_factors: tuple[str, ...] = ()
    commentary: dict[str, str] = field(default_factory=dict)
    reasoning_templates: dict[str, tuple[str, ...]] = field(default_factory=dict)


CONFIDENCE_CAP = 0.95

BUYER_POLICY = RolePolicy(
    role="buyer",
    initial_price_factors={
        "aggressive": 0.7,
        "price_focused": 0.6,
        "time_sensitive": 0.9,
    },
    default_initial_price_factor=0.8,
    concession_rate=0.5,
    confidence_base=0.6,
    confidence_step=0.1,
    price_direction=-1,
    quantity_miss_score=0.3,
    initial_offer_confidence=0.8,
    counter_offer_confidence=0.75,
    initial_offer_factors=("budget constraints", "quantity requirements", "delivery needs"),
    counter_offer_factors=("price optimization", "quantity adjustment", "delivery requirements"),
    commentary={
        "aggressive": "Pushing for maximum cost savings while maintaining quality standards.",
        "balanced": "Seeking fair terms that provide good value while respecting supplier constraints.",
        "price_focused": "Prioritizing cost optimization as the primary negotiation objective.",
        "time_sensitive": "Emphasizing delivery speed to meet critical project timelines.",
        "quality_focused": "Ensuring premium quality standards are maintained throughout.",
        "conservative": "Taking measured approach to minimize procurement risks.",
    },
    reasoning_templates={
        "accept": (
            "This offer meets our budget constraints and delivery requirements. The price point is acceptable for the specified quantity.",
            "The supplier's terms align well with our project timeline. Quality specifications match our requirements.",
            "Given the competitive pricing and reasonable delivery schedule, this represents good value for our organization.",
        ),
        "counter": (
            "While the offer shows promise, we need better pricing to fit our budget allocation for this procurement.",
            "The delivery timeline needs adjustment to meet our project milestones. Price could also be more competitive.",
            "We're interested but require modifications to payment terms and slight quantity adjustments for operational efficiency.",
        ),
        "reject": (
            "The pricing exceeds our budget parameters by a significant margin. Delivery timeline is also too extended.",
            "Quality specifications don't meet our minimum requirements. Price point is not competitive for this market.",
            "Terms are not favorable for our business model. We need more flexible payment and delivery arrangements.",
        ),
    },
)

SUPPLIER_POLICY = RolePolicy(
    role="supplier",
    initial_price_factors={
        "aggressive": 1.2,
        "price_focused": 1.15,
        "time_sensitive": 0.95,
    },
    default_initial_price_factor=1.1,
    concession_rate=0.6,
    confidence_base=0.7,
    confidence_step=0.08,
    price_direction=1,
    quantity_miss_score=0.2,
    initial_offer_confidence=0.85,
    counter_offer_confidence=0.8,
    initial_offer_factors=("market pricing", "production capacity", "delivery logistics"),
    counter_offer_factors=("profitability requirements", "production constraints", "delivery optimization"),
    commentary={
        "aggressive": "Maximizing profit margins while remaining competitive in the market.",
        "balanced": "Offering fair pricing that ensures sustainable business relationship.",
        "price_focused": "Optimizing pricing strategy based on current market conditions.",
        "time_sensitive": "Prioritizing quick order fulfillment to meet customer needs.",
        "quality_focused": "Emphasizing superior product quality and service standards.",
        "conservative": "Maintaining stable margins with proven operational capabilities.",
    },
    reasoning_templates={
        "accept": (
            "This order meets our minimum profitability requirements and aligns with our production capacity.",
            "The quantity and pricing provide good margins while maintaining competitive positioning in the market.",
            "Payment terms are acceptable and the delivery schedule fits our current production planning.",
        ),
        "counter": (
            "We need higher pricing to maintain sustainable margins on this order size. Delivery timeline may need adjustment.",
            "The quantity requires some modification to optimize our production efficiency. Price needs slight adjustment.",
            "We can accommodate most terms but need better pricing to cover increased material costs in current market conditions.",
        ),
        "reject": (
            "The pricing falls below our minimum profitability threshold. Quantity requirements exceed our current capacity.",
            "Payment terms create cash flow challenges for our operations. Delivery timeline is not operationally feasible.",
            "Order specifications require capabilities we don't currently have. Pricing doesn't justify the operational complexity.",
        ),
    },
)

_POLICIES = {"buyer": BUYER_POLICY, "supplier": SUPPLIER_POLICY}


def policy_for(role: str) -> RolePolicy:
    """
    Look up the policy table for a role.

    Raises:
        ValueError: If role is not buyer or supplier
    """
    try:
        return _POLICIES[role]
    except KeyError:
        raise ValueError(f"Unknown agent role: {role}") from None


def confidence_for_round(role: str, round_number: int) -> float:
    policy = policy_for(role)
    return min(CONFIDENCE_CAP, policy.confidence_base + round_number * policy.confidence_step)
