"""
Buyer request and product models.

WHAT: Read-only inputs handed to the engine by the catalog/forms layer
WHY: Typed view of what a negotiation is seeded from
HOW: Pydantic v2 models; structural checks here, business checks in services.validation
"""

from pydantic import BaseModel, Field, field_validator
from typing import Literal
from datetime import datetime


PaymentTerms = Literal[
    "immediate", "net_7", "net_14", "net_30", "net_60", "net_90", "custom"
]
DeliveryTerms = Literal["ex_works", "fob", "cif", "dap", "ddp", "custom"]
Urgency = Literal["low", "medium", "high", "critical", "urgent"]


class QuantityRange(BaseModel):
    """Requested quantity window."""

    min: int = Field(ge=0)
    max: int | None = Field(default=None, ge=0)
    unit: str = "units"


class Budget(BaseModel):
    """Total budget for the whole order (not per unit)."""

    min: float | None = Field(default=None, ge=0.0)
    max: float | None = Field(default=None, ge=0.0)
    currency: str = "EUR"


class DeliveryLocation(BaseModel):
    city: str = ""
    country: str = ""


class DeliveryRequirements(BaseModel):
    location: DeliveryLocation | None = None
    deadline: datetime | None = None
    terms: DeliveryTerms = "dap"


class PaymentPreferences(BaseModel):
    terms: PaymentTerms = "net_30"
    custom_terms: str | None = None


class BuyerRequest(BaseModel):
    """A buyer's procurement request."""

    id: str
    buyer_id: str
    title: str = ""
    description: str = ""
    category: str = ""
    specifications: dict[str, str] = Field(default_factory=dict)
    quantity: QuantityRange
    budget: Budget
    delivery_requirements: DeliveryRequirements = Field(default_factory=DeliveryRequirements)
    payment_preferences: PaymentPreferences = Field(default_factory=PaymentPreferences)
    urgency: Urgency = "medium"

    @field_validator("specifications", mode="before")
    @classmethod
    def stringify_specifications(cls, v):
        """Catalog specs may carry numbers; the engine only needs text."""
        if isinstance(v, dict):
            return {str(key): str(value) for key, value in v.items()}
        return v


class PricingTier(BaseModel):
    """Unit price for a quantity breakpoint."""

    min_quantity: int = Field(ge=0)
    max_quantity: int | None = Field(default=None, ge=0)
    unit_price: float = Field(ge=0.0)
    currency: str = "EUR"

    def contains(self, quantity: int) -> bool:
        """Check whether a quantity falls inside this tier."""
        if quantity < self.min_quantity:
            return False
        return self.max_quantity is None or quantity <= self.max_quantity


class LeadTime(BaseModel):
    min: int = Field(ge=0)
    max: int = Field(ge=0)
    unit: Literal["days", "weeks", "months"] = "days"


class Warranty(BaseModel):
    duration: int = Field(ge=0)
    unit: Literal["months", "years"] = "months"


class CommercialTerms(BaseModel):
    """Supplier's listed commercial terms."""

    pricing: list[PricingTier] = Field(default_factory=list)
    payment_terms: PaymentTerms = "net_30"
    delivery_terms: DeliveryTerms = "ex_works"
    lead_time: LeadTime
    minimum_order_quantity: int = Field(ge=0)
    currency: str = "EUR"
    includes_vat: bool = False
    warranty_period: Warranty | None = None


class NegotiationBoundaries(BaseModel):
    """How far the supplier lets its agent move."""

    price_flexibility: float = Field(default=10.0, ge=0.0, le=100.0)  # percent
    quantity_flexibility: float = Field(default=0.0, ge=0.0, le=100.0)  # percent
    delivery_flexibility: int = Field(default=0, ge=0)  # days
    payment_terms_flexible: bool = False


class B2BProduct(BaseModel):
    """A supplier's product listing."""

    id: str
    supplier_id: str
    name: str = ""
    description: str = ""
    category: str = ""
    specifications: dict[str, str] = Field(default_factory=dict)
    certifications: list[str] = Field(default_factory=list)
    commercial_terms: CommercialTerms
    negotiation_boundaries: NegotiationBoundaries = Field(default_factory=NegotiationBoundaries)

    @field_validator("specifications", mode="before")
    @classmethod
    def stringify_specifications(cls, v):
        if isinstance(v, dict):
            return {str(key): str(value) for key, value in v.items()}
        return v
