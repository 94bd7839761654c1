"""
Contract models.

WHAT: Structured contract produced from an agreed offer
WHY: Hand the negotiated terms to approval and document workflows
HOW: Pydantic v2 models mirroring the supply agreement sections
"""

from pydantic import BaseModel, Field
from typing import Literal
from datetime import datetime

from .b2b import Warranty


ContractStatus = Literal[
    "draft", "pending_approval", "approved", "rejected", "signed", "executed", "cancelled"
]


class ContractParty(BaseModel):
    id: str
    company_name: str
    contact_person: str = ""
    address: str = ""


class ContractProduct(BaseModel):
    name: str
    description: str = ""
    specifications: dict[str, str] = Field(default_factory=dict)
    certifications: list[str] = Field(default_factory=list)
    quantity: int = Field(ge=1)
    unit_price: float = Field(ge=0.0)
    total_price: float = Field(ge=0.0)
    currency: str


class Penalties(BaseModel):
    late_delivery: float | None = None  # percent per day
    quality_issues: str | None = None


class ContractTerms(BaseModel):
    price: float = Field(ge=0.0)  # total contract value
    quantity: int = Field(ge=1)
    currency: str
    delivery_date: datetime
    delivery_location: str
    payment_terms: str
    delivery_terms: str
    warranty_period: Warranty | None = None
    penalties: Penalties = Field(default_factory=Penalties)
    additional_terms: str | None = None
    price_per_unit: float = Field(ge=0.0)
    delivery_days: int = Field(ge=0)
    warranty_months: int | None = None


class ContractApprovals(BaseModel):
    buyer_approval: bool = False
    supplier_approval: bool = False
    buyer_signed_at: datetime | None = None
    supplier_signed_at: datetime | None = None


class Contract(BaseModel):
    """Contract generated from a successful negotiation."""

    id: str
    negotiation_id: str
    request_id: str
    product_id: str
    buyer: ContractParty
    supplier: ContractParty
    product: ContractProduct
    terms: ContractTerms
    legal_document: str
    status: ContractStatus = "pending_approval"
    generated_at: datetime
    expires_at: datetime | None = None
    rejection_reason: str | None = None
    approvals: ContractApprovals = Field(default_factory=ContractApprovals)
