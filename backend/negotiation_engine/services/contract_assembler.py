"""
Contract assembler.

WHAT: Map an agreed offer plus request/product into a Contract record
WHY: Successful negotiations end in a reviewable supply agreement
HOW: Pure mapping and templated document text; no negotiation logic

Assembly failures raise ContractAssemblyException and are reported apart
from the negotiation outcome.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import uuid4

from ..core.config import Settings, settings as default_settings
from ..models.b2b import BuyerRequest, B2BProduct, Warranty
from ..models.contract import (
    Contract,
    ContractApprovals,
    ContractParty,
    ContractProduct,
    ContractTerms,
    Penalties,
)
from ..models.negotiation import Offer
from ..utils.exceptions import ContractAssemblyException
from ..utils.logger import get_logger

logger = get_logger(__name__)

QUALITY_REMEDIATION_TERMS = "Standard quality remediation terms apply"


def _warranty_months(warranty: Optional[Warranty]) -> Optional[int]:
    if warranty is None:
        return None
    if warranty.unit == "years":
        return warranty.duration * 12
    return warranty.duration


def _delivery_city(request: BuyerRequest) -> str:
    location = request.delivery_requirements.location
    return location.city.strip() if location is not None else ""


def render_legal_document(
    offer: Offer,
    request: BuyerRequest,
    product: B2BProduct,
    generated_at: datetime,
    validity_days: int = 30,
    negotiation_summary: Optional[str] = None
) -> str:
    """
    Render the supply agreement text for an agreed offer.

    Args:
        offer: Agreed offer
        request: Originating buyer request
        product: Supplier product
        generated_at: Generation timestamp printed on the document
        validity_days: Days the agreement remains valid
        negotiation_summary: Optional closing summary paragraph

    Returns:
        Plain-text document with commercial, specification, delivery,
        compliance and validity sections
    """
    total = offer.price_per_unit * offer.quantity
    specs = "\n".join(f"- {key}: {value}" for key, value in product.specifications.items())
    certs = "\n".join(f"- {cert}" for cert in product.certifications)
    summary = negotiation_summary or (
        "This contract was automatically negotiated by agents representing both parties.\n"
        "Final terms reflect the balance reached between buyer requirements and supplier constraints."
    )

    lines = [
        "**COMMERCIAL SUPPLY AGREEMENT**",
        "",
        f"**Buyer:** {request.title or 'Buyer Company'}",
        f"**Supplier:** {product.name} Supplier",
        f"**Product:** {product.name}",
        "",
        "**COMMERCIAL TERMS:**",
        f"- Unit Price: {offer.price_per_unit:.2f} {offer.currency}",
        f"- Quantity: {offer.quantity:,} units",
        f"- Total Value: {total:,.2f} {offer.currency}",
        f"- Payment Terms: {offer.payment_terms}",
        f"- Delivery: {offer.delivery_days} days from order confirmation",
        "",
        "**PRODUCT SPECIFICATIONS:**",
        specs or "- None specified",
        "",
        "**DELIVERY TERMS:**",
        f"- Delivery Location: {_delivery_city(request) or 'To be specified'}",
        f"- Delivery Terms: {request.delivery_requirements.terms}",
        f"- Lead Time: {offer.delivery_days} business days",
        "",
        "**QUALITY & COMPLIANCE:**",
        certs or "- No certifications listed",
        "",
        "**VALIDITY:**",
        f"This agreement is valid for {validity_days} days from generation date.",
        f"Generated on: {generated_at.date().isoformat()}",
        "",
        "**NEGOTIATION SUMMARY:**",
        summary,
    ]
    return "\n".join(lines)


def assemble_contract(
    final_offer: Offer,
    request: BuyerRequest,
    product: B2BProduct,
    *,
    now: Optional[datetime] = None,
    config: Optional[Settings] = None,
    negotiation_summary: Optional[str] = None
) -> Contract:
    """
    Build a contract from an agreed offer.

    WHAT: Total price, delivery date, parties, terms and document text
    WHY: Hand the agreed terms to approval
    HOW: total = unit price * quantity; delivery date = now + delivery days;
         status pending_approval, expiry after the validity window

    Args:
        final_offer: Agreed offer
        request: Originating buyer request
        product: Supplier product
        now: Generation time (defaults to current UTC time)
        config: Settings for validity and penalties
        negotiation_summary: Optional summary for the document

    Returns:
        Contract in pending_approval

    Raises:
        ContractAssemblyException: If required fields are missing
    """
    config = config or default_settings
    now = now or datetime.now(timezone.utc)

    missing = []
    if not _delivery_city(request):
        missing.append("delivery_requirements.location.city")
    if not request.buyer_id:
        missing.append("buyer_id")
    if not product.supplier_id:
        missing.append("supplier_id")
    if missing:
        logger.warning(f"Contract assembly failed for session {final_offer.session_id}: missing {missing}")
        raise ContractAssemblyException(
            f"Cannot assemble contract: missing {', '.join(missing)}",
            missing_fields=missing
        )

    total_price = final_offer.price_per_unit * final_offer.quantity
    additional_terms = (
        "; ".join(f"{key}: {value}" for key, value in final_offer.custom_terms.items())
        if final_offer.custom_terms
        else None
    )

    contract = Contract(
        id=f"contract_{uuid4().hex}",
        negotiation_id=final_offer.session_id,
        request_id=request.id,
        product_id=product.id,
        buyer=ContractParty(
            id=request.buyer_id,
            company_name=request.title or "Buyer Company",
        ),
        supplier=ContractParty(
            id=product.supplier_id,
            company_name=f"{product.name} Supplier",
        ),
        product=ContractProduct(
            name=product.name,
            description=product.description,
            specifications=dict(product.specifications),
            certifications=list(product.certifications),
            quantity=final_offer.quantity,
            unit_price=final_offer.price_per_unit,
            total_price=total_price,
            currency=final_offer.currency,
        ),
        terms=ContractTerms(
            price=total_price,
            quantity=final_offer.quantity,
            currency=final_offer.currency,
            delivery_date=now + timedelta(days=final_offer.delivery_days),
            delivery_location=_delivery_city(request),
            payment_terms=final_offer.payment_terms,
            delivery_terms=request.delivery_requirements.terms,
            warranty_period=final_offer.warranty,
            penalties=Penalties(
                late_delivery=config.LATE_DELIVERY_PENALTY_PERCENT,
                quality_issues=QUALITY_REMEDIATION_TERMS,
            ),
            additional_terms=additional_terms,
            price_per_unit=final_offer.price_per_unit,
            delivery_days=final_offer.delivery_days,
            warranty_months=_warranty_months(final_offer.warranty),
        ),
        legal_document=render_legal_document(
            final_offer,
            request,
            product,
            generated_at=now,
            validity_days=config.CONTRACT_VALIDITY_DAYS,
            negotiation_summary=negotiation_summary,
        ),
        status="pending_approval",
        generated_at=now,
        expires_at=now + timedelta(days=config.CONTRACT_VALIDITY_DAYS),
        approvals=ContractApprovals(),
    )

    logger.info(
        f"Contract {contract.id} assembled for session {final_offer.session_id} "
        f"(total {total_price:.2f} {final_offer.currency})"
    )
    return contract


def approve_contract(contract: Contract, party: str, at: Optional[datetime] = None) -> Contract:
    """
    Record one party's approval.

    Status becomes approved once both buyer and supplier have approved.

    Raises:
        ValueError: If party is unknown or the contract is not awaiting approval
    """
    if party not in ("buyer", "supplier"):
        raise ValueError(f"Unknown contract party: {party}")
    if contract.status not in ("draft", "pending_approval"):
        raise ValueError(f"Contract {contract.id} cannot be approved in status {contract.status}")

    at = at or datetime.now(timezone.utc)
    if party == "buyer":
        contract.approvals.buyer_approval = True
        contract.approvals.buyer_signed_at = at
    else:
        contract.approvals.supplier_approval = True
        contract.approvals.supplier_signed_at = at

    if contract.approvals.buyer_approval and contract.approvals.supplier_approval:
        contract.status = "approved"
        logger.info(f"Contract {contract.id} approved by both parties")
    return contract


def reject_contract(contract: Contract, reason: str) -> Contract:
    """Mark a contract rejected with a reason."""
    if contract.status in ("signed", "executed", "cancelled"):
        raise ValueError(f"Contract {contract.id} cannot be rejected in status {contract.status}")

    contract.status = "rejected"
    contract.rejection_reason = reason
    logger.info(f"Contract {contract.id} rejected: {reason}")
    return contract
