"""
Input validation for negotiation seeds.

WHAT: Business checks on buyer requests and products
WHY: Bad inputs must fail before a session exists, never be defaulted
HOW: Collect every field error, raise one InvalidInputException
"""

from typing import Dict, List

from ..models.b2b import BuyerRequest, B2BProduct
from ..utils.exceptions import InvalidInputException
from ..utils.logger import get_logger

logger = get_logger(__name__)


def _error(field: str, message: str) -> Dict[str, str]:
    return {"field": field, "message": message}


def buyer_request_errors(request: BuyerRequest) -> List[Dict[str, str]]:
    """List problems that prevent a buyer request from seeding a negotiation."""
    errors = []
    quantity = request.quantity
    budget = request.budget

    if quantity.min < 1:
        errors.append(_error("quantity.min", "Minimum quantity must be at least 1"))
    if quantity.max is not None and quantity.max < quantity.min:
        errors.append(_error("quantity.max", "Maximum quantity must not be below minimum quantity"))

    if budget.max is None or budget.max <= 0:
        errors.append(_error("budget.max", "Maximum budget must be greater than 0"))
    elif budget.min is not None and budget.max < budget.min:
        errors.append(_error("budget.max", "Maximum budget must not be below minimum budget"))

    return errors


def product_errors(product: B2BProduct) -> List[Dict[str, str]]:
    """List problems that prevent a product from seeding a negotiation."""
    errors = []
    terms = product.commercial_terms

    if not terms.pricing:
        errors.append(_error("commercial_terms.pricing", "At least one pricing tier is required"))
    for index, tier in enumerate(terms.pricing):
        if tier.unit_price <= 0:
            errors.append(_error(
                f"commercial_terms.pricing[{index}].unit_price",
                "Tier unit price must be greater than 0"
            ))
        if tier.max_quantity is not None and tier.max_quantity < tier.min_quantity:
            errors.append(_error(
                f"commercial_terms.pricing[{index}].max_quantity",
                "Tier maximum quantity must not be below its minimum quantity"
            ))

    if terms.minimum_order_quantity < 1:
        errors.append(_error("commercial_terms.minimum_order_quantity", "Minimum order quantity must be at least 1"))
    if terms.lead_time.min > terms.lead_time.max:
        errors.append(_error("commercial_terms.lead_time", "Lead time minimum must not exceed maximum"))

    return errors


def validate_buyer_request(request: BuyerRequest):
    """
    Validate a buyer request.

    Raises:
        InvalidInputException: With every field error found
    """
    errors = buyer_request_errors(request)
    if errors:
        logger.warning(f"Invalid buyer request {request.id}: {errors}")
        raise InvalidInputException(f"Invalid buyer request {request.id}", field_errors=errors)


def validate_product(product: B2BProduct):
    """
    Validate a product listing.

    Raises:
        InvalidInputException: With every field error found
    """
    errors = product_errors(product)
    if errors:
        logger.warning(f"Invalid product {product.id}: {errors}")
        raise InvalidInputException(f"Invalid product {product.id}", field_errors=errors)


def validate_negotiation_inputs(request: BuyerRequest, product: B2BProduct):
    """Validate both inputs, reporting all errors together."""
    errors = [
        {**error, "field": f"buyer_request.{error['field']}"} for error in buyer_request_errors(request)
    ] + [
        {**error, "field": f"product.{error['field']}"} for error in product_errors(product)
    ]
    if errors:
        logger.warning(f"Invalid negotiation inputs ({request.id} vs {product.id}): {errors}")
        raise InvalidInputException("Invalid negotiation inputs", field_errors=errors)
