"""
Custom business exceptions for the negotiation engine.

WHAT: Domain-specific exceptions for caller and input errors
WHY: Keep configuration errors apart from ordinary negotiation outcomes
HOW: Custom exception classes with error codes and details
"""

from typing import Optional, List, Dict, Any


class BusinessException(Exception):
    """Base class for business logic exceptions."""

    def __init__(self, message: str, code: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details


class InvalidInputException(BusinessException):
    """Raised when a buyer request or product cannot seed a negotiation."""

    def __init__(self, message: str, field_errors: Optional[List[Dict[str, str]]] = None):
        super().__init__(
            message=message,
            code="INVALID_INPUT",
            details={"field_errors": field_errors} if field_errors else None
        )
        self.field_errors = field_errors or []


class SessionNotFoundException(BusinessException):
    """Raised when a session is not found."""

    def __init__(self, session_id: str):
        super().__init__(
            message=f"Session not found: {session_id}",
            code="SESSION_NOT_FOUND",
            details={"session_id": session_id}
        )


class NegotiationAlreadyActiveException(BusinessException):
    """Raised when a session id is reused while its run is still in flight."""

    def __init__(self, session_id: str):
        super().__init__(
            message=f"Negotiation already active for session: {session_id}",
            code="NEGOTIATION_ALREADY_ACTIVE",
            details={"session_id": session_id}
        )


class ContractAssemblyException(BusinessException):
    """Raised when a contract cannot be built from an agreed offer."""

    def __init__(self, message: str, missing_fields: Optional[List[str]] = None):
        super().__init__(
            message=message,
            code="CONTRACT_ASSEMBLY_FAILED",
            details={"missing_fields": missing_fields} if missing_fields else None
        )
        self.missing_fields = missing_fields or []
