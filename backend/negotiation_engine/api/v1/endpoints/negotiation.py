"""
Negotiation endpoints.

WHAT: Start, list and cancel negotiations
WHY: Let HTTP callers drive the orchestrator
HOW: FastAPI router over the app's NegotiationOrchestrator
"""

from fastapi import APIRouter, Request

from ....core.orchestrator import NegotiationOrchestrator
from ....models.api_schemas import (
    StartNegotiationRequest,
    ActiveSessionSummary,
    ActiveSessionsResponse,
    CancelResponse,
)
from ....models.negotiation import NegotiationResult
from ....utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


def get_orchestrator(request: Request) -> NegotiationOrchestrator:
    return request.app.state.orchestrator


@router.post("/negotiations", response_model=NegotiationResult)
async def start_negotiation(body: StartNegotiationRequest, request: Request):
    """
    Run a negotiation to completion.

    WHAT: Create a session and run every round
    WHY: Callers get the full result, metrics and contract in one call
    HOW: Await orchestrator.run(); ordinary failures come back as results

    Returns:
        NegotiationResult

    Raises:
        InvalidInputException: Bad request/product (400)
        NegotiationAlreadyActiveException: session_id already running (409)
    """
    orchestrator = get_orchestrator(request)
    logger.info(
        f"Negotiation requested: request {body.buyer_request.id} vs product {body.product.id} "
        f"(buyer strategy {body.buyer_strategy})"
    )
    return await orchestrator.run(
        body.buyer_request,
        body.product,
        body.buyer_strategy,
        body.supplier_strategy,
        session_id=body.session_id,
        max_duration_minutes=body.max_duration_minutes,
    )


@router.get("/negotiations/active", response_model=ActiveSessionsResponse)
async def list_active_negotiations(request: Request):
    """List sessions that are still running."""
    sessions = [
        ActiveSessionSummary(
            session_id=session.id,
            buyer_request_id=session.buyer_request_id,
            product_id=session.product_id,
            status=session.status,
            current_phase=session.current_phase,
            current_round=session.current_round,
            rounds_completed=len(session.rounds),
            start_time=session.start_time,
            last_activity=session.last_activity,
        )
        for session in get_orchestrator(request).active_sessions()
    ]
    return ActiveSessionsResponse(sessions=sessions, total=len(sessions))


@router.post("/negotiations/{session_id}/cancel", response_model=CancelResponse)
async def cancel_negotiation(session_id: str, request: Request):
    """
    Request cancellation of a running session.

    Raises:
        SessionNotFoundException: Unknown or finished session (404)
    """
    get_orchestrator(request).cancel(session_id)
    return CancelResponse(
        session_id=session_id,
        cancelled=True,
        message="Cancellation requested; the session stops before its next round",
    )
