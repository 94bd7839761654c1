"""
Status endpoint.

WHAT: Configured limits and current load
WHY: Quick diagnostics for callers and ops
HOW: Read settings and the orchestrator's session store
"""

from fastapi import APIRouter, Request

from ....models.api_schemas import EngineStatusResponse

router = APIRouter()


@router.get("/status", response_model=EngineStatusResponse)
async def engine_status(request: Request):
    orchestrator = request.app.state.orchestrator
    config = orchestrator.settings
    return EngineStatusResponse(
        app_name=config.APP_NAME,
        version=config.APP_VERSION,
        max_rounds=config.MAX_ROUNDS,
        max_duration_minutes=config.MAX_DURATION_MINUTES,
        round_delay_seconds=config.ROUND_DELAY_SECONDS,
        active_sessions=len(orchestrator.active_sessions()),
        event_subscribers=orchestrator.events.subscriber_count,
    )
