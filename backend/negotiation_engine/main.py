"""
FastAPI application entry point.

WHAT: HTTP surface over the negotiation engine
WHY: Let services start and cancel negotiations remotely
HOW: create_app() wires settings, orchestrator, middleware and routers
"""

from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from .core.config import Settings, settings as default_settings
from .core.orchestrator import NegotiationOrchestrator
from .utils.logger import setup_logging, get_logger
from .middleware.error_handler import register_exception_handlers
from .api.v1.router import api_router

logger = get_logger(__name__)


def create_app(
    orchestrator: Optional[NegotiationOrchestrator] = None,
    config: Optional[Settings] = None
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        orchestrator: Orchestrator to serve (a new one if omitted)
        config: Settings for app metadata and CORS

    Returns:
        Configured FastAPI app
    """
    config = config or (orchestrator.settings if orchestrator else default_settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(config)
        logger.info(f"Starting {config.APP_NAME} v{config.APP_VERSION}")
        yield
        logger.info("Shutting down application")
        app.state.orchestrator.events.close()

    app = FastAPI(
        title=config.APP_NAME,
        version=config.APP_VERSION,
        lifespan=lifespan
    )
    app.state.orchestrator = orchestrator or NegotiationOrchestrator(config)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.get_cors_origins_list(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)
    app.include_router(api_router)

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "app": config.APP_NAME,
            "version": config.APP_VERSION,
            "status": "running"
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "negotiation_engine.main:app",
        host="0.0.0.0",
        port=8000,
        reload=default_settings.DEBUG
    )
