"""
CallWarden - Backend Entrypoint

FastAPI application factory and server configuration.
Run with: uvicorn main:app --reload  (from the backend/ directory)
"""

from contextlib import asynccontextmanager
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
import uvicorn

from callwarden import __version__
from callwarden.config import Settings, get_settings
from callwarden.api import health
from callwarden.core.enforcer import create_enforcer
from callwarden.core.exceptions import CallWardenError
from callwarden.core.logging import setup_structured_logging
from callwarden.telephony import router as telephony
from callwarden.telephony.call_control import CallController

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    controller: Optional[CallController] = None,
) -> FastAPI:
    """
    Application factory.

    Args:
        settings: Settings override (defaults to environment)
        controller: Call controller override (defaults to the configured backend)
    """
    settings = settings or get_settings()

    setup_structured_logging(settings.app_log_level, json_format=settings.log_json)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan manager.

        Startup:
            - Build the call controller (validates Twilio credentials)
            - Wire registries, timers and terminator into the enforcer

        Shutdown:
            - Cancel every pending timer
        """
        # === Startup ===
        logger.info("🚀 CallWarden starting in %s mode", settings.app_env)

        enforcer = create_enforcer(settings, controller=controller)

        app.state.enforcer = enforcer
        app.state.settings = settings

        logger.info(
            "✅ Enforcer ready: call_control=%s, pause=%ds",
            settings.call_control_backend if controller is None else controller.name,
            settings.end_call_pause_seconds,
        )

        yield

        # === Shutdown ===
        logger.info("👋 CallWarden shutting down")
        await enforcer.shutdown()
        logger.info("✅ Shutdown complete")

    app = FastAPI(
        title="CallWarden",
        description="Call-duration enforcement relay for voice call webhooks",
        version=__version__,
        docs_url="/docs" if settings.app_debug else None,
        redoc_url="/redoc" if settings.app_debug else None,
        lifespan=lifespan,
    )

    # --- Errors ---
    @app.exception_handler(CallWardenError)
    async def handle_callwarden_error(request: Request, exc: CallWardenError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.message, "code": exc.code},
        )

    # --- Routes ---
    app.include_router(telephony.router)
    app.include_router(health.router)

    # --- Health check at root ---
    @app.get("/")
    async def root():
        """Root health check."""
        return {
            "service": "CallWarden",
            "status": "operational",
            "version": __version__,
        }

    return app


# Create app instance
app = create_app()


if __name__ == "__main__":
    _settings = get_settings()
    uvicorn.run(app, host=_settings.backend_host, port=_settings.backend_port)
