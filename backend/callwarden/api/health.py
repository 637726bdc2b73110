"""
CallWarden - Health Check Endpoints

System health monitoring endpoints for load balancers, monitoring,
and operational visibility.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request

from callwarden import __version__
from callwarden.config import Settings
from callwarden.core.enforcer import CallLimitEnforcer

router = APIRouter(prefix="/api/system", tags=["system"])


def get_app_settings(request: Request) -> Settings:
    """Dependency to get settings from app state."""
    return request.app.state.settings


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@router.get("/health")
async def health_check(
    request: Request,
    settings: Settings = Depends(get_app_settings),
) -> dict:
    """
    Overall system health check.
    
    Returns:
        - status: "healthy" or "degraded"
        - checks: Individual component statuses
        - timestamp: Current server time
    """
    enforcer: CallLimitEnforcer = getattr(request.app.state, "enforcer", None)
    
    checks = {
        "enforcer": {
            "status": "healthy" if enforcer is not None else "unavailable",
            "active_calls": len(enforcer.active_calls()) if enforcer is not None else 0,
        },
        "call_control": {
            "status": "healthy",
            "backend": settings.call_control_backend,
        },
    }
    
    all_healthy = all(c.get("status") == "healthy" for c in checks.values())
    
    return {
        "status": "healthy" if all_healthy else "degraded",
        "timestamp": _timestamp(),
        "version": __version__,
        "environment": settings.app_env,
        "checks": checks,
    }


@router.get("/ready")
async def readiness_check(request: Request) -> dict:
    """
    Readiness probe for container orchestration.
    
    Ready once the lifespan has wired the enforcer.
    """
    return {
        "ready": getattr(request.app.state, "enforcer", None) is not None,
        "timestamp": _timestamp(),
    }


@router.get("/live")
async def liveness_check() -> dict:
    """Liveness probe for container orchestration."""
    return {
        "alive": True,
        "timestamp": _timestamp(),
    }


@router.get("/config")
async def config_info(
    settings: Settings = Depends(get_app_settings),
) -> dict:
    """
    Non-sensitive configuration information.
    
    Excludes Twilio credentials.
    """
    return {
        "environment": settings.app_env,
        "debug": settings.app_debug,
        "log_level": settings.app_log_level,
        "call_control": {
            "backend": settings.call_control_backend,
            "timeout_seconds": settings.call_control_timeout_seconds,
            "credentials_configured": bool(
                settings.twilio_account_sid and settings.twilio_auth_token
            ),
        },
        "enforcement": {
            "end_call_pause_seconds": settings.end_call_pause_seconds,
            "default_end_message": settings.default_end_message,
        },
        "timestamp": _timestamp(),
    }
