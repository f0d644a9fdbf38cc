"""
Main application entry point - FastAPI app instance and configuration.
This is where the ASGI application is created and configured.
Run with: uvicorn app.main:app --reload
"""

import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import Depends, FastAPI  # The FastAPI framework
from fastapi.middleware.cors import CORSMiddleware  # Cross-Origin Resource Sharing
from fastapi.responses import JSONResponse

from app.core.config import KNOWN_PROVIDERS, settings  # Application settings
from app.deps import get_resolver
from app.ai.intent.resolver import IntentResolver  # Provider chain + fallback
from app.ai.monitoring import configure_logging
from app.ai.providers import ProviderError, ProviderErrorKind
from app.routers import intent  # Spoken command processing

logger = logging.getLogger("voiceweb.api")

START_TIME = time.time()

# Hints returned by /health/api when the primary provider probe fails
PROBE_SUGGESTIONS = {
    ProviderErrorKind.AUTH_ERROR: "Check that the API key for {name} is valid and properly formatted",
    ProviderErrorKind.TIMEOUT: "{name} is slow to respond and may be experiencing issues",
    ProviderErrorKind.NETWORK_ERROR: "Check your internet connection and the {name} API URL",
    ProviderErrorKind.RATE_LIMITED: "{name} is rate limiting requests, retry later or raise the quota",
    ProviderErrorKind.SERVER_ERROR: "{name} returned a server error, check its status page",
}


# ---------------------------------------------------------------------------
# LIFESPAN
# ---------------------------------------------------------------------------
# Settings are already validated at import; the resolver and its SDK
# clients are built once and shared by every request.
@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.LOG_LEVEL)
    app.state.resolver = IntentResolver.from_settings(settings)
    logger.info(
        f"{settings.APP_NAME} v{settings.APP_VERSION} starting "
        f"(environment={settings.ENVIRONMENT}, primary={settings.PRIMARY_PROVIDER}, "
        f"secondary={settings.SECONDARY_PROVIDER})"
    )
    if not app.state.resolver.has_configured_provider:
        logger.warning("No AI provider key configured, every command goes to the fallback parser")
    yield
    logger.info("Shutting down gracefully")


# ---------------------------------------------------------------------------
# CREATE FASTAPI APPLICATION
# ---------------------------------------------------------------------------
# - docs_url: Swagger UI, visit http://localhost:3000/docs to test endpoints
# - redoc_url: ReDoc, an alternative view of the same schema
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# CORS MIDDLEWARE
# ---------------------------------------------------------------------------
# The browser extension calls the API from its own origin, so cross-origin
# requests must be allowed explicitly. Origins come from CORS_ORIGINS.
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=settings.CORS_CREDENTIALS,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------------------------------------------------------------------
# REGISTER ROUTERS
# ---------------------------------------------------------------------------
# intent.router: /api/intent, /api/intent/fallback, /api/intent/stats
app.include_router(intent.router)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _uptime() -> float:
    return round(time.time() - START_TIME, 3)


# ---------------------------------------------------------------------------
# ROOT & HEALTH CHECK ENDPOINTS
# ---------------------------------------------------------------------------
@app.get("/", tags=["health"])
def root():
    """Service banner with the list of available endpoints."""
    return {
        "message": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "endpoints": [
            "/api/intent - Intent processing",
            "/api/intent/fallback - Rule-based parsing only",
            "/api/intent/stats - AI usage statistics",
            "/health - Health check",
            "/health/api - Primary AI provider connectivity check",
        ],
    }


@app.get("/health", tags=["health"])
def health_check(resolver: IntentResolver = Depends(get_resolver)):
    """
    Simple health check endpoint.

    Used by:
    - Container health probes
    - Load balancers to check if the instance is healthy

    Does NOT call any AI provider (use /health/api for that).
    """
    return {
        "status": "healthy",
        "timestamp": _now(),
        "uptime": _uptime(),
        "environment": settings.ENVIRONMENT,
        "services": {
            name: "configured" if settings.has_provider_key(name) else "missing"
            for name in KNOWN_PROVIDERS
        },
        "features": {
            "primaryProvider": settings.PRIMARY_PROVIDER,
            "secondaryProvider": settings.SECONDARY_PROVIDER,
            "fallbackOnly": not resolver.has_configured_provider,
            "debugMode": settings.DEBUG,
        },
    }


@app.get("/health/api", tags=["health"])
async def health_check_api(resolver: IntentResolver = Depends(get_resolver)):
    """
    Health check that validates connectivity to the primary AI provider.

    Sends a one-token request. Returns 200 when the provider answers and
    503 otherwise, with a suggestion describing how to fix the failure.
    """
    provider = resolver.slots[0].provider
    service = {
        "name": provider.name,
        "model": provider.model,
        "configured": provider.is_configured,
        "status": "unknown",
        "lastChecked": None,
        "error": None,
    }

    if not provider.is_configured:
        service["status"] = "missing_api_key"
        service["error"] = {
            "message": f"{provider.name.upper()}_API_KEY is not configured",
            "suggestion": f"Set the {provider.name.upper()}_API_KEY environment variable",
        }
    else:
        try:
            await provider.probe()
            service["status"] = "healthy"
        except ProviderError as e:
            logger.warning(f"Primary provider probe failed: {e}")
            service["status"] = "error"
            service["error"] = {
                "message": e.message,
                "kind": e.kind.value,
                "suggestion": PROBE_SUGGESTIONS[e.kind].format(name=provider.name),
            }
        service["lastChecked"] = _now()

    healthy = service["status"] == "healthy"
    return JSONResponse(
        status_code=200 if healthy else 503,
        content={
            "status": "healthy" if healthy else "unhealthy",
            "timestamp": _now(),
            "uptime": _uptime(),
            "environment": settings.ENVIRONMENT,
            "services": {"primary": service},
            "overall": {"healthy": healthy},
        },
    )
