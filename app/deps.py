"""
Dependencies module - reusable FastAPI dependencies for route handlers.
The main dependency here is get_resolver which hands out the shared IntentResolver.
"""

from fastapi import HTTPException, Request, status  # FastAPI components

from app.ai.intent.resolver import IntentResolver  # Provider chain + fallback


def get_resolver(request: Request) -> IntentResolver:
    """
    Return the IntentResolver built at startup.

    The resolver is stateless between requests, so a single instance is
    shared by every handler. Tests replace it with
    `app.dependency_overrides[get_resolver]`.

    Raises:
        503 Service Unavailable: If the application has not finished startup
    """
    resolver = getattr(request.app.state, "resolver", None)
    if resolver is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Intent resolver is not initialized",
        )
    return resolver
