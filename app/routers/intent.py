"""
Intent Router - API endpoint for spoken command processing.

This router handles the /api/intent endpoints, the main entry point for
the browser extension. It delegates all resolution logic to IntentResolver.

Architecture:
=============
```
┌─────────────────┐
│ "fill email     │
│  with john@..." │
└────────┬────────┘
         │
         ▼
┌─────────────────┐
│  Intent Router  │  ← HTTP handling only (this file)
│  (FastAPI)      │
└────────┬────────┘
         │
         ▼
┌─────────────────┐
│ IntentResolver  │  ← primary → secondary → fallback
└─────────────────┘
```
"""

import logging
import uuid
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import Field

from app.deps import get_resolver
from app.ai.intent.errors import IntentValidationError, validate_text
from app.ai.intent.resolver import IntentResolver
from app.ai.intent.schemas import CamelModel, Intent, PageContext, ResolutionAttempt
from app.ai.monitoring import ai_monitor


# ---------------------------------------------------------------------------
# LOGGER SETUP
# ---------------------------------------------------------------------------
logger = logging.getLogger("voiceweb.api.intent")


# ---------------------------------------------------------------------------
# ROUTER SETUP
# ---------------------------------------------------------------------------
router = APIRouter(prefix="/api/intent", tags=["intent"])


# ---------------------------------------------------------------------------
# REQUEST/RESPONSE SCHEMAS
# ---------------------------------------------------------------------------

class IntentRequest(CamelModel):
    """
    Request schema for the /api/intent endpoint.

    Example:
    {
        "text": "click the login button",
        "context": {"sessionId": "abc", "url": "https://example.com"}
    }
    """
    text: str = Field(
        ...,
        min_length=1,
        max_length=1000,
        description="Transcribed spoken command"
    )
    context: Optional[PageContext] = Field(
        default=None,
        description="Optional: current page context used to enrich the prompt"
    )


class IntentResponse(CamelModel):
    """
    Response schema for the /api/intent endpoint.

    Example:
    {
        "success": true,
        "intent": {"action": "scroll", "parameters": {"direction": "down"}, ...},
        "attempts": [{"stage": "primary", "status": "skipped", ...}, ...],
        "processingTimeMs": 1.2,
        "requestId": "..."
    }
    """
    success: bool = Field(description="False only when the command was not understood")
    intent: Intent
    attempts: List[ResolutionAttempt] = Field(default_factory=list)
    processing_time_ms: float = Field(description="Processing time")
    request_id: str = Field(description="Request tracking ID")


class FallbackRequest(CamelModel):
    """Request schema for /api/intent/fallback."""
    text: str = Field(..., min_length=1, max_length=1000)


class AIStatsResponse(CamelModel):
    """Response schema for /api/intent/stats endpoint."""
    total_requests: int
    successful_requests: int
    failed_requests: int
    success_rate: str
    total_tokens: int
    avg_latency_ms: float
    estimated_total_cost: str
    requests_by_provider: Dict[str, int]
    intents_by_stage: Dict[str, int]
    fallback_rate: str
    errors_by_kind: Dict[str, int]


# ---------------------------------------------------------------------------
# HELPER FUNCTIONS
# ---------------------------------------------------------------------------

def _validated_text(text: str) -> str:
    """Map the resolver precondition onto a 400 response."""
    try:
        return validate_text(text)
    except IntentValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )


# ---------------------------------------------------------------------------
# ENDPOINTS
# ---------------------------------------------------------------------------

@router.post("", response_model=IntentResponse, response_model_by_alias=True)
async def process_intent(
    request: IntentRequest,
    resolver: IntentResolver = Depends(get_resolver),
):
    """
    Resolve a spoken command into a page action.

    This is the main endpoint for the browser extension. It:
    1. Tries the primary AI provider
    2. Falls through to the secondary provider on any failure
    3. Falls back to the rule-based parser
    4. Returns the intent plus every attempt made

    **Examples:**
    - "Scroll down"
    - "Click the login button"
    - "Fill email with john@example.com"
    - "Go to github dot com"
    """
    text = _validated_text(request.text)
    request_id = str(uuid.uuid4())

    try:
        result = await resolver.resolve(text, request.context, request_id=request_id)
    except Exception as e:
        logger.error(f"Failed to process intent: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to process intent: {str(e)}"
        )

    return IntentResponse(
        success=not result.intent.is_unknown,
        intent=result.intent,
        attempts=result.attempts,
        processing_time_ms=result.processing_time_ms,
        request_id=result.request_id or request_id,
    )


@router.post("/fallback", response_model=Intent, response_model_by_alias=True)
async def process_fallback(
    request: FallbackRequest,
    resolver: IntentResolver = Depends(get_resolver),
):
    """
    Run only the rule-based fallback parser.

    Useful to check what the service answers when every provider is down.
    """
    text = _validated_text(request.text)
    return resolver.fallback_parser.parse(text)


@router.get("/stats", response_model=AIStatsResponse, response_model_by_alias=True)
async def get_ai_stats():
    """
    Get AI usage statistics.

    Returns aggregated metrics about AI usage including:
    - Total provider calls processed
    - Success/failure rates
    - Token usage
    - Estimated costs
    - Intents resolved per stage and the fallback rate
    - Provider failures per error kind
    """
    stats = ai_monitor.get_stats()
    return AIStatsResponse(
        total_requests=stats.total_requests,
        successful_requests=stats.successful_requests,
        failed_requests=stats.failed_requests,
        success_rate=f"{stats.success_rate:.1f}%",
        total_tokens=stats.total_tokens,
        avg_latency_ms=round(stats.avg_latency_ms, 2),
        estimated_total_cost=f"${stats.estimated_total_cost:.4f}",
        requests_by_provider=dict(stats.requests_by_provider),
        intents_by_stage=dict(stats.intents_by_stage),
        fallback_rate=f"{stats.fallback_rate:.1f}%",
        errors_by_kind=dict(stats.errors_by_kind),
    )
