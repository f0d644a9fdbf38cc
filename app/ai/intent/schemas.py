"""
Intent Schemas - Pydantic models for structured web-page intents.

These schemas define the structure of resolved intents and of the page
context the browser extension sends along with the spoken text.

Design Philosophy:
=================
- Validation at construction time (confidence always in [0, 1])
- camelCase on the wire (the extension is JavaScript), snake_case in Python
- No timestamps or ids on Intent: two resolutions of the same text compare equal
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ActionType(str, Enum):
    """
    Closed set of page actions an intent can carry.

    SCROLL: Move the viewport (direction, amount)
    CLICK: Activate an element (target)
    FILL: Type a value into a form field (field, value)
    SEARCH: Run a search (query)
    NAVIGATE: Load another page (url or destination)
    GO_BACK / GO_FORWARD: History navigation
    REFRESH: Reload the current page
    ZOOM: Change page zoom (direction)
    READ: Read the page or an element aloud
    SUMMARIZE: Summarize the page
    STOP: Cancel the current speech or action
    UNKNOWN: Could not determine intent
    """
    SCROLL = "scroll"
    CLICK = "click"
    FILL = "fill"
    SEARCH = "search"
    NAVIGATE = "navigate"
    GO_BACK = "go_back"
    GO_FORWARD = "go_forward"
    REFRESH = "refresh"
    ZOOM = "zoom"
    READ = "read"
    SUMMARIZE = "summarize"
    STOP = "stop"
    UNKNOWN = "unknown"


class ProviderStage(str, Enum):
    """Which stage of the resolution chain produced an intent."""
    PRIMARY = "primary"
    SECONDARY = "secondary"
    FALLBACK = "fallback"


class CamelModel(BaseModel):
    """Base model serialized with camelCase field names."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# PAGE CONTEXT
# ---------------------------------------------------------------------------

class ElementDescriptor(CamelModel):
    """
    One interactive element visible on the page.

    Example:
        {"tag": "button", "text": "Sign in", "attributes": {"id": "login"}}
    """
    tag: str = Field(default="", description="Lower-case tag name")
    text: str = Field(default="", description="Visible text or accessible label")
    attributes: Dict[str, str] = Field(default_factory=dict)


class PageContext(CamelModel):
    """
    Read-only page context supplied by the caller.

    The resolver uses it to enrich the prompt; it never stores or mutates it.
    """
    session_id: Optional[str] = None
    url: Optional[str] = None
    title: Optional[str] = None
    available_elements: List[ElementDescriptor] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# INTENT
# ---------------------------------------------------------------------------

class Intent(CamelModel):
    """
    Canonical structured representation of a spoken command.

    Examples:
    - "scroll down" -> action=scroll, parameters={"direction": "down"}
    - "fill email with a@b.co" -> action=fill,
      parameters={"field": "email", "value": "a@b.co"}
    """
    action: ActionType = Field(description="The page action to perform")
    target: Optional[str] = Field(default=None, description="Selector, visible text or role")
    parameters: Dict[str, Any] = Field(default_factory=dict, description="Action parameters")
    confidence: float = Field(ge=0.0, le=1.0, description="Confidence score 0-1")
    provider_used: ProviderStage = Field(description="Stage that produced this intent")
    raw_text: str = Field(description="The original user request")
    reasoning: Optional[str] = Field(default=None, description="Why this intent was chosen")

    @property
    def is_unknown(self) -> bool:
        return self.action == ActionType.UNKNOWN


# ---------------------------------------------------------------------------
# RESOLUTION BOOKKEEPING
# ---------------------------------------------------------------------------

class AttemptStatus(str, Enum):
    """Outcome of a single stage attempt."""
    SUCCESS = "success"
    SKIPPED = "skipped"          # provider has no credentials
    PROVIDER_ERROR = "provider_error"
    NORMALIZATION_ERROR = "normalization_error"
    UNEXPECTED_ERROR = "unexpected_error"


class ResolutionAttempt(CamelModel):
    """Observability record for one stage of the chain."""
    stage: ProviderStage
    provider: str
    model: Optional[str] = None
    status: AttemptStatus
    latency_ms: float = 0.0
    error_kind: Optional[str] = None
    error: Optional[str] = None


class ResolutionResult(CamelModel):
    """The resolved intent plus the attempts that led to it."""
    intent: Intent
    attempts: List[ResolutionAttempt] = Field(default_factory=list)
    processing_time_ms: float = 0.0
    request_id: Optional[str] = None


@dataclass
class AttemptSuccess:
    """A stage produced a usable intent."""
    intent: Intent
    attempt: ResolutionAttempt


@dataclass
class AttemptFailure:
    """A stage failed; the resolver moves on to the next one."""
    attempt: ResolutionAttempt
    error: Optional[Exception] = field(default=None)


AttemptOutcome = Union[AttemptSuccess, AttemptFailure]
