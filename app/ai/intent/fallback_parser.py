"""
Fallback Parser - Deterministic rule-based text-to-intent matcher.

Used when no AI provider is configured or every provider attempt failed.
It has no I/O and no state, so it cannot fail: the terminal case is
always an "unknown" intent with confidence 0.

Rule Precedence:
================
Rules are evaluated in table order against the trimmed, accent-folded,
case-insensitive text; the first match wins. More specific phrasings come
first so that, e.g., "fill the search box with shoes" is a fill and not a
search, and "go to the top" scrolls instead of navigating.

    #   rule            examples
    1   fill_with       "fill email with john@example.com", "fill in name with Ann"
    2   fill_into       "type hello into the search box", "enter 42 in age"
    3   search          "search for shoes", "look up weather", "google cats"
    4   scroll_edge     "go to the top", "scroll to the bottom of the page"
    5   go_back         "go back", "previous page"
    6   go_forward      "go forward", "forward"
    7   refresh         "refresh", "reload the page"
    8   navigate        "go to github dot com", "open example.org", "visit the docs"
    9   scroll          "scroll down", "page up", "scroll down 300 pixels"
    10  zoom            "zoom in", "make it bigger"
    11  summarize       "summarize this page", "give me a summary"
    12  read            "read the page", "read the first paragraph"
    13  stop            "stop", "never mind"
    14  click           "click the login button", "tap on Settings", "submit"

The table is append-only: add new commands as new rules and extend the
precedence tests before moving an existing rule.
"""

import logging
import re
import unicodedata
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Pattern, Tuple

from app.ai.intent.normalizer import IntentNormalizer
from app.ai.intent.schemas import ActionType, Intent, ProviderStage

logger = logging.getLogger("voiceweb.ai.fallback")

Groups = Dict[str, str]
BuildResult = Tuple[Optional[str], Dict[str, Any]]

COURTESY_PREFIX_RE = re.compile(
    r"^(?:(?:please|hey|ok|okay|can\s+you|could\s+you|would\s+you|will\s+you|"
    r"i\s+want\s+to|i\s+would\s+like\s+to|i'd\s+like\s+to)[\s,]+)+",
    re.IGNORECASE,
)
COURTESY_SUFFIX_RE = re.compile(r"[\s,]+(?:please|thanks|thank\s+you)$", re.IGNORECASE)
TRAILING_PUNCTUATION = ".!?,;: "


def fold_accents(text: str) -> str:
    """
    Strip diacritics character by character.

    The result has the same length as the input, so match spans found in
    the folded text can be used to slice the original.
    """
    folded = []
    for char in text:
        base = "".join(c for c in unicodedata.normalize("NFKD", char) if not unicodedata.combining(c))
        folded.append(base if len(base) == 1 else char)
    return "".join(folded)


def _collapse(value: str) -> str:
    return " ".join(value.split())


def _lower(groups: Groups, key: str) -> Optional[str]:
    value = groups.get(key)
    return value.lower() if value else None


# ---------------------------------------------------------------------------
# PARAMETER BUILDERS
# ---------------------------------------------------------------------------

def _build_fill(groups: Groups) -> BuildResult:
    field_label = re.sub(r"^(?:the|my)\s+", "", groups["field"].lower())
    return None, {"field": field_label, "value": groups["value"]}


def _build_search(groups: Groups) -> BuildResult:
    return None, {"query": groups["query"].lower()}


def _build_scroll_edge(groups: Groups) -> BuildResult:
    return None, {"direction": groups["edge"].lower()}


def _build_navigate(groups: Groups) -> BuildResult:
    destination = groups.get("destination") or groups.get("url") or ""
    destination = re.sub(r"\s+dot\s+", ".", destination.lower())
    destination = re.sub(r"^(?:the|my)\s+", "", destination)
    if re.match(r"^(?:https?://)?[\w\-]+(?:\.[\w\-]+)+(?:/\S*)?$", destination):
        if not destination.startswith(("http://", "https://")):
            destination = f"https://{destination}"
        return None, {"url": destination}
    return None, {"destination": destination}


def _build_scroll(groups: Groups) -> BuildResult:
    rest = (groups.get("rest") or "").lower()
    direction = _lower(groups, "direction")
    if not direction:
        # "scroll back up", "scroll the page up"
        found = re.search(r"\b(up|down|left|right)\b", rest)
        direction = found.group(1) if found else "down"
    parameters: Dict[str, Any] = {"direction": direction}
    pixels = re.search(r"(\d+)\s*(?:pixels?|px)\b", rest)
    if pixels:
        parameters["amount"] = int(pixels.group(1))
    elif re.search(r"\b(?:a\s+little|a\s+bit|slightly)\b", rest):
        parameters["amount"] = "small"
    elif re.search(r"\b(?:a\s+lot|way|more)\b", rest):
        parameters["amount"] = "large"
    elif groups.get("verb", "").lower() == "page":
        parameters["amount"] = "page"
    return None, parameters


def _build_zoom(groups: Groups) -> BuildResult:
    if groups.get("direction"):
        return None, {"direction": groups["direction"].lower()}
    if groups.get("bigger"):
        return None, {"direction": "in"}
    if groups.get("smaller"):
        return None, {"direction": "out"}
    return None, {"direction": "reset"}


def _build_read(groups: Groups) -> BuildResult:
    what = _lower(groups, "what")
    if not what or what in ("page", "this", "this page", "it", "aloud", "out loud", "everything"):
        return None, {"scope": "page"}
    return what, {"scope": "element"}


def _build_click(groups: Groups) -> BuildResult:
    parameters: Dict[str, Any] = {}
    if groups.get("role"):
        parameters["role"] = groups["role"].lower()
    return groups["target"].lower(), parameters


def _no_parameters(groups: Groups) -> BuildResult:
    return None, {}


# ---------------------------------------------------------------------------
# RULE TABLE
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FallbackRule:
    """One row of the precedence table."""
    name: str
    action: ActionType
    patterns: Tuple[Pattern, ...]
    build: Callable[[Groups], BuildResult]


def _rule(name: str, action: ActionType, build: Callable[[Groups], BuildResult], *patterns: str) -> FallbackRule:
    return FallbackRule(
        name=name,
        action=action,
        patterns=tuple(re.compile(p, re.IGNORECASE) for p in patterns),
        build=build,
    )


FALLBACK_RULES: Tuple[FallbackRule, ...] = (
    _rule(
        "fill_with", ActionType.FILL, _build_fill,
        r"fill(?:\s+in|\s+out)?\s+(?P<field>.+?)(?:\s+field)?\s+with\s+(?P<value>.+)",
    ),
    _rule(
        "fill_into", ActionType.FILL, _build_fill,
        r"(?:type|enter|write|input)\s+(?P<value>.+)\s+(?:in|into|on)\s+(?P<field>.+?)(?:\s+(?:field|box|input))?",
    ),
    _rule(
        "search", ActionType.SEARCH, _build_search,
        r"(?:search(?:\s+for)?|look\s+up|look\s+for|find|google)\s+(?P<query>.+)",
    ),
    _rule(
        "scroll_edge", ActionType.SCROLL, _build_scroll_edge,
        r"(?:(?:go|scroll|jump|move)\s+(?:back\s+)?to\s+)?(?:the\s+)?(?P<edge>top|bottom)(?:\s+of\s+(?:the\s+)?page)?",
    ),
    _rule(
        "go_back", ActionType.GO_BACK, _no_parameters,
        r"(?:go\s+|navigate\s+)?back",
        r"(?:go\s+to\s+)?(?:the\s+)?previous\s+page",
    ),
    _rule(
        "go_forward", ActionType.GO_FORWARD, _no_parameters,
        r"(?:go\s+|navigate\s+)?forward",
    ),
    _rule(
        "refresh", ActionType.REFRESH, _no_parameters,
        r"(?:refresh|reload)(?:\s+(?:the|this)\s+page)?",
    ),
    _rule(
        "navigate", ActionType.NAVIGATE, _build_navigate,
        r"(?:go\s+to|navigate\s+to|visit|take\s+me\s+to)\s+(?P<destination>.+)",
        r"open\s+(?P<url>(?:https?://)?\S+(?:\.|\s+dot\s+)\S+)",
    ),
    _rule(
        "scroll", ActionType.SCROLL, _build_scroll,
        r"(?P<verb>scroll)\b(?:\s+(?P<direction>up|down|left|right)\b)?(?P<rest>.*)",
        r"(?P<verb>page|move|go)\s+(?P<direction>up|down|left|right)\b(?P<rest>.*)",
    ),
    _rule(
        "zoom", ActionType.ZOOM, _build_zoom,
        r"zoom\s+(?P<direction>in|out)\b.*",
        r"reset\s+(?:the\s+)?zoom",
        r"make\s+(?:it|the\s+(?:text|page))\s+(?:(?P<bigger>bigger|larger)|(?P<smaller>smaller))",
    ),
    _rule(
        "summarize", ActionType.SUMMARIZE, _no_parameters,
        r".*\b(?:summarize|summarise|summary|tl;?dr)\b.*",
    ),
    _rule(
        "read", ActionType.READ, _build_read,
        r"read\b(?:\s+(?:me\s+)?(?:the\s+)?(?P<what>.+?))?",
    ),
    _rule(
        "stop", ActionType.STOP, _no_parameters,
        r"(?:stop|cancel|pause|never\s*mind|be\s+quiet|quiet)(?:\s+(?:it|that|reading|talking|speaking))?",
    ),
    _rule(
        "click", ActionType.CLICK, _build_click,
        r"(?:click|press|tap|hit|select|choose|push)(?:\s+on)?\s+(?:the\s+)?(?P<target>.+?)"
        r"(?:\s+(?P<role>button|link|tab|icon|checkbox))?",
        r"(?P<target>submit|sign\s+in|sign\s+up|log\s+in|login)(?:\s+(?:the\s+)?form)?",
    ),
)


class FallbackParser:
    """
    Maps raw text to an Intent using the ordered rule table.

    Usage:
        parser = FallbackParser()
        intent = parser.parse("scroll down")
        # Intent(action=scroll, parameters={"direction": "down"}, confidence=0.4, ...)
    """

    def __init__(
        self,
        normalizer: Optional[IntentNormalizer] = None,
        confidence: float = 0.4,
        rules: Tuple[FallbackRule, ...] = FALLBACK_RULES,
    ):
        self.normalizer = normalizer or IntentNormalizer()
        self.confidence = confidence
        self.rules = rules

    def parse(self, text: str) -> Intent:
        """
        Parse text into an Intent. Never raises.

        Args:
            text: The user's spoken command

        Returns:
            The first matching rule's intent, or "unknown" with confidence 0
        """
        matched = self.match(text) if text and text.strip() else None
        if matched is None:
            return self.unknown(text or "")

        rule, target, parameters = matched
        return self.normalizer.normalize(
            {
                "action": rule.action.value,
                "target": target,
                "parameters": parameters,
                "confidence": self.confidence,
                "reasoning": f"Matched fallback rule '{rule.name}'",
            },
            ProviderStage.FALLBACK,
            text,
        )

    def match(self, text: str) -> Optional[Tuple[FallbackRule, Optional[str], Dict[str, Any]]]:
        """
        Find the first rule matching text.

        Returns:
            (rule, target, parameters) or None when nothing matches
        """
        original = self._strip_courtesy(text.strip())
        if not original:
            return None
        folded = fold_accents(original)

        for rule in self.rules:
            for pattern in rule.patterns:
                m = pattern.fullmatch(folded)
                if m is None:
                    continue
                groups = {
                    name: _collapse(original[m.start(name):m.end(name)])
                    for name, value in m.groupdict().items()
                    if value is not None
                }
                target, parameters = rule.build(groups)
                logger.debug(f"Fallback rule '{rule.name}' matched: {original!r}")
                return rule, target, parameters

        return None

    def _strip_courtesy(self, text: str) -> str:
        # Slicing keeps folded and original text aligned character for character
        text = text.rstrip(TRAILING_PUNCTUATION)
        folded = fold_accents(text)
        prefix = COURTESY_PREFIX_RE.match(folded)
        if prefix:
            text, folded = text[prefix.end():], folded[prefix.end():]
        suffix = COURTESY_SUFFIX_RE.search(folded)
        if suffix:
            text = text[:suffix.start()]
        return text.strip().rstrip(TRAILING_PUNCTUATION)

    def unknown(self, text: str) -> Intent:
        """The terminal result: unknown action, confidence 0."""
        return Intent(
            action=ActionType.UNKNOWN,
            confidence=0.0,
            provider_used=ProviderStage.FALLBACK,
            raw_text=text,
        )
