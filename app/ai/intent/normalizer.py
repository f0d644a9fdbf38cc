"""
Intent Normalizer - Turns heterogeneous provider output into an Intent.

Providers are asked for JSON, but in practice they return:
- Clean JSON objects
- JSON wrapped in markdown code fences
- JSON embedded in a sentence of prose
- Wrapper objects ({"intent": {...}}, {"command": {...}})
- Plain text that merely mentions the action ("action: click, sorry...")

The normalizer handles all of them:
1. Structured decode (fences stripped, then the first {...} block)
2. Keyword extraction over the raw text when decoding fails
3. Action alias mapping; unrecognized verbs become "unknown"
4. Confidence defaulting and clamping per provenance

NormalizationError is raised only when both decoding and keyword
extraction fail; the resolver then moves on to the next stage.
"""

import json
import logging
import math
import re
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from app.ai.intent.errors import NormalizationError
from app.ai.intent.schemas import ActionType, Intent, ProviderStage

logger = logging.getLogger("voiceweb.ai.intent")

# Unknown intents never claim more than this
UNKNOWN_MAX_CONFIDENCE = 0.1

# Intents recovered from prose get this fraction of the default confidence
RECOVERY_FACTOR = 0.5

# Alternative verbs providers use for the canonical actions
ACTION_ALIASES: Dict[str, ActionType] = {
    "press": ActionType.CLICK,
    "tap": ActionType.CLICK,
    "select": ActionType.CLICK,
    "submit": ActionType.CLICK,
    "click_element": ActionType.CLICK,
    "type": ActionType.FILL,
    "input": ActionType.FILL,
    "enter": ActionType.FILL,
    "fill_field": ActionType.FILL,
    "fill_form": ActionType.FILL,
    "find": ActionType.SEARCH,
    "look_up": ActionType.SEARCH,
    "lookup": ActionType.SEARCH,
    "goto": ActionType.NAVIGATE,
    "go_to": ActionType.NAVIGATE,
    "open": ActionType.NAVIGATE,
    "open_url": ActionType.NAVIGATE,
    "visit": ActionType.NAVIGATE,
    "back": ActionType.GO_BACK,
    "navigate_back": ActionType.GO_BACK,
    "forward": ActionType.GO_FORWARD,
    "navigate_forward": ActionType.GO_FORWARD,
    "reload": ActionType.REFRESH,
    "read_aloud": ActionType.READ,
    "read_page": ActionType.READ,
    "summarise": ActionType.SUMMARIZE,
    "summary": ActionType.SUMMARIZE,
    "cancel": ActionType.STOP,
    "none": ActionType.UNKNOWN,
}

# Verbs that carry their direction in the name ("scroll_down")
DIRECTIONAL_PREFIXES = {
    "scroll_": ActionType.SCROLL,
    "zoom_": ActionType.ZOOM,
}

# Top-level keys some providers put beside "action" instead of in "parameters"
LIFTED_KEYS = ("direction", "amount", "field", "value", "query", "url", "destination", "text")

# Keys a wrapper object may nest the real intent under
WRAPPER_KEYS = ("intent", "command", "result", "data")

FENCE_RE = re.compile(r"```(?:json)?\s*\n?([\s\S]*?)```")
KEY_VALUE_ACTION_RE = re.compile(
    r"[\"']?\b(?:action|intent|command)\b[\"']?\s*[:=]\s*[\"']?([a-z][a-z_\-]*)",
    re.IGNORECASE,
)
KEY_VALUE_PARAM_RE = re.compile(
    r"[\"']?\b(direction|query|url|field|value|target)\b[\"']?\s*[:=]\s*[\"']?([^\"',;}\n]+)",
    re.IGNORECASE,
)
# Free-text scan only looks for canonical verbs, longest first
FREE_TEXT_ACTION_RE = re.compile(
    r"\b(go[ _]back|go[ _]forward|summarize|navigate|refresh|reload|scroll|search|click|fill|zoom)\b",
    re.IGNORECASE,
)

RawOutput = Union[str, Mapping[str, Any]]


class IntentNormalizer:
    """
    Validates and reshapes raw provider output into a canonical Intent.

    Usage:
        normalizer = IntentNormalizer()
        intent = normalizer.normalize('{"action": "scroll"}', ProviderStage.PRIMARY, "scroll")
    """

    def __init__(
        self,
        ai_default_confidence: float = 0.8,
        fallback_default_confidence: float = 0.4,
        fallback_max_confidence: float = 0.5,
    ):
        self.ai_default_confidence = ai_default_confidence
        self.fallback_default_confidence = fallback_default_confidence
        self.fallback_max_confidence = fallback_max_confidence

    def normalize(self, raw: RawOutput, provenance: ProviderStage, raw_text: str) -> Intent:
        """
        Produce an Intent from raw provider output or fallback rule output.

        Args:
            raw: Provider completion text, or an already-structured mapping
            provenance: Stage that produced the output
            raw_text: The user's original text

        Returns:
            A well-formed Intent

        Raises:
            NormalizationError: if neither decoding nor keyword extraction worked
        """
        if isinstance(raw, Mapping):
            intent = self._from_mapping(raw, provenance, raw_text)
            if intent is None:
                raise NormalizationError("Structured output has no action")
            return intent

        if not isinstance(raw, str) or not raw.strip():
            raise NormalizationError("Empty provider output", raw=raw if isinstance(raw, str) else None)

        data = self._decode(raw)
        if isinstance(data, Mapping):
            intent = self._from_mapping(data, provenance, raw_text)
            if intent is not None:
                return intent
            logger.debug("Decoded output names no action, trying keyword extraction")

        intent = self._extract_keywords(raw, provenance, raw_text)
        if intent is None:
            raise NormalizationError("No JSON object or action keyword in provider output", raw=raw)

        logger.info(f"Recovered '{intent.action.value}' from malformed {provenance.value} output")
        return intent

    def default_confidence(self, provenance: ProviderStage) -> float:
        if provenance == ProviderStage.FALLBACK:
            return self.fallback_default_confidence
        return self.ai_default_confidence

    def map_action(self, value: Any) -> Tuple[ActionType, Dict[str, Any]]:
        """
        Map a verb to the closed action set.

        Returns:
            (action, implied parameters); unrecognized verbs map to UNKNOWN
        """
        if not isinstance(value, str) or not value.strip():
            return ActionType.UNKNOWN, {}

        key = re.sub(r"[\s\-]+", "_", value.strip().lower())
        try:
            return ActionType(key), {}
        except ValueError:
            pass

        if key in ACTION_ALIASES:
            return ACTION_ALIASES[key], {}

        for prefix, action in DIRECTIONAL_PREFIXES.items():
            if key.startswith(prefix) and len(key) > len(prefix):
                return action, {"direction": key[len(prefix):]}

        logger.debug(f"Unrecognized action '{value}' coerced to unknown")
        return ActionType.UNKNOWN, {}

    # -----------------------------------------------------------------------
    # STRUCTURED PATH
    # -----------------------------------------------------------------------

    def _decode(self, raw: str) -> Optional[Any]:
        """Decode JSON, tolerating code fences and surrounding prose."""
        content = raw.strip()

        fenced = FENCE_RE.findall(content)
        if fenced:
            content = fenced[0].strip()

        try:
            return json.loads(content)
        except json.JSONDecodeError:
            pass

        start = content.find("{")
        end = content.rfind("}")
        if start != -1 and end > start:
            try:
                return json.loads(content[start:end + 1])
            except json.JSONDecodeError:
                pass

        return None

    def _unwrap(self, data: Mapping[str, Any], depth: int = 0) -> Mapping[str, Any]:
        if "action" in data or depth >= 2:
            return data
        for key in WRAPPER_KEYS:
            nested = data.get(key)
            if isinstance(nested, Mapping):
                return self._unwrap(nested, depth + 1)
        return data

    def _from_mapping(
        self,
        data: Mapping[str, Any],
        provenance: ProviderStage,
        raw_text: str,
    ) -> Optional[Intent]:
        data = self._unwrap(data)

        action_value = None
        for key in ("action", "intent", "command", "type"):
            if isinstance(data.get(key), str) and data[key].strip():
                action_value = data[key]
                break
        if action_value is None:
            return None

        action, implied = self.map_action(action_value)

        raw_params = data.get("parameters") or data.get("params") or data.get("args") or {}
        parameters: Dict[str, Any] = dict(raw_params) if isinstance(raw_params, Mapping) else {}
        for key in LIFTED_KEYS:
            if key not in parameters and data.get(key) is not None:
                parameters[key] = data[key]
        for key, value in implied.items():
            parameters.setdefault(key, value)

        target = self._coerce_target(
            data.get("target") or data.get("selector") or data.get("element")
        )
        reasoning = data.get("reasoning")

        return Intent(
            action=action,
            target=target,
            parameters=self._clean_parameters(action, parameters),
            confidence=self._coerce_confidence(data.get("confidence"), provenance, action),
            provider_used=provenance,
            raw_text=raw_text,
            reasoning=reasoning if isinstance(reasoning, str) else None,
        )

    # -----------------------------------------------------------------------
    # SOFT RECOVERY PATH
    # -----------------------------------------------------------------------

    def _extract_keywords(
        self,
        raw: str,
        provenance: ProviderStage,
        raw_text: str,
    ) -> Optional[Intent]:
        """Look for an action keyword anywhere in malformed output."""
        action = None
        implied: Dict[str, Any] = {}

        match = KEY_VALUE_ACTION_RE.search(raw)
        if match:
            candidate, candidate_implied = self.map_action(match.group(1))
            if candidate != ActionType.UNKNOWN or match.group(1).lower() in ("unknown", "none"):
                action, implied = candidate, candidate_implied

        if action is None:
            match = FREE_TEXT_ACTION_RE.search(raw)
            if not match:
                return None
            action, implied = self.map_action(match.group(1))

        parameters: Dict[str, Any] = dict(implied)
        target = None
        for key, value in KEY_VALUE_PARAM_RE.findall(raw):
            key = key.lower()
            value = value.strip()
            if not value:
                continue
            if key == "target":
                target = target or value
            else:
                parameters.setdefault(key, value)

        confidence = self.default_confidence(provenance) * RECOVERY_FACTOR
        return Intent(
            action=action,
            target=target,
            parameters=self._clean_parameters(action, parameters),
            confidence=self._coerce_confidence(confidence, provenance, action),
            provider_used=provenance,
            raw_text=raw_text,
            reasoning="Recovered from malformed provider output",
        )

    # -----------------------------------------------------------------------
    # FIELD COERCION
    # -----------------------------------------------------------------------

    def _coerce_target(self, value: Any) -> Optional[str]:
        if value is None:
            return None
        if isinstance(value, Mapping):
            for key in ("selector", "text", "label", "role", "id", "name"):
                if isinstance(value.get(key), str) and value[key].strip():
                    return value[key].strip()
            return None
        if isinstance(value, (str, int, float)):
            value = str(value).strip()
            return value or None
        return None

    def _coerce_confidence(self, value: Any, provenance: ProviderStage, action: ActionType) -> float:
        default = self.default_confidence(provenance)
        if value is None or isinstance(value, bool):
            confidence = default
        else:
            try:
                confidence = float(value)
            except (TypeError, ValueError, OverflowError):
                confidence = default
        if math.isnan(confidence):
            confidence = default

        confidence = min(max(confidence, 0.0), 1.0)
        if provenance == ProviderStage.FALLBACK:
            confidence = min(confidence, self.fallback_max_confidence)
        if action == ActionType.UNKNOWN:
            confidence = min(confidence, UNKNOWN_MAX_CONFIDENCE)
        return confidence

    def _clean_parameters(self, action: ActionType, parameters: Dict[str, Any]) -> Dict[str, Any]:
        cleaned = {key: value for key, value in parameters.items() if value is not None}

        if action in (ActionType.SCROLL, ActionType.ZOOM):
            direction = cleaned.get("direction")
            if isinstance(direction, str):
                cleaned["direction"] = direction.strip().lower()

        amount = cleaned.get("amount")
        if isinstance(amount, str) and amount.strip().isdigit():
            cleaned["amount"] = int(amount.strip())

        for key in ("query", "url", "field", "destination"):
            if isinstance(cleaned.get(key), str):
                cleaned[key] = cleaned[key].strip()

        return cleaned
