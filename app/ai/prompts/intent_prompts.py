"""
Intent Prompts - Templates for extracting web-page intents from speech.

These prompts are used to convert natural language commands like:
  "Fill the email field with john@example.com"

Into structured intents like:
  {
    "action": "fill",
    "target": "input#email",
    "parameters": {"field": "email", "value": "john@example.com"},
    "confidence": 0.95
  }

Prompt Engineering Techniques:
=============================
1. Schema enforcement (strict JSON structure)
2. Closed action vocabulary (anything else must be "unknown")
3. Page grounding (visible elements listed so targets match the DOM)
"""

import json
from typing import Optional

from app.ai.intent.schemas import ActionType, PageContext

ACTION_LIST = ", ".join(a.value for a in ActionType)

# ---------------------------------------------------------------------------
# INTENT SYSTEM PROMPT
# ---------------------------------------------------------------------------

INTENT_SYSTEM_PROMPT = f"""You are the intent parser of a voice-controlled web browser extension.

Your job is to turn ONE spoken command (already transcribed to text) into ONE
structured page action.

ALLOWED ACTIONS (use exactly these names):
{ACTION_LIST}

PARAMETERS BY ACTION:
- scroll: {{"direction": "up|down|left|right|top|bottom", "amount": optional pixels or "small|large|page"}}
- click: target = element text, CSS selector or role; parameters optional
- fill: {{"field": "<field label>", "value": "<text to type>"}}; target = selector if known
- search: {{"query": "<search terms>"}}
- navigate: {{"url": "https://..."}} or {{"destination": "<named place>"}}
- go_back, go_forward, refresh, stop: no parameters
- zoom: {{"direction": "in|out|reset"}}
- read: {{"scope": "page|element"}}; target = element when scope is element
- summarize: no parameters

RULES:
1. Prefer targets that match the AVAILABLE ELEMENTS list when one is given.
2. Keep the user's exact casing for values typed into fields.
3. If the command is not a page action, answer with action "unknown".
4. confidence is a number between 0 and 1.

RESPONSE FORMAT (JSON only):
{{
  "action": "<one of the allowed actions>",
  "target": "<element descriptor or null>",
  "parameters": {{}},
  "confidence": 0.0,
  "reasoning": "<one short sentence>"
}}"""

# ---------------------------------------------------------------------------
# INTENT EXTRACTION PROMPT
# ---------------------------------------------------------------------------

INTENT_EXTRACTION_PROMPT = """Spoken command: "{request}"
{context}
Return the JSON intent."""


def build_context_block(context: Optional[PageContext], max_elements: int = 50) -> str:
    """
    Serialize page context for the prompt.

    Only the URL, title and the first max_elements elements are included;
    attribute values are kept short to bound prompt size.
    """
    if context is None:
        return ""

    lines = []
    if context.url:
        lines.append(f"Current page URL: {context.url}")
    if context.title:
        lines.append(f"Page title: {context.title}")

    elements = context.available_elements[:max_elements] if max_elements else []
    if elements:
        lines.append("AVAILABLE ELEMENTS:")
        for index, element in enumerate(elements, start=1):
            entry = {"tag": element.tag, "text": element.text[:80]}
            if element.attributes:
                entry["attributes"] = {k: str(v)[:60] for k, v in element.attributes.items()}
            lines.append(f"{index}. {json.dumps(entry, ensure_ascii=False)}")
        omitted = len(context.available_elements) - len(elements)
        if omitted > 0:
            lines.append(f"... {omitted} more elements omitted")

    if not lines:
        return ""
    return "\n" + "\n".join(lines) + "\n"


def build_intent_prompt(text: str, context: Optional[PageContext] = None, max_elements: int = 50) -> str:
    """Build the user prompt for one resolution attempt."""
    return INTENT_EXTRACTION_PROMPT.format(
        request=text.replace('"', "'"),
        context=build_context_block(context, max_elements),
    )
