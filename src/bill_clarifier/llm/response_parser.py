"""Extract JSON from LLM responses."""
from __future__ import annotations
import json
import re

_FENCE = re.compile(r'```(?:json|JSON)?[ \t]*\n?')


def strip_code_fences(text: str) -> str:
    """Remove Markdown code-fence markers, keeping the fenced content."""
    return _FENCE.sub("", text).strip()


def extract_json_from_response(text: str) -> dict:
    """Extract a JSON object from LLM response text.

    Strategies in order:
    1. Direct JSON parse of entire text
    2. Find ```json ... ``` block
    3. Parse with every code fence marker removed
    4. Find first { to last }

    Raises ``ValueError`` when nothing parses or the document is not an object.
    """
    text = text.strip()

    # Strategy 1: direct parse
    try:
        return _require_object(json.loads(text))
    except json.JSONDecodeError:
        pass

    # Strategy 2: ```json block
    json_block = re.search(r'```(?:json)?\s*\n(.*?)\n\s*```', text, re.DOTALL)
    if json_block:
        try:
            return _require_object(json.loads(json_block.group(1)))
        except json.JSONDecodeError:
            pass

    # Strategy 3: unfenced text
    unfenced = strip_code_fences(text)
    if unfenced != text:
        try:
            return _require_object(json.loads(unfenced))
        except json.JSONDecodeError:
            pass

    # Strategy 4: first { to last }
    first_brace = text.find('{')
    last_brace = text.rfind('}')
    if first_brace != -1 and last_brace != -1 and last_brace > first_brace:
        try:
            return _require_object(json.loads(text[first_brace:last_brace + 1]))
        except json.JSONDecodeError:
            pass

    raise ValueError(f"Could not extract JSON from response: {text[:200]}...")


def _require_object(data: object) -> dict:
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
    return data
