from __future__ import annotations

import json
import re
from typing import Any, Dict

_CODE_FENCE = re.compile(r"```(?:json|JSON)?")
_TRAILING_COMMA = re.compile(r",\s*([}\]])")
_BARE_KEY = re.compile(r"([{,]\s*)([A-Za-z_][A-Za-z0-9_]*)\s*:")
_OBJECT_SPAN = re.compile(r"\{[\s\S]*\}")


def strip_code_fences(text: str) -> str:
    return _CODE_FENCE.sub("", str(text or "")).strip()


def repair_json_text(raw: str) -> str:
    """Remove trailing commas and quote bare object keys."""
    repaired = _TRAILING_COMMA.sub(r"\1", raw)
    repaired = _BARE_KEY.sub(r'\1"\2":', repaired)
    return repaired


def extract_json_object(text: str) -> Dict[str, Any]:
    """Return the first JSON object embedded in LLM output.

    Tries a strict decode at the first ``{`` before falling back to the
    repaired outermost ``{...}`` span. Raises ``ValueError`` when nothing
    decodes to a dict.
    """
    clean = strip_code_fences(text)
    start = clean.find("{")
    if start < 0:
        raise ValueError("no JSON object found")

    try:
        parsed, _end = json.JSONDecoder().raw_decode(clean[start:])
    except json.JSONDecodeError:
        match = _OBJECT_SPAN.search(clean)
        if not match:
            raise ValueError("no JSON object found")
        parsed = json.loads(repair_json_text(match.group(0)))

    if not isinstance(parsed, dict):
        raise ValueError("JSON value is not an object")
    return parsed
