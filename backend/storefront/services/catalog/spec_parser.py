from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Optional

_BARE_KEY = re.compile(r"([{,]\s*)([a-zA-Z_][a-zA-Z0-9_]*)\s*:")
_SINGLE_QUOTED = re.compile(r"'([^']*)'")
_SPEC_ARRAY = re.compile(r"product_specification.*?=>\s*\[(.*?)\]", re.DOTALL)
_SPEC_ITEM = re.compile(r"\{([^}]+)\}")
_ITEM_KEY = re.compile(r'"key"\s*=>\s*"([^"]+)"')
_ITEM_VALUE = re.compile(r'"value"\s*=>\s*"([^"]+)"')


def _normalize_spec_items(items: List[Any]) -> List[Dict[str, str]]:
    normalized: List[Dict[str, str]] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        if item.get("key") and item.get("value") is not None:
            normalized.append({"key": str(item["key"]), "value": str(item["value"])})
        elif item.get("value") is not None:
            normalized.append({"value": str(item["value"])})
        elif len(item) == 1:
            key, value = next(iter(item.items()))
            normalized.append({"key": str(key), "value": str(value)})
    return [entry for entry in normalized if entry.get("key") or entry.get("value")]


def _from_ruby_hash(raw: str) -> Dict[str, Any]:
    converted = raw.strip().replace("=>", ":")
    converted = _BARE_KEY.sub(r'\1"\2":', converted)
    converted = _SINGLE_QUOTED.sub(r'"\1"', converted)
    parsed = json.loads(converted)
    if not isinstance(parsed, dict):
        raise ValueError("specification blob is not an object")
    items = parsed.get("product_specification")
    if isinstance(items, list):
        return {"product_specification": _normalize_spec_items(items)}
    return parsed


def _from_item_regex(raw: str) -> Optional[Dict[str, Any]]:
    match = _SPEC_ARRAY.search(raw)
    if not match:
        return None
    items: List[Dict[str, str]] = []
    for item in _SPEC_ITEM.finditer(match.group(1)):
        body = item.group(1)
        key = _ITEM_KEY.search(body)
        value = _ITEM_VALUE.search(body)
        if key and value:
            items.append({"key": key.group(1), "value": value.group(1)})
        elif value:
            items.append({"value": value.group(1)})
    if not items:
        return None
    return {"product_specification": items}


def parse_specifications(raw: Optional[str]) -> Optional[Dict[str, Any]]:
    """Decode a stored specification blob.

    Accepts JSON or the Ruby-hash notation found in catalog exports
    (``{"key"=>"value"}``). Anything unparseable comes back as
    ``{"raw": <original text>}``.
    """
    if not raw or not str(raw).strip():
        return None
    text = str(raw)
    try:
        parsed = json.loads(text)
        if isinstance(parsed, dict):
            return parsed
        return {"raw": text}
    except ValueError:
        pass
    try:
        return _from_ruby_hash(text)
    except ValueError:
        pass
    extracted = _from_item_regex(text)
    if extracted is not None:
        return extracted
    return {"raw": text}
