from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Optional

NO_RATING = "no rating available"
DESCRIPTION_MAX_LENGTH = 5000

_BRAND_NOISE = re.compile(r"[{}\[\]\"]")
_EDGE_QUOTES = re.compile(r"^[\"']|[\"']$")
_NO_ALNUM = re.compile(r"^[^a-zA-Z0-9]+$")


def _clean(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def parse_price(value: Any) -> float | None:
    """Positive float or None."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        number = float(value)
    else:
        clean = _clean(value).replace(",", "")
        if not clean:
            return None
        try:
            number = float(clean)
        except ValueError:
            return None
    if number != number or number <= 0:
        return None
    return number


def parse_rating(value: Any) -> float | None:
    clean = _clean(value)
    if not clean or clean.lower() == NO_RATING:
        return None
    try:
        rating = float(clean)
    except ValueError:
        return None
    if rating != rating or rating < 0 or rating > 5:
        return None
    return rating


def parse_category(tree: Any) -> str:
    """First node of a ``a >> b >> c`` category tree, JSON-wrapped or not."""
    raw = _clean(tree)
    if not raw:
        return ""
    path = raw
    try:
        decoded = json.loads(raw)
        if isinstance(decoded, list) and decoded:
            path = str(decoded[0])
        elif isinstance(decoded, str):
            path = decoded
    except ValueError:
        pass
    nodes = [node.strip() for node in path.split(">>") if node.strip()]
    return nodes[0] if nodes else ""


def clean_brand(value: Any) -> str:
    brand = _BRAND_NOISE.sub("", _clean(value))
    return _EDGE_QUOTES.sub("", brand).strip()


def parse_images(value: Any) -> List[str]:
    raw = _clean(value)
    if not raw:
        return []
    try:
        decoded = json.loads(raw)
    except ValueError:
        return [raw]
    if isinstance(decoded, list):
        return [str(item).strip() for item in decoded if item and str(item).strip()]
    if isinstance(decoded, str) and decoded.strip():
        return [decoded.strip()]
    return []


def parse_product_row(row: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Map one catalog CSV row to ``products`` column values.

    Returns None when the row breaks the catalog invariant: missing id,
    name shorter than 2 chars, no category, no usable brand or no
    positive retail price.
    """
    uniq_id = _clean(row.get("uniq_id"))
    name = _clean(row.get("product_name"))
    if not uniq_id or len(name) < 2:
        return None

    retail_price = parse_price(row.get("retail_price"))
    if retail_price is None:
        return None
    discounted_price = parse_price(row.get("discounted_price")) or retail_price

    category = parse_category(row.get("product_category_tree"))
    if len(category) < 2:
        return None

    brand = clean_brand(row.get("brand"))
    if len(brand) < 2 or _NO_ALNUM.match(brand):
        return None

    description = _clean(row.get("description"))
    if len(description) > DESCRIPTION_MAX_LENGTH:
        description = description[:DESCRIPTION_MAX_LENGTH] + "..."

    images = parse_images(row.get("image"))
    return {
        "uniq_id": uniq_id,
        "pid": _clean(row.get("pid")) or None,
        "name": name,
        "product_url": _clean(row.get("product_url")) or None,
        "category": category,
        "category_tree": _clean(row.get("product_category_tree")) or None,
        "retail_price": retail_price,
        "discounted_price": discounted_price,
        "image": images[0] if images else None,
        "images": json.dumps(images),
        "description": description or None,
        "product_rating": parse_rating(row.get("product_rating")),
        "overall_rating": parse_rating(row.get("overall_rating")),
        "brand": brand,
        "specifications": _clean(row.get("product_specifications")) or None,
    }
