from __future__ import annotations

import asyncio
import re
from typing import Any, Dict, List, Optional, Pattern, Tuple

from storefront.core.config import settings
from storefront.core.logging import get_logger
from storefront.prompts.system_prompts import query_builder_prompt
from storefront.schemas.query import (
    DEFAULT_QUERY_LIMIT,
    BuiltQuery,
    QuerySource,
    SortBy,
    StructuredQuery,
)
from storefront.services.ai.llm_service import LLMService, llm_service
from storefront.services.catalog.query_normalizer import normalize_query
from storefront.utils.json_repair import extract_json_object

logger = get_logger(__name__)

_NUM = r"(\d+(?:\.\d+)?)\s*(k)?\b"
_CURRENCY_PREFIX = r"(?:₹\s*|\brs\.?\s*|\binr\s*)?"

_CURRENCY = r"(?:₹\s*|\brs\.?\s*|\binr\s*)"
_RANGE_SEP = r"\s*(?:to|-)\s*"
# "8-16 gb" is a spec, not a budget.
_NO_UNIT = r"(?!\.\d)(?!\s*(?:gb|tb|mb|inch|inches|cm|mm|mp|hz|mah|w|watts?)\b)"

# A bare "N to M" only counts as a price range with currency, a "k" or a price word.
RANGE_PATTERNS: List[Pattern[str]] = [
    re.compile(
        r"\bbetween\s+" + _CURRENCY_PREFIX + r"(\d+(?:\.\d+)?)\s*(k)?\s+and\s+" + _CURRENCY_PREFIX + _NUM + _NO_UNIT
    ),
    re.compile(
        _CURRENCY + r"(\d+(?:\.\d+)?)\s*(k)?" + _RANGE_SEP + _CURRENCY_PREFIX + _NUM + _NO_UNIT
    ),
    re.compile(
        r"\b(?:from|price|priced|prices|budget|range|costing)\s+"
        + r"(\d+(?:\.\d+)?)\s*(k)?" + _RANGE_SEP + _CURRENCY_PREFIX + _NUM + _NO_UNIT
    ),
    re.compile(
        r"(\d+(?:\.\d+)?)\s*(k)?" + _RANGE_SEP + _CURRENCY_PREFIX + r"(\d+(?:\.\d+)?)\s*(k)\b"
    ),
    re.compile(
        r"(\d+(?:\.\d+)?)\s*(k)" + _RANGE_SEP + _CURRENCY_PREFIX + _NUM + _NO_UNIT
    ),
]

MIN_PRICE_PATTERNS: List[Pattern[str]] = [
    re.compile(
        r"\b(?:above|over|more\s+than|greater\s+than|starting\s+(?:at|from))\s+" + _CURRENCY_PREFIX + _NUM
    ),
]

# Bounded phrases are tried before bare currency mentions.
MAX_PRICE_PATTERNS: List[Pattern[str]] = [
    re.compile(
        r"\b(?:under|below|less\s+than|within|up\s*to|cheaper\s+than|at\s+most)\s+" + _CURRENCY_PREFIX + _NUM
    ),
    re.compile(r"(\d+(?:\.\d+)?)\s*(k)?\s*(?:rupees|rupee|rs\b|inr\b)"),
    re.compile(r"(?:₹|\brs\.?|\binr)\s*" + _NUM),
]

CATEGORY_KEYWORDS: Dict[str, List[str]] = {
    "laptop": ["laptop", "laptops", "notebook", "notebooks"],
    "mobile": ["mobile", "mobiles", "phone", "phones", "smartphone", "smartphones"],
    "jewellery": [
        "jewellery",
        "necklace",
        "necklaces",
        "earring",
        "earrings",
        "bracelet",
        "bracelets",
        "pendant",
        "pendants",
    ],
    "clothing": ["clothing", "clothes", "apparel", "shirt", "shirts", "jeans", "dress", "dresses", "kurta"],
    "electronics": ["electronics", "electronic", "device", "devices", "gadget", "gadgets"],
    "furniture": ["furniture", "sofa", "chair", "chairs", "table", "tables"],
    "footwear": ["footwear", "shoes", "shoe", "sneakers", "boots", "sandals"],
    "watch": ["watch", "watches", "timepiece", "wristwatch"],
    "camera": ["camera", "cameras", "dslr"],
    "tv": ["tv", "television", "televisions"],
    "headphone": ["headphone", "headphones", "earphone", "earphones", "earbuds"],
}

BRANDS: Dict[str, str] = {
    "samsung": "Samsung",
    "apple": "Apple",
    "nike": "Nike",
    "adidas": "Adidas",
    "puma": "Puma",
    "sony": "Sony",
    "lg": "LG",
    "hp": "HP",
    "dell": "Dell",
    "lenovo": "Lenovo",
    "asus": "Asus",
    "acer": "Acer",
    "canon": "Canon",
    "nikon": "Nikon",
    "bose": "Bose",
    "jbl": "JBL",
    "philips": "Philips",
    "panasonic": "Panasonic",
    "whirlpool": "Whirlpool",
    "oneplus": "OnePlus",
    "xiaomi": "Xiaomi",
    "redmi": "Redmi",
    "realme": "Realme",
    "oppo": "Oppo",
    "vivo": "Vivo",
    "motorola": "Motorola",
    "titan": "Titan",
    "fastrack": "Fastrack",
    "casio": "Casio",
}

QUALITY_PATTERN = re.compile(
    r"\b(?:best|top|good|high(?:ly)?\s+rat(?:ing|ed)|top\s+rated|well\s+rated)\b"
)
CHEAP_SORT_PATTERN = re.compile(r"\b(?:cheapest|cheap|lowest\s+price|low\s+price|affordable|budget)\b")
EXPENSIVE_SORT_PATTERN = re.compile(r"\b(?:most\s+expensive|costliest|expensive|premium|luxury|high\s+end)\b")
NEWEST_SORT_PATTERN = re.compile(r"\b(?:newest|latest|new\s+arrivals?)\b")

CURRENCY_WORDS = re.compile(r"(?:₹|\brupees?\b|\brs\b\.?|\binr\b)")
_DIGIT_GROUP_COMMA = re.compile(r"(?<=\d),(?=\d)")

FILLER_WORDS = {
    "a", "an", "the", "me", "i", "im", "i'm", "my", "you", "we", "us", "some", "any",
    "find", "show", "search", "searching", "looking", "look", "get", "buy", "want", "need",
    "would", "like", "please", "can", "could", "give", "suggest", "recommend", "see",
    "for", "with", "in", "of", "and", "or", "to", "on", "at", "from", "is", "are", "that",
    "which", "what", "price", "priced", "prices", "range", "cost", "costs", "budget",
    "product", "products", "item", "items", "options", "something", "under", "below",
    "above", "over", "than", "less", "more", "between", "within", "upto", "up",
}

SEARCH_TEXT_MIN_LENGTH = 3
DEFAULT_MIN_RATING = 4.0


def _word_pattern(words: List[str]) -> Pattern[str]:
    alternatives = "|".join(re.escape(word) for word in sorted(words, key=len, reverse=True))
    return re.compile(rf"\b(?:{alternatives})\b")


_CATEGORY_PATTERNS: List[Tuple[str, Pattern[str]]] = [
    (category, _word_pattern(keywords + [category])) for category, keywords in CATEGORY_KEYWORDS.items()
]
_BRAND_PATTERNS: List[Tuple[str, Pattern[str]]] = [
    (display, _word_pattern([key])) for key, display in BRANDS.items()
]


def _to_amount(number: str, has_k: bool) -> float:
    value = float(number) * (1000 if has_k else 1)
    return float(int(value)) if value.is_integer() else value


def _overlaps(span: Tuple[int, int], other: Optional[Tuple[int, int]]) -> bool:
    if other is None:
        return False
    return span[0] < other[1] and other[0] < span[1]


def _match_range(text: str) -> Optional[Tuple[float, float]]:
    for pattern in RANGE_PATTERNS:
        match = pattern.search(text)
        if not match:
            continue
        low_k = bool(match.group(2))
        high_k = bool(match.group(4))
        high = _to_amount(match.group(3), high_k)
        low = _to_amount(match.group(1), low_k)
        # "10 to 20k" reads as 10k-20k.
        if high_k and not low_k and _to_amount(match.group(1), True) <= high:
            low = _to_amount(match.group(1), True)
        return low, high
    return None


def _match_min_price(text: str) -> Tuple[Optional[float], Optional[Tuple[int, int]]]:
    for pattern in MIN_PRICE_PATTERNS:
        match = pattern.search(text)
        if match:
            return _to_amount(match.group(1), bool(match.group(2))), match.span(1)
    return None, None


def _match_max_price(text: str, *, skip_span: Optional[Tuple[int, int]]) -> Optional[float]:
    for pattern in MAX_PRICE_PATTERNS:
        for match in pattern.finditer(text):
            if _overlaps(match.span(1), skip_span):
                continue
            return _to_amount(match.group(1), bool(match.group(2)))
    return None


def _strip_search_text(
    text: str,
    *,
    category: Optional[str],
    brand: Optional[str],
) -> Optional[str]:
    remaining = text
    for pattern in RANGE_PATTERNS + MIN_PRICE_PATTERNS + MAX_PRICE_PATTERNS:
        remaining = pattern.sub(" ", remaining)
    for pattern in (QUALITY_PATTERN, CHEAP_SORT_PATTERN, EXPENSIVE_SORT_PATTERN, NEWEST_SORT_PATTERN, CURRENCY_WORDS):
        remaining = pattern.sub(" ", remaining)
    if category:
        for name, pattern in _CATEGORY_PATTERNS:
            if name == category:
                remaining = pattern.sub(" ", remaining)
    if brand:
        remaining = _word_pattern([brand.lower()]).sub(" ", remaining)

    tokens = []
    for token in remaining.split():
        core = token.strip(".,!?;:()[]{}\"'")
        if not core or core in FILLER_WORDS:
            continue
        tokens.append(core)
    candidate = " ".join(tokens).strip()
    if len(candidate) > SEARCH_TEXT_MIN_LENGTH:
        return candidate
    return None


def build_query_with_regex(text: str) -> StructuredQuery:
    """Deterministic fallback extraction of filters from shopper text.

    Precedence: an explicit range overrides single-sided bounds; a number
    consumed by a minimum phrase is never reused as a maximum; a min above
    the max is swapped.
    """
    lowered = _DIGIT_GROUP_COMMA.sub("", str(text or "").lower())

    min_price, min_span = _match_min_price(lowered)
    max_price = _match_max_price(lowered, skip_span=min_span)

    price_range = _match_range(lowered)
    if price_range is not None:
        min_price, max_price = price_range

    if min_price is not None and max_price is not None and min_price > max_price:
        min_price, max_price = max_price, min_price

    category = None
    for name, pattern in _CATEGORY_PATTERNS:
        if pattern.search(lowered):
            category = name
            break

    brand = None
    for display, pattern in _BRAND_PATTERNS:
        if pattern.search(lowered):
            brand = display
            break

    min_rating = None
    sort_by = SortBy.newest
    if QUALITY_PATTERN.search(lowered):
        min_rating = DEFAULT_MIN_RATING
        sort_by = SortBy.rating_desc
    elif CHEAP_SORT_PATTERN.search(lowered):
        sort_by = SortBy.price_asc
    elif EXPENSIVE_SORT_PATTERN.search(lowered):
        sort_by = SortBy.price_desc

    return StructuredQuery(
        category=category,
        brand=brand,
        min_price=min_price,
        max_price=max_price,
        min_rating=min_rating,
        search_text=_strip_search_text(lowered, category=category, brand=brand),
        sort_by=sort_by,
        limit=int(getattr(settings, "PRODUCT_QUERY_DEFAULT_LIMIT", DEFAULT_QUERY_LIMIT)),
    )


class StructuredQueryBuilder:
    """Turns a normalized shopper message into a StructuredQuery.

    The LLM path is tried first under a bounded timeout. Any failure there
    (provider error, timeout, unparsable or invalid JSON) degrades to the
    regex extractor, so ``build`` never raises for bad input or a bad model.
    """

    def __init__(
        self,
        *,
        llm: Optional[LLMService] = None,
        model: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
    ):
        self._llm = llm or llm_service
        self.model = model or getattr(settings, "QUERY_BUILDER_MODEL", settings.OPENAI_MODEL)
        self.timeout_seconds = float(
            timeout_seconds
            if timeout_seconds is not None
            else getattr(settings, "QUERY_BUILDER_TIMEOUT_SECONDS", 8.0)
        )

    async def _build_with_llm(self, text: str) -> StructuredQuery:
        content = await self._llm.generate_chat_response(
            messages=[
                {"role": "system", "content": query_builder_prompt()},
                {"role": "user", "content": text},
            ],
            temperature=0.0,
            max_tokens=200,
            model=self.model,
        )
        parsed = extract_json_object(content)
        payload: Dict[str, Any] = {
            "limit": int(getattr(settings, "PRODUCT_QUERY_DEFAULT_LIMIT", DEFAULT_QUERY_LIMIT)),
            "sortBy": SortBy.newest.value,
        }
        payload.update({key: value for key, value in parsed.items() if value is not None})
        return StructuredQuery.model_validate(payload)

    async def build(self, normalized_query: str) -> BuiltQuery:
        text = normalize_query(normalized_query)
        if text:
            try:
                query = await asyncio.wait_for(self._build_with_llm(text), timeout=self.timeout_seconds)
                logger.debug("structured query via llm: %s", query.filters())
                return BuiltQuery(query=query, source=QuerySource.llm)
            except Exception as exc:
                logger.warning(f"Query builder LLM path failed, using regex fallback: {exc!r}")
        query = build_query_with_regex(text)
        logger.debug("structured query via regex fallback: %s", query.filters())
        return BuiltQuery(query=query, source=QuerySource.regex_fallback)
