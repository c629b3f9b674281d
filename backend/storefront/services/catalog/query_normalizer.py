"""Deterministic typo and synonym correction for free-text shopper queries.

Both tables are fixed; no fuzzy matching happens here. Every correction
target is absent from ``TYPO_CORRECTIONS`` so normalizing twice is a no-op.
"""

from __future__ import annotations

import re
from typing import Dict, Optional, Tuple

TYPO_CORRECTIONS: Dict[str, str] = {
    # Spelling variations
    "jewellary": "jewellery",
    "jewelry": "jewellery",
    "jewlery": "jewellery",
    "jewellry": "jewellery",
    "jewlry": "jewellery",
    # Common typos
    "laptoop": "laptop",
    "labtop": "laptop",
    "moblie": "mobile",
    "mobil": "mobile",
    "phne": "phone",
    "fone": "phone",
    "shooes": "shoes",
    "shose": "shoes",
    "watchs": "watches",
    "headfone": "headphone",
    "headfones": "headphones",
    "earfone": "earphone",
    "earfones": "earphones",
    "camra": "camera",
    "tv": "television",
    "tvs": "televisions",
    # Category variations
    "cloths": "clothing",
    "clothings": "clothing",
    "footware": "footwear",
    "electronis": "electronics",
    "electronice": "electronics",
    "furnitures": "furniture",
}

CATEGORY_MAPPINGS: Dict[str, str] = {
    # Jewellery
    "jewellery": "jewellery",
    "jewelry": "jewellery",
    "jewellary": "jewellery",
    "jewlery": "jewellery",
    "jewellry": "jewellery",
    "jewlry": "jewellery",
    "necklace": "jewellery",
    "earrings": "jewellery",
    "bracelet": "jewellery",
    # Electronics
    "laptop": "laptop",
    "laptops": "laptop",
    "laptoop": "laptop",
    "computer": "laptop",
    "pc": "laptop",
    "mobile": "mobile",
    "moblie": "mobile",
    "phone": "mobile",
    "phones": "mobile",
    "phne": "mobile",
    "smartphone": "mobile",
    "electronics": "electronics",
    # Footwear
    "shoes": "footwear",
    "shooes": "footwear",
    "shose": "footwear",
    "sneakers": "footwear",
    "boots": "footwear",
    "sandals": "footwear",
    "footwear": "footwear",
    "footware": "footwear",
    # Watches
    "watch": "watch",
    "watchs": "watch",
    "watches": "watch",
    "wristwatch": "watch",
    # Audio
    "headphone": "headphone",
    "headfone": "headphone",
    "headphones": "headphone",
    "headfones": "headphone",
    "earphone": "headphone",
    "earphones": "headphone",
    "earfone": "headphone",
    "earfones": "headphone",
    # Camera
    "camera": "camera",
    "camra": "camera",
    "cam": "camera",
    # TV
    "tv": "tv",
    "television": "tv",
    "tvs": "tv",
    "televisions": "tv",
    # Clothing
    "clothing": "clothing",
    "cloths": "clothing",
    "clothings": "clothing",
    "clothes": "clothing",
    # Furniture
    "furniture": "furniture",
    "sofa": "furniture",
}

_TRAILING_PUNCTUATION = re.compile(r"^(.*?)([.,!?;:]*)$", re.DOTALL)


def _split_token(token: str) -> Tuple[str, str]:
    match = _TRAILING_PUNCTUATION.match(token)
    if not match:
        return token, ""
    return match.group(1), match.group(2)


def normalize_query(text: str) -> str:
    """Lower-case ``text`` and fix known typos token by token."""
    normalized = str(text or "").lower().strip()
    if not normalized:
        return ""
    corrected = []
    for token in normalized.split():
        core, punctuation = _split_token(token)
        corrected.append(TYPO_CORRECTIONS.get(core, core) + punctuation)
    return " ".join(corrected)


def extract_category(text: str) -> Optional[str]:
    """Return the canonical category of the first recognised token, if any."""
    for token in normalize_query(text).split():
        core, _punctuation = _split_token(token)
        category = CATEGORY_MAPPINGS.get(core)
        if category:
            return category
    return None
