import pytest

from storefront.services.catalog.query_normalizer import (
    TYPO_CORRECTIONS,
    extract_category,
    normalize_query,
)


def test_normalize_fixes_typos_and_keeps_punctuation() -> None:
    assert normalize_query("Good Jewellary under 1000 rupees") == "good jewellery under 1000 rupees"
    assert normalize_query("any moblie, laptoop?") == "any mobile, laptop?"


def test_normalize_passes_unknown_tokens_through() -> None:
    assert normalize_query("Blue Denim Jacket") == "blue denim jacket"
    assert normalize_query("") == ""
    assert normalize_query("   ") == ""


@pytest.mark.parametrize(
    "text",
    [
        "find me jewelry!!",
        "Shooes   and SHOSE...",
        "tv under 20k",
        "?!",
        "camra, headfones; watchs.",
        "nothing to fix here",
    ],
)
def test_normalize_is_idempotent(text: str) -> None:
    once = normalize_query(text)
    assert normalize_query(once) == once


def test_no_correction_target_is_itself_a_typo() -> None:
    assert not set(TYPO_CORRECTIONS.values()) & set(TYPO_CORRECTIONS.keys())


def test_extract_category_returns_first_hit_in_token_order() -> None:
    assert extract_category("sneakers or a watch") == "footwear"
    assert extract_category("Watch and sneakers.") == "watch"
    assert extract_category("jewellary please") == "jewellery"
    assert extract_category("something else") is None
