from __future__ import annotations

import asyncio
from typing import Any, Dict, List

import pytest

from storefront.core.exceptions import LLMProviderError
from storefront.schemas.query import QuerySource, SortBy
from storefront.services.catalog.query_builder import StructuredQueryBuilder, build_query_with_regex
from storefront.services.catalog.query_normalizer import normalize_query


class StubLLM:
    def __init__(self, reply: str = "", *, error: Exception | None = None, delay: float = 0.0):
        self.reply = reply
        self.error = error
        self.delay = delay
        self.calls: List[Dict[str, Any]] = []

    async def generate_chat_response(self, **kwargs: Any) -> str:
        self.calls.append(kwargs)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.reply


def _failing_builder() -> StructuredQueryBuilder:
    return StructuredQueryBuilder(llm=StubLLM(error=LLMProviderError("boom")), timeout_seconds=1.0)


@pytest.mark.regression
@pytest.mark.asyncio
async def test_laptop_under_20k_falls_back_to_regex() -> None:
    built = await _failing_builder().build(normalize_query("find me laptop under 20k"))

    assert built.source == QuerySource.regex_fallback
    assert built.degraded is True
    assert built.query.filters() == {"category": "laptop", "maxPrice": 20000}
    assert built.query.sort_by == SortBy.newest


@pytest.mark.regression
@pytest.mark.asyncio
async def test_good_jewellery_under_1000_rupees_falls_back_to_regex() -> None:
    normalized = normalize_query("good jewellary under 1000 rupees")
    assert normalized == "good jewellery under 1000 rupees"

    built = await _failing_builder().build(normalized)

    assert built.degraded is True
    assert built.query.filters() == {
        "category": "jewellery",
        "maxPrice": 1000,
        "minRating": 4.0,
    }
    assert built.query.sort_by == SortBy.rating_desc


@pytest.mark.asyncio
async def test_llm_path_parses_fenced_json() -> None:
    llm = StubLLM('```json\n{"category": "mobile", "brand": "Samsung", "maxPrice": 15000,}\n```')
    builder = StructuredQueryBuilder(llm=llm, timeout_seconds=1.0)

    built = await builder.build("samsung moblie under 15k")

    assert built.source == QuerySource.llm
    assert built.degraded is False
    assert built.query.filters() == {"category": "mobile", "brand": "Samsung", "maxPrice": 15000}
    assert built.query.sort_by == SortBy.newest
    assert built.query.limit == 20
    assert llm.calls[0]["messages"][1]["content"] == "samsung mobile under 15k"


@pytest.mark.asyncio
async def test_llm_unknown_sort_defaults_to_newest() -> None:
    builder = StructuredQueryBuilder(llm=StubLLM('{"category": "watch", "sortBy": "popularity"}'))
    built = await builder.build("watch")
    assert built.source == QuerySource.llm
    assert built.query.sort_by == SortBy.newest


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "reply",
    [
        "I cannot help with that.",
        "[1, 2, 3]",
        '{"minRating": 9}',
        '{"maxPrice": "cheap"}',
    ],
)
async def test_unusable_llm_output_falls_back(reply: str) -> None:
    builder = StructuredQueryBuilder(llm=StubLLM(reply), timeout_seconds=1.0)
    built = await builder.build("find me laptop under 20k")
    assert built.source == QuerySource.regex_fallback
    assert built.query.max_price == 20000


@pytest.mark.asyncio
async def test_llm_timeout_falls_back() -> None:
    builder = StructuredQueryBuilder(llm=StubLLM('{"category": "tv"}', delay=1.0), timeout_seconds=0.01)
    built = await builder.build("find me laptop under 20k")
    assert built.source == QuerySource.regex_fallback
    assert built.query.category == "laptop"


def test_range_overrides_single_sided_bounds() -> None:
    query = build_query_with_regex("phones from 10k to 20k under 15k")
    assert (query.min_price, query.max_price) == (10000, 20000)
    assert query.category == "mobile"


def test_between_range_and_k_propagation() -> None:
    query = build_query_with_regex("laptops between 30k and 50k")
    assert (query.min_price, query.max_price) == (30000, 50000)

    query = build_query_with_regex("shoes 10 to 20k")
    assert (query.min_price, query.max_price) == (10000, 20000)


@pytest.mark.regression
@pytest.mark.parametrize(
    "text, expected",
    [
        ("laptop with 8-16 gb ram under 50k", (None, 50000)),
        ("tv 40-55 inch below 60k", (None, 60000)),
        ("rings 5 to 10 for my wife", (None, None)),
        ("₹500-1500 earrings", (500, 1500)),
        ("watches price 2000 to 5000", (2000, 5000)),
    ],
)
def test_bare_ranges_need_price_context(text: str, expected) -> None:
    query = build_query_with_regex(text)
    assert (query.min_price, query.max_price) == expected


def test_min_and_max_together_and_swap() -> None:
    query = build_query_with_regex("watches above 5k under 20k")
    assert (query.min_price, query.max_price) == (5000, 20000)

    query = build_query_with_regex("watches above 20k below 5k")
    assert (query.min_price, query.max_price) == (5000, 20000)


def test_min_price_number_is_not_reused_as_max() -> None:
    query = build_query_with_regex("headphones more than 500 rupees")
    assert query.min_price == 500
    assert query.max_price is None


def test_currency_symbol_and_digit_grouping() -> None:
    assert build_query_with_regex("₹5000 watches").max_price == 5000
    assert build_query_with_regex("shirts under 1,500").max_price == 1500


def test_brand_and_cheap_sort() -> None:
    query = build_query_with_regex("cheapest samsung phones")
    assert query.brand == "Samsung"
    assert query.category == "mobile"
    assert query.sort_by == SortBy.price_asc
    assert query.min_rating is None
    assert query.search_text is None


def test_leftover_words_become_search_text() -> None:
    query = build_query_with_regex("red cotton kurta under 999")
    assert query.category == "clothing"
    assert query.max_price == 999
    assert query.search_text == "red cotton"


def test_short_leftover_is_dropped() -> None:
    assert build_query_with_regex("show me red sofa").search_text is None
    assert build_query_with_regex("").filters() == {}
