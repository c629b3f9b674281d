from __future__ import annotations

from typing import Any, Dict, List, Optional

import pytest
from redis import exceptions as redis_exceptions

from storefront.core.config import settings
from storefront.schemas.product import ProductRecord
from storefront.schemas.query import BuiltQuery, QuerySource, StructuredQuery
from storefront.services.catalog.product_cache import ProductQueryCache
from storefront.services.catalog.product_search import NO_PRODUCTS_SUMMARY, ProductSearchService
from storefront.services.catalog.reranker import SemanticReranker


class StubBuilder:
    def __init__(self, query: StructuredQuery, source: QuerySource = QuerySource.llm):
        self.built = BuiltQuery(query=query, source=source)
        self.inputs: List[str] = []

    async def build(self, normalized_query: str) -> BuiltQuery:
        self.inputs.append(normalized_query)
        return self.built


class StubExecutor:
    def __init__(self, rows: List[ProductRecord]):
        self.rows = rows
        self.queries: List[StructuredQuery] = []

    async def execute(self, query: StructuredQuery) -> List[ProductRecord]:
        self.queries.append(query)
        return self.rows[: query.limit]


class StubEmbedder:
    def __init__(self):
        self.calls: List[str] = []

    async def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        return [1.0, float(len(text) % 3), 0.5]


class MemoryCache:
    def __init__(self):
        self.store: Dict[str, List[Dict[str, Any]]] = {}

    @staticmethod
    def query_key(payload: Dict[str, Any]) -> str:
        return "products:query:" + repr(sorted(payload.items()))

    async def get_json(self, key: str) -> Optional[List[Dict[str, Any]]]:
        return self.store.get(key)

    async def set_json(self, key: str, payload: List[Dict[str, Any]], ttl_seconds: Optional[int] = None) -> None:
        self.store[key] = payload


def _record(index: int) -> ProductRecord:
    return ProductRecord(
        id=f"p-{index}",
        name=f"Laptop {index}",
        category="Computers",
        brand="Dell",
        price=15000.0 + index,
        rating=4.0,
        product_url=f"http://shop/p-{index}",
    )


def _service(rows: List[ProductRecord], embedder: StubEmbedder, cache: Any = None):
    builder = StubBuilder(StructuredQuery(category="laptop", max_price=20000))
    executor = StubExecutor(rows)
    service = ProductSearchService(
        db=None,
        builder=builder,
        executor=executor,
        reranker=SemanticReranker(embedder=embedder),
        cache=cache or MemoryCache(),
    )
    return service, builder, executor


@pytest.mark.regression
@pytest.mark.asyncio
async def test_zero_rows_returns_no_products_without_embedding() -> None:
    embedder = StubEmbedder()
    service, _builder, _executor = _service([], embedder)

    result = await service.search_products_for_llm("find me laptop under 20k", 7)

    assert result.model_dump() == {
        "type": "product_response",
        "summary": NO_PRODUCTS_SUMMARY,
        "products": [],
    }
    assert embedder.calls == []


@pytest.mark.asyncio
async def test_overfetches_then_reranks_down_to_limit(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "PRODUCT_OVERFETCH_FACTOR", 2)
    embedder = StubEmbedder()
    service, builder, executor = _service([_record(i) for i in range(10)], embedder)

    result = await service.search_products_for_llm("Find me Laptoop under 20k", 3)

    assert builder.inputs == ["find me laptop under 20k"]
    assert executor.queries[0].limit == 6
    assert executor.queries[0].max_price == 20000
    assert len(result.products) == 3
    assert result.summary == "Found 3 products matching your request."
    assert result.query_source == QuerySource.llm
    assert len(embedder.calls) == 1 + 6


@pytest.mark.asyncio
async def test_projected_items_carry_product_url_alias() -> None:
    service, _builder, _executor = _service([_record(1)], StubEmbedder())

    result = await service.search_products_for_llm("laptop", 1)
    payload = result.model_dump(mode="json", by_alias=True)

    assert "query_source" not in payload
    assert payload["products"][0]["productUrl"] == "http://shop/p-1"
    assert set(payload["products"][0]) == {
        "id",
        "name",
        "price",
        "brand",
        "category",
        "image",
        "rating",
        "description",
        "productUrl",
    }


@pytest.mark.asyncio
async def test_cached_rows_skip_the_executor() -> None:
    cache = MemoryCache()
    service, _builder, executor = _service([_record(1), _record(2)], StubEmbedder(), cache)

    first = await service.search_products_for_llm("laptop", 2)
    second = await service.search_products_for_llm("laptop", 2)

    assert len(executor.queries) == 1
    assert [p.id for p in first.products] == [p.id for p in second.products]


class StalledRedis:
    def __init__(self):
        self.calls = 0

    async def get(self, key: str) -> Optional[str]:
        self.calls += 1
        raise redis_exceptions.TimeoutError("Timeout reading from socket")

    async def set(self, key: str, value: str, ex: int) -> None:
        self.calls += 1
        raise redis_exceptions.TimeoutError("Timeout writing to socket")


@pytest.mark.asyncio
async def test_slow_redis_is_a_cache_miss(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "PRODUCT_CACHE_ENABLED", True)
    client = StalledRedis()
    service, _builder, executor = _service(
        [_record(1), _record(2)],
        StubEmbedder(),
        ProductQueryCache(client=client),
    )

    result = await service.search_products_for_llm("laptop", 2)

    assert len(executor.queries) == 1
    assert client.calls == 2
    assert len(result.products) == 2
    assert result.summary == "Found 2 products matching your request."
