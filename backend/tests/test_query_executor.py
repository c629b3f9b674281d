from __future__ import annotations

from typing import Any, Dict, List

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import OperationalError

from storefront.core.config import settings
from storefront.core.exceptions import ProductRetrievalError
from storefront.schemas.query import SortBy, StructuredQuery
from storefront.services.catalog.query_executor import (
    ProductQueryExecutor,
    decode_images,
    escape_like,
    row_to_record,
)


class FakeMappings:
    def __init__(self, rows: List[Dict[str, Any]]):
        self._rows = rows

    def all(self) -> List[Dict[str, Any]]:
        return list(self._rows)


class FakeResult:
    def __init__(self, rows: List[Dict[str, Any]]):
        self._rows = rows

    def mappings(self) -> FakeMappings:
        return FakeMappings(self._rows)


class FakeSession:
    def __init__(self, rows: List[Dict[str, Any]] | None = None, error: Exception | None = None):
        self.rows = rows or []
        self.error = error
        self.statements: List[Any] = []

    async def execute(self, stmt: Any) -> FakeResult:
        self.statements.append(stmt)
        if self.error is not None:
            raise self.error
        return FakeResult(self.rows)


# Named paramstyle keeps literal "%" signs undoubled in rendered SQL.
PG_DIALECT = postgresql.dialect(paramstyle="named")


def _row(**overrides: Any) -> Dict[str, Any]:
    row = {
        "id": "p-1",
        "name": "Analog Watch",
        "category": "Watches",
        "brand": "Titan",
        "retail_price": 2000.0,
        "discounted_price": 1500.0,
        "product_rating": None,
        "overall_rating": 4.2,
        "image": None,
        "images": '["http://img/1.jpg", "http://img/2.jpg"]',
        "description": "Classic analog watch",
        "product_url": "http://shop/p-1",
        "specifications": '{"product_specification"=>[{"key"=>"Type", "value"=>"Analog"}]}',
    }
    row.update(overrides)
    return row


def _sql(query: StructuredQuery) -> str:
    stmt = ProductQueryExecutor(FakeSession()).build_statement(query)
    return str(stmt.compile(dialect=PG_DIALECT, compile_kwargs={"literal_binds": True}))


def test_no_filters_is_unconditional_but_bounded() -> None:
    sql = _sql(StructuredQuery())
    assert "WHERE" not in sql
    assert "ORDER BY products.created_at DESC, products.id ASC" in sql
    assert sql.rstrip().endswith("LIMIT 20")


def test_each_present_filter_is_one_and_predicate() -> None:
    query = StructuredQuery(
        category="laptop",
        brand="Dell",
        min_price=10000,
        max_price=20000,
        min_rating=4,
        search_text="gaming",
    )
    sql = _sql(query)
    where = sql.split("WHERE", 1)[1].split("ORDER BY", 1)[0]

    assert where.count(" AND ") >= 5
    assert "products.category ILIKE '%laptop%'" in where
    assert "products.brand ILIKE '%Dell%'" in where
    assert "coalesce(products.discounted_price, products.retail_price) >= 10000" in where
    assert "coalesce(products.discounted_price, products.retail_price) <= 20000" in where
    assert "products.product_rating >= 4" in where
    assert "products.product_rating IS NULL AND products.overall_rating >= 4" in where
    assert "products.name ILIKE '%gaming%'" in where
    assert "products.description ILIKE '%gaming%'" in where
    assert " OR products.description ILIKE" in where


def test_user_values_are_bound_parameters() -> None:
    hostile = "50%_off'; DROP TABLE products;--"
    query = StructuredQuery(category=hostile, search_text=hostile)
    stmt = ProductQueryExecutor(FakeSession()).build_statement(query)
    compiled = stmt.compile(dialect=PG_DIALECT)

    assert "DROP TABLE" not in str(compiled)
    assert f"%{escape_like(hostile)}%" in compiled.params.values()
    assert escape_like("50%_off") == "50\\%\\_off"


@pytest.mark.parametrize(
    "sort_by, expected",
    [
        (SortBy.price_asc, "coalesce(products.discounted_price, products.retail_price) ASC NULLS LAST"),
        (SortBy.price_desc, "coalesce(products.discounted_price, products.retail_price) DESC NULLS LAST"),
        (SortBy.rating_desc, "coalesce(products.product_rating, products.overall_rating, 0) DESC NULLS LAST"),
        (SortBy.name_asc, "products.name ASC"),
        (SortBy.name_desc, "products.name DESC"),
        (SortBy.newest, "products.created_at DESC"),
    ],
)
def test_sort_table(sort_by: SortBy, expected: str) -> None:
    sql = _sql(StructuredQuery(sort_by=sort_by))
    assert f"ORDER BY {expected}, products.id ASC" in sql


def test_limit_is_clamped(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "PRODUCT_QUERY_MAX_LIMIT", 50)
    assert _sql(StructuredQuery(limit=500)).rstrip().endswith("LIMIT 50")
    assert _sql(StructuredQuery(limit=3)).rstrip().endswith("LIMIT 3")


def test_row_mapping_coalesces_prices_ratings_and_images() -> None:
    record = row_to_record(_row())
    assert record.price == 1500.0
    assert record.original_price == 2000.0
    assert record.rating == 4.2
    assert record.image == "http://img/1.jpg"
    assert record.images == ["http://img/1.jpg", "http://img/2.jpg"]
    assert record.specifications == {"product_specification": [{"key": "Type", "value": "Analog"}]}

    record = row_to_record(_row(discounted_price=None, product_rating=3.5, images="not json", image="x.jpg"))
    assert record.price == 2000.0
    assert record.rating == 3.5
    assert record.images == []
    assert record.image == "x.jpg"


def test_decode_images_fallbacks() -> None:
    assert decode_images(None) == []
    assert decode_images("{broken") == []
    assert decode_images('{"a": 1}') == []
    assert decode_images('["a", "", null, "b"]') == ["a", "b"]


@pytest.mark.asyncio
async def test_execute_maps_rows() -> None:
    session = FakeSession(rows=[_row(id="p-1"), _row(id="p-2", name="Digital Watch")])
    records = await ProductQueryExecutor(session).execute(StructuredQuery(category="watch", limit=2))

    assert [record.id for record in records] == ["p-1", "p-2"]
    assert len(session.statements) == 1


@pytest.mark.asyncio
async def test_execute_wraps_datastore_errors_without_retry() -> None:
    session = FakeSession(error=OperationalError("SELECT 1", {}, Exception("connection refused")))
    with pytest.raises(ProductRetrievalError):
        await ProductQueryExecutor(session).execute(StructuredQuery())
    assert len(session.statements) == 1
