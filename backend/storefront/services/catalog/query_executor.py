from __future__ import annotations

import json
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import Select, and_, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.config import settings
from storefront.core.exceptions import ProductRetrievalError
from storefront.core.logging import get_logger
from storefront.models.product import Product
from storefront.schemas.product import ProductRecord
from storefront.schemas.query import SortBy, StructuredQuery
from storefront.services.catalog.spec_parser import parse_specifications

logger = get_logger(__name__)

LIKE_ESCAPE = "\\"

# Effective selling price and first-present rating, shared by filters and sorts.
EFFECTIVE_PRICE = func.coalesce(Product.discounted_price, Product.retail_price)
EFFECTIVE_RATING = func.coalesce(Product.product_rating, Product.overall_rating, 0)

SORT_ORDER = {
    SortBy.price_asc: (EFFECTIVE_PRICE.asc().nulls_last(),),
    SortBy.price_desc: (EFFECTIVE_PRICE.desc().nulls_last(),),
    SortBy.rating_desc: (EFFECTIVE_RATING.desc().nulls_last(),),
    SortBy.name_asc: (Product.name.asc(),),
    SortBy.name_desc: (Product.name.desc(),),
    SortBy.newest: (Product.created_at.desc(),),
}

PROJECTED_COLUMNS = (
    Product.id,
    Product.name,
    Product.category,
    Product.brand,
    Product.retail_price,
    Product.discounted_price,
    Product.product_rating,
    Product.overall_rating,
    Product.image,
    Product.images,
    Product.description,
    Product.product_url,
    Product.specifications,
)


def escape_like(value: str) -> str:
    return (
        value.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


def _contains(column, value: str):
    return column.ilike(f"%{escape_like(value)}%", escape=LIKE_ESCAPE)


def decode_images(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    try:
        decoded = json.loads(raw)
    except (TypeError, ValueError):
        return []
    if not isinstance(decoded, list):
        return []
    return [str(item) for item in decoded if item]


def row_to_record(row: Mapping[str, Any]) -> ProductRecord:
    retail = row.get("retail_price")
    discounted = row.get("discounted_price")
    images = decode_images(row.get("images"))
    rating = row.get("product_rating")
    if rating is None:
        rating = row.get("overall_rating")
    return ProductRecord(
        id=str(row["id"]),
        name=row["name"],
        category=row["category"],
        brand=row.get("brand"),
        price=float(discounted or retail or 0),
        original_price=float(retail) if retail else None,
        rating=float(rating) if rating is not None else None,
        image=row.get("image") or (images[0] if images else None),
        images=images,
        description=row.get("description"),
        product_url=row.get("product_url"),
        specifications=parse_specifications(row.get("specifications")),
    )


class ProductQueryExecutor:
    """Executes a StructuredQuery against the products table.

    Every filter value is a bound parameter and LIMIT is always applied.
    Datastore errors surface as ProductRetrievalError without retry.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def _conditions(query: StructuredQuery) -> List[Any]:
        conditions: List[Any] = []
        if query.category:
            conditions.append(_contains(Product.category, query.category))
        if query.brand:
            conditions.append(_contains(Product.brand, query.brand))
        if query.min_price is not None:
            conditions.append(EFFECTIVE_PRICE >= query.min_price)
        if query.max_price is not None:
            conditions.append(EFFECTIVE_PRICE <= query.max_price)
        if query.min_rating is not None:
            conditions.append(
                or_(
                    Product.product_rating >= query.min_rating,
                    and_(
                        Product.product_rating.is_(None),
                        Product.overall_rating >= query.min_rating,
                    ),
                )
            )
        if query.search_text:
            conditions.append(
                or_(
                    _contains(Product.name, query.search_text),
                    _contains(Product.description, query.search_text),
                )
            )
        return conditions

    @staticmethod
    def _limit(query: StructuredQuery) -> int:
        max_limit = max(1, int(getattr(settings, "PRODUCT_QUERY_MAX_LIMIT", 100)))
        return min(max(1, int(query.limit)), max_limit)

    def build_statement(self, query: StructuredQuery) -> Select:
        order_by = SORT_ORDER.get(query.sort_by, SORT_ORDER[SortBy.newest])
        stmt = select(*PROJECTED_COLUMNS)
        conditions = self._conditions(query)
        if conditions:
            stmt = stmt.where(*conditions)
        return stmt.order_by(*order_by, Product.id.asc()).limit(self._limit(query))

    async def execute(self, query: StructuredQuery) -> List[ProductRecord]:
        stmt = self.build_statement(query)
        try:
            result = await self.db.execute(stmt)
            rows = result.mappings().all()
        except SQLAlchemyError as exc:
            logger.error(f"Product query failed: {exc}")
            raise ProductRetrievalError("Product retrieval failed") from exc
        records = [row_to_record(row) for row in rows]
        logger.info(
            f"[SEARCH] product query filters={query.filters()} sort={query.sort_by.value} "
            f"limit={self._limit(query)} rows={len(records)}"
        )
        return records
