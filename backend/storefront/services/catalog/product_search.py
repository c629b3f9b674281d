from __future__ import annotations

from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.config import settings
from storefront.core.logging import get_logger
from storefront.schemas.chat import ProductToolResult
from storefront.schemas.product import ProductRecord, ProductToolItem
from storefront.schemas.query import StructuredQuery
from storefront.services.catalog.product_cache import ProductQueryCache, product_query_cache
from storefront.services.catalog.query_builder import StructuredQueryBuilder
from storefront.services.catalog.query_executor import ProductQueryExecutor
from storefront.services.catalog.query_normalizer import normalize_query
from storefront.services.catalog.reranker import SemanticReranker

logger = get_logger(__name__)

NO_PRODUCTS_SUMMARY = "No products found matching your request."


def found_summary(count: int) -> str:
    return f"Found {count} products matching your request."


class ProductSearchService:
    """Product retrieval used by the chat ``search_products`` tool.

    normalize -> build -> execute (over-fetch, cached) -> rerank -> project.
    """

    def __init__(
        self,
        db: AsyncSession,
        *,
        builder: Optional[StructuredQueryBuilder] = None,
        executor: Optional[ProductQueryExecutor] = None,
        reranker: Optional[SemanticReranker] = None,
        cache: Optional[ProductQueryCache] = None,
    ):
        self.db = db
        self.builder = builder or StructuredQueryBuilder()
        self.executor = executor or ProductQueryExecutor(db)
        self.reranker = reranker or SemanticReranker()
        self.cache = cache or product_query_cache

    async def _fetch_candidates(self, query: StructuredQuery) -> List[ProductRecord]:
        key = self.cache.query_key(query.model_dump(mode="json", by_alias=True))
        cached = await self.cache.get_json(key)
        if cached is not None:
            try:
                return [ProductRecord.model_validate(item) for item in cached]
            except ValueError as exc:
                logger.warning(f"Ignoring malformed cached product rows: {exc}")

        rows = await self.executor.execute(query)
        await self.cache.set_json(key, [row.model_dump(mode="json") for row in rows])
        return rows

    async def search_products_for_llm(
        self,
        user_query: str,
        limit: Optional[int] = None,
    ) -> ProductToolResult:
        final_limit = max(1, int(limit or getattr(settings, "MAX_PRODUCT_ITEMS", 7)))
        overfetch = max(1, int(getattr(settings, "PRODUCT_OVERFETCH_FACTOR", 2)))

        normalized = normalize_query(user_query)
        built = await self.builder.build(normalized)
        query = built.query.with_limit(final_limit * overfetch)
        logger.info(
            f"[SEARCH] query={normalized!r} source={built.source.value} filters={query.filters()}"
        )

        candidates = await self._fetch_candidates(query)
        if not candidates:
            return ProductToolResult(
                summary=NO_PRODUCTS_SUMMARY,
                products=[],
                query_source=built.source,
            )

        ranked = await self.reranker.rank(user_query, candidates, final_limit)
        products = [ProductToolItem.from_record(item.product) for item in ranked]
        return ProductToolResult(
            summary=found_summary(len(products)),
            products=products,
            query_source=built.source,
        )
