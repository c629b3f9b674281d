from __future__ import annotations

import csv
import io
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import text
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.config import settings
from storefront.core.logging import get_logger
from storefront.models.product import Product
from storefront.services.catalog.product_cache import ProductQueryCache, product_query_cache
from storefront.services.imports.products.parser import parse_product_row

logger = get_logger(__name__)


@dataclass
class ImportStats:
    processed: int = 0
    skipped: int = 0


class ProductImportService:
    """Bulk-loads catalog CSV rows into ``products``.

    Rows violating the catalog invariant are skipped; duplicates of an
    existing ``uniq_id`` are ignored. The product query cache is cleared
    once the import finishes.
    """

    def __init__(
        self,
        db: AsyncSession,
        *,
        cache: Optional[ProductQueryCache] = None,
        batch_size: Optional[int] = None,
    ):
        self.db = db
        self.cache = cache or product_query_cache
        self.batch_size = max(1, int(batch_size or getattr(settings, "PRODUCT_IMPORT_BATCH_SIZE", 200)))

    async def _insert_batch(self, rows: List[Dict[str, Any]]) -> None:
        values = [{"id": str(uuid.uuid4()), **row} for row in rows]
        stmt = pg_insert(Product).values(values)
        stmt = stmt.on_conflict_do_nothing(index_elements=[Product.uniq_id])
        await self.db.execute(stmt)

    async def import_rows(self, rows: Iterable[Dict[str, Any]], *, truncate: bool = False) -> ImportStats:
        stats = ImportStats()
        if truncate:
            await self.db.execute(text("TRUNCATE TABLE products"))
            logger.info("Cleared existing products")

        batch: List[Dict[str, Any]] = []
        for row in rows:
            parsed = parse_product_row(row)
            if parsed is None:
                stats.skipped += 1
                continue
            batch.append(parsed)
            if len(batch) >= self.batch_size:
                await self._insert_batch(batch)
                stats.processed += len(batch)
                batch = []
        if batch:
            await self._insert_batch(batch)
            stats.processed += len(batch)

        await self.db.commit()
        await self.cache.invalidate()
        logger.info(f"Product import finished: processed={stats.processed} skipped={stats.skipped}")
        return stats

    async def import_csv(self, content: bytes | str, *, truncate: bool = False) -> ImportStats:
        text_content = content.decode("utf-8-sig") if isinstance(content, bytes) else content
        reader = csv.DictReader(io.StringIO(text_content))
        return await self.import_rows(reader, truncate=truncate)
