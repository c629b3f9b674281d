from __future__ import annotations

from typing import List, Optional

from sqlalchemy import Select, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.config import settings
from storefront.core.exceptions import KnowledgeRetrievalError
from storefront.core.logging import get_logger
from storefront.models.knowledge import KnowledgeBaseEntry
from storefront.schemas.knowledge import KnowledgeChunk
from storefront.services.ai.embedding import EmbeddingService, embedding_service

logger = get_logger(__name__)


class KnowledgeSearchService:
    """Nearest-neighbor search over the policy knowledge base.

    Ranking is delegated entirely to pgvector's L2 distance operator. There
    is no fallback: embedding and datastore failures propagate.
    """

    def __init__(self, db: AsyncSession, *, embedder: Optional[EmbeddingService] = None):
        self.db = db
        self.embedder = embedder or embedding_service

    @staticmethod
    def build_statement(query_embedding: List[float], limit: int) -> Select:
        distance_col = KnowledgeBaseEntry.embedding.l2_distance(query_embedding).label("distance")
        return (
            select(
                KnowledgeBaseEntry.id,
                KnowledgeBaseEntry.source,
                KnowledgeBaseEntry.source_id,
                KnowledgeBaseEntry.title,
                KnowledgeBaseEntry.content,
                distance_col,
            )
            .order_by(distance_col.asc())
            .limit(max(1, int(limit)))
        )

    async def search(self, normalized_query: str, limit: Optional[int] = None) -> List[KnowledgeChunk]:
        if limit is None:
            limit = getattr(settings, "MAX_KNOWLEDGE_BASE_SEARCH_ITEMS", 5)
        limit = int(limit)
        if limit <= 0:
            return []

        query_embedding = await self.embedder.embed(normalized_query)
        stmt = self.build_statement(query_embedding, limit)
        try:
            result = await self.db.execute(stmt)
            rows = result.mappings().all()
        except SQLAlchemyError as exc:
            logger.error(f"Knowledge search failed: {exc}")
            raise KnowledgeRetrievalError("Knowledge retrieval failed") from exc

        chunks = [
            KnowledgeChunk(
                id=str(row["id"]),
                source=row["source"],
                source_id=row.get("source_id"),
                title=row.get("title"),
                content=row["content"],
                distance=float(row["distance"]),
            )
            for row in rows
        ]
        logger.info(f"[KB] query={normalized_query!r} chunks={len(chunks)}")
        return chunks
