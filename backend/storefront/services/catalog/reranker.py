from __future__ import annotations

import asyncio
import math
from typing import List, Optional, Sequence

from storefront.core.config import settings
from storefront.core.logging import get_logger
from storefront.schemas.product import ProductRecord, RankedCandidate
from storefront.services.ai.embedding import EmbeddingService, embedding_service
from storefront.services.catalog.query_normalizer import normalize_query

logger = get_logger(__name__)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    if not a or not b or len(a) != len(b):
        return 0.0
    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for x, y in zip(a, b):
        dot += x * y
        norm_a += x * x
        norm_b += y * y
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    similarity = dot / (math.sqrt(norm_a) * math.sqrt(norm_b))
    return max(-1.0, min(1.0, similarity))


def candidate_text(product: ProductRecord) -> str:
    parts = [
        product.name,
        product.brand,
        product.category,
        product.product_url,
        product.description,
    ]
    return " ".join(str(part).strip() for part in parts if part and str(part).strip())


class SemanticReranker:
    """Reorders executor rows by embedding similarity to the user query."""

    def __init__(
        self,
        embedder: Optional[EmbeddingService] = None,
        *,
        concurrency: Optional[int] = None,
    ):
        self.embedder = embedder or embedding_service
        self.concurrency = max(
            1,
            int(concurrency or getattr(settings, "RERANK_EMBED_CONCURRENCY", 8)),
        )

    async def _embed_candidates(self, candidates: List[ProductRecord]) -> List[List[float]]:
        semaphore = asyncio.Semaphore(self.concurrency)

        async def _embed_one(product: ProductRecord) -> List[float]:
            async with semaphore:
                return await self.embedder.embed(candidate_text(product))

        return list(await asyncio.gather(*(_embed_one(product) for product in candidates)))

    async def rank(
        self,
        user_query: str,
        candidates: List[ProductRecord],
        limit: int,
    ) -> List[RankedCandidate]:
        """Embed the query once, score every candidate, keep the top ``limit``.

        Ties keep retrieval order. Embedding errors propagate.
        """
        if not candidates or limit <= 0:
            return []

        query_vector = await self.embedder.embed(normalize_query(user_query))
        candidate_vectors = await self._embed_candidates(candidates)

        ranked = [
            RankedCandidate(product=product, similarity=cosine_similarity(query_vector, vector))
            for product, vector in zip(candidates, candidate_vectors)
        ]
        ranked.sort(key=lambda item: item.similarity, reverse=True)
        top = ranked[:limit]
        logger.debug(
            f"[RERANK] candidates={len(candidates)} kept={len(top)} "
            f"best={top[0].similarity if top else None}"
        )
        return top
