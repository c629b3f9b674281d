from __future__ import annotations

from typing import List, Optional, Sequence

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.logging import get_logger
from storefront.models.knowledge import KnowledgeBaseEntry
from storefront.services.ai.embedding import EmbeddingService, embedding_service
from storefront.services.imports.knowledge.parser import PolicyDocument

logger = get_logger(__name__)

POLICY_SOURCE = "policy"


class KnowledgeImportService:
    """Embeds whole policy documents and stores them in ``knowledge_base``."""

    def __init__(self, db: AsyncSession, *, embedder: Optional[EmbeddingService] = None):
        self.db = db
        self.embedder = embedder or embedding_service

    async def import_policies(
        self,
        documents: Sequence[PolicyDocument],
        *,
        replace: bool = True,
    ) -> List[KnowledgeBaseEntry]:
        docs = [doc for doc in documents if doc.content]
        if replace:
            await self.db.execute(delete(KnowledgeBaseEntry).where(KnowledgeBaseEntry.source == POLICY_SOURCE))

        entries: List[KnowledgeBaseEntry] = []
        if docs:
            vectors = await self.embedder.embed_batch([doc.content for doc in docs])
            for doc, vector in zip(docs, vectors):
                entry = KnowledgeBaseEntry(
                    source=POLICY_SOURCE,
                    source_id=doc.source_id,
                    title=doc.title,
                    content=doc.content,
                    embedding=vector,
                )
                self.db.add(entry)
                entries.append(entry)

        await self.db.commit()
        logger.info(f"Ingested {len(entries)} policy documents")
        return entries
