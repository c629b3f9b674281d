import hashlib
import time
from collections import OrderedDict
from typing import List, Optional

from openai import AsyncOpenAI

from storefront.core.config import settings
from storefront.core.exceptions import EmbeddingProviderError
from storefront.core.logging import get_logger

logger = get_logger(__name__)


class _EmbeddingCache:
    def __init__(self, *, max_items: int, ttl_seconds: float):
        self.max_items = max(0, int(max_items))
        self.ttl_seconds = float(ttl_seconds)
        self._data: OrderedDict[str, tuple[float, List[float]]] = OrderedDict()

    def get(self, key: str) -> Optional[List[float]]:
        if not key or self.max_items <= 0:
            return None
        item = self._data.get(key)
        if not item:
            return None
        expires_at, value = item
        if expires_at and expires_at < time.time():
            self._data.pop(key, None)
            return None
        self._data.move_to_end(key)
        return value

    def set(self, key: str, value: List[float]) -> None:
        if not key or self.max_items <= 0:
            return
        expires_at = 0.0
        if self.ttl_seconds > 0:
            expires_at = time.time() + self.ttl_seconds
        self._data[key] = (expires_at, value)
        self._data.move_to_end(key)
        while len(self._data) > self.max_items:
            self._data.popitem(last=False)

    def clear(self) -> None:
        self._data.clear()


class EmbeddingService:
    """Turns text into fixed-length vectors via the OpenAI embeddings API.

    Provider failures surface as ``EmbeddingProviderError`` so callers can
    decide between failing the request and degrading.
    """

    def __init__(self):
        self.client = AsyncOpenAI(
            api_key=settings.OPENAI_API_KEY,
            timeout=float(getattr(settings, "EMBEDDING_TIMEOUT_SECONDS", 10.0)),
            max_retries=1,
        )
        self.model = settings.EMBEDDING_MODEL
        self.dimensions = int(settings.VECTOR_DIMENSIONS)
        self._cache = _EmbeddingCache(
            max_items=int(getattr(settings, "EMBEDDING_CACHE_MAX_ITEMS", 512)),
            ttl_seconds=float(getattr(settings, "EMBEDDING_CACHE_TTL_SECONDS", 3600)),
        )

    def _cache_key(self, text: str) -> str:
        payload = f"{self.model}:{text}"
        digest = hashlib.sha256(payload.encode("utf-8")).hexdigest()
        return f"{self.model}:{digest}"

    @staticmethod
    def _prepare(text: str) -> str:
        return str(text or "").replace("\n", " ").strip()

    def _check_vector(self, vector: Optional[List[float]]) -> List[float]:
        if not vector:
            raise EmbeddingProviderError("No embedding data returned from provider")
        if len(vector) != self.dimensions:
            raise EmbeddingProviderError(
                f"Embedding has {len(vector)} dimensions, expected {self.dimensions}"
            )
        return list(vector)

    async def embed(self, text: str) -> List[float]:
        """Generate an embedding for a single text."""
        clean = self._prepare(text)
        cache_key = self._cache_key(clean)
        cached = self._cache.get(cache_key)
        if cached is not None:
            return cached
        try:
            response = await self.client.embeddings.create(
                model=self.model,
                input=[clean],
            )
        except Exception as e:
            logger.error(f"Error generating embedding: {e}")
            raise EmbeddingProviderError(f"Failed to generate embedding: {e}") from e
        vector = self._check_vector(response.data[0].embedding if response.data else None)
        self._cache.set(cache_key, vector)
        return vector

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """Generate embeddings for multiple texts in one provider call."""
        if not texts:
            return []
        prepared = [self._prepare(text) for text in texts]
        try:
            response = await self.client.embeddings.create(
                model=self.model,
                input=prepared,
            )
        except Exception as e:
            logger.error(f"Error generating batch embeddings: {e}")
            raise EmbeddingProviderError(f"Failed to generate embeddings: {e}") from e
        data = sorted(response.data or [], key=lambda item: item.index)
        if len(data) != len(prepared):
            raise EmbeddingProviderError(
                f"Provider returned {len(data)} embeddings for {len(prepared)} inputs"
            )
        vectors = [self._check_vector(item.embedding) for item in data]
        for text, vector in zip(prepared, vectors):
            self._cache.set(self._cache_key(text), vector)
        return vectors


embedding_service = EmbeddingService()
