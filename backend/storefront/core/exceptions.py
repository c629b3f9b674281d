from fastapi import HTTPException, status


class StorefrontError(Exception):
    """Base class for errors raised by the chat retrieval pipeline."""


class ProviderError(StorefrontError):
    """An upstream model provider failed or timed out."""


class LLMProviderError(ProviderError):
    pass


class EmbeddingProviderError(ProviderError):
    pass


class RetrievalError(StorefrontError):
    """A datastore query failed. Never retried inside the pipeline."""


class ProductRetrievalError(RetrievalError):
    pass


class KnowledgeRetrievalError(RetrievalError):
    pass


class SearchUnavailableException(HTTPException):
    def __init__(self, detail: str = "Search is temporarily unavailable. Please try again."):
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=detail,
        )


class ChatProcessingException(HTTPException):
    def __init__(self, detail: str = "Unable to process the request. Please try again."):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=detail,
        )
