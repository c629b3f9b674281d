from fastapi import APIRouter, Depends

from storefront.core.exceptions import ChatProcessingException, SearchUnavailableException, StorefrontError
from storefront.core.logging import get_logger
from storefront.dependencies import get_chat_service
from storefront.schemas.chat import ChatRequest, ChatResponse
from storefront.services.chat.service import ChatService

router = APIRouter()
logger = get_logger(__name__)


@router.post("/message", response_model=ChatResponse)
async def chat_message(
    request: ChatRequest,
    service: ChatService = Depends(get_chat_service),
):
    """Answer one chat turn with the ``{message, data}`` envelope."""
    try:
        envelope = await service.process_message(request.message, request.history)
    except StorefrontError as e:
        logger.error(f"Chat pipeline unavailable: {e!r}")
        raise SearchUnavailableException()
    except Exception as e:
        logger.exception(f"Chat error: {e}")
        raise ChatProcessingException()
    return ChatResponse(message=envelope.message, data=envelope.data)
