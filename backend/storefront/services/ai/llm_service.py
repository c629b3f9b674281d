import json
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI

from storefront.core.config import settings
from storefront.core.exceptions import LLMProviderError
from storefront.core.logging import get_logger

logger = get_logger(__name__)


class LLMService:
    """Service for interacting with the OpenAI chat completion API."""

    def __init__(self):
        self.timeout = float(getattr(settings, "LLM_TIMEOUT_SECONDS", 30.0))
        self.client = AsyncOpenAI(
            api_key=settings.OPENAI_API_KEY,
            timeout=self.timeout,
            max_retries=0,
        )
        self.model = settings.OPENAI_MODEL

    def _request_timeout(self, timeout: Optional[float]) -> float:
        # An explicit None would disable the client-level timeout.
        return float(timeout) if timeout is not None else self.timeout

    async def generate_chat_response(
        self,
        messages: List[dict],
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> str:
        """Generate a chat response using the LLM."""
        try:
            response = await self.client.chat.completions.create(
                model=model or self.model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
                timeout=self._request_timeout(timeout),
            )
            return response.choices[0].message.content or ""
        except Exception as e:
            logger.error(f"Error generating chat response: {e}")
            raise LLMProviderError(str(e)) from e

    @staticmethod
    def _parse_tool_call(call: Any) -> Dict[str, Any]:
        function = getattr(call, "function", None)
        raw_arguments = str(getattr(function, "arguments", "") or "{}")
        arguments: Dict[str, Any] = {}
        argument_error: Optional[str] = None
        try:
            decoded = json.loads(raw_arguments)
            if isinstance(decoded, dict):
                arguments = decoded
            else:
                argument_error = "arguments must be a JSON object"
        except json.JSONDecodeError as exc:
            argument_error = str(exc)
        return {
            "id": str(getattr(call, "id", "") or ""),
            "name": str(getattr(function, "name", "") or ""),
            "raw_arguments": raw_arguments,
            "arguments": arguments,
            "argument_error": argument_error,
        }

    async def generate_chat_with_tools(
        self,
        messages: List[Dict[str, Any]],
        tools: List[Dict[str, Any]],
        model: Optional[str] = None,
        temperature: float = 0.2,
        max_tokens: Optional[int] = None,
        tool_choice: str = "auto",
        timeout: Optional[float] = None,
    ) -> Dict[str, Any]:
        """One tool-calling round. Returns assistant text and decoded tool calls."""
        try:
            response = await self.client.chat.completions.create(
                model=model or self.model,
                messages=messages,
                tools=tools,
                tool_choice=tool_choice,
                temperature=temperature,
                max_tokens=max_tokens,
                timeout=self._request_timeout(timeout),
            )
        except Exception as e:
            logger.error(f"Error generating tool-calling response: {e}")
            raise LLMProviderError(str(e)) from e

        message = response.choices[0].message
        tool_calls = [self._parse_tool_call(call) for call in (message.tool_calls or [])]
        return {
            "content": message.content or "",
            "tool_calls": tool_calls,
        }


llm_service = LLMService()
