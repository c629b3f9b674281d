from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence, Union

from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.config import settings
from storefront.core.exceptions import LLMProviderError
from storefront.core.logging import get_logger
from storefront.prompts.system_prompts import chat_system_prompt
from storefront.schemas.chat import ChatHistoryMessage, ResponseEnvelope
from storefront.services.ai.llm_service import LLMService, llm_service
from storefront.services.catalog.query_normalizer import normalize_query
from storefront.services.chat.response_assembler import ResponseAssembler, response_assembler
from storefront.services.chat.tools import ChatToolRegistry, ToolResults

logger = get_logger(__name__)

HistoryEntry = Union[ChatHistoryMessage, Dict[str, Any]]


class ChatService:
    """One chat turn: tool-calling LLM loop, then envelope assembly."""

    def __init__(
        self,
        db: AsyncSession,
        *,
        registry: Optional[ChatToolRegistry] = None,
        assembler: Optional[ResponseAssembler] = None,
        llm: Optional[LLMService] = None,
    ):
        self.db = db
        self.registry = registry or ChatToolRegistry(db)
        self.assembler = assembler or response_assembler
        self._llm = llm or llm_service
        self.max_rounds = max(1, int(getattr(settings, "CHAT_MAX_TOOL_ROUNDS", 3)))
        self.max_history = max(0, int(getattr(settings, "CHAT_HISTORY_MAX_MESSAGES", 10)))
        self.max_tokens = int(getattr(settings, "CHAT_MAX_TOKENS", 800))
        self.model = str(getattr(settings, "OPENAI_MODEL", "") or "gpt-4o-mini")

    def _build_messages(
        self,
        user_text: str,
        history: Sequence[HistoryEntry],
    ) -> List[Dict[str, Any]]:
        messages: List[Dict[str, Any]] = [{"role": "system", "content": chat_system_prompt()}]
        recent = list(history)[-self.max_history:] if self.max_history else []
        for entry in recent:
            if isinstance(entry, ChatHistoryMessage):
                role, content = entry.role, entry.content
            else:
                role = str(entry.get("role") or "")
                content = str(entry.get("content") or "")
            role = role.strip().lower()
            content = content.strip()
            if role not in {"user", "assistant"} or not content:
                continue
            messages.append({"role": role, "content": content})
        messages.append({"role": "user", "content": user_text})
        return messages

    async def _run_tool_loop(self, messages: List[Dict[str, Any]], results: ToolResults) -> str:
        tool_defs = self.registry.tool_definitions()
        last_assistant_text = ""

        for round_index in range(self.max_rounds):
            llm_out = await self._llm.generate_chat_with_tools(
                messages=messages,
                tools=tool_defs,
                model=self.model,
                temperature=0.2,
                max_tokens=self.max_tokens,
                tool_choice="auto",
            )
            assistant_content = str(llm_out.get("content") or "").strip()
            last_assistant_text = assistant_content or last_assistant_text
            tool_calls = list(llm_out.get("tool_calls") or [])
            if not tool_calls:
                return assistant_content or last_assistant_text

            assistant_tool_calls = []
            for call_index, call in enumerate(tool_calls):
                call["id"] = str(call.get("id") or f"call_{round_index}_{call_index}")
                assistant_tool_calls.append(
                    {
                        "id": call["id"],
                        "type": "function",
                        "function": {
                            "name": str(call.get("name") or ""),
                            "arguments": str(call.get("raw_arguments") or "{}"),
                        },
                    }
                )
            messages.append(
                {
                    "role": "assistant",
                    "content": assistant_content,
                    "tool_calls": assistant_tool_calls,
                }
            )

            for call in tool_calls:
                tool_name = str(call.get("name") or "")
                invocation = await self.registry.execute(tool_name, call.get("raw_arguments") or "{}")
                results.record(invocation)
                logger.info(f"[TOOL] round={round_index} tool={tool_name} ok={invocation.ok}")
                messages.append(
                    {
                        "role": "tool",
                        "tool_call_id": call["id"],
                        "name": tool_name,
                        "content": invocation.payload_json(),
                    }
                )

        final_out = await self._llm.generate_chat_with_tools(
            messages=messages,
            tools=tool_defs,
            model=self.model,
            temperature=0.2,
            max_tokens=self.max_tokens,
            tool_choice="none",
        )
        return str(final_out.get("content") or "").strip() or last_assistant_text

    async def process_message(
        self,
        message: str,
        history: Optional[Sequence[HistoryEntry]] = None,
    ) -> ResponseEnvelope:
        user_text = normalize_query(message)
        messages = self._build_messages(user_text, history or [])
        results = ToolResults()

        llm_text = ""
        try:
            llm_text = await self._run_tool_loop(messages, results)
        except LLMProviderError as exc:
            logger.warning(f"Chat LLM unavailable, assembling from tool results: {exc}")

        envelope = self.assembler.assemble(llm_text, results.product, results.policy)
        return self.assembler.with_unavailable_notes(envelope, results.failures)
