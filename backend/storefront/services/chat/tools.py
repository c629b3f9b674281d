from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.config import settings
from storefront.core.exceptions import StorefrontError
from storefront.core.logging import get_logger
from storefront.schemas.chat import PolicySource, PolicyToolResult, ProductToolResult, ToolFailure
from storefront.services.catalog.product_search import ProductSearchService
from storefront.services.catalog.query_normalizer import normalize_query
from storefront.services.knowledge.retrieval import KnowledgeSearchService

logger = get_logger(__name__)

TOOL_SEARCH_PRODUCTS = "search_products"
TOOL_SEARCH_POLICIES = "search_policies"

SUPPORTED_TOOLS = {TOOL_SEARCH_PRODUCTS, TOOL_SEARCH_POLICIES}

TOOL_LABELS = {
    TOOL_SEARCH_PRODUCTS: "Product search",
    TOOL_SEARCH_POLICIES: "Policy search",
}

NO_POLICY_ANSWER = (
    "I don't have information about that policy. "
    "Please contact customer support for more details."
)

ToolResult = Union[ProductToolResult, PolicyToolResult, ToolFailure]


class SearchProductsArgs(BaseModel):
    model_config = ConfigDict(extra="ignore")

    query: str = Field(min_length=1, max_length=500)

    @field_validator("query")
    @classmethod
    def validate_query(cls, value: str) -> str:
        clean = value.strip()
        if not clean:
            raise ValueError("query cannot be empty")
        return clean


class SearchPoliciesArgs(SearchProductsArgs):
    pass


def unavailable_note(tool_name: str) -> str:
    label = TOOL_LABELS.get(tool_name, "This feature")
    return f"{label} is currently unavailable."


@dataclass
class ToolInvocation:
    """Outcome of one tool call: the typed result plus what the LLM sees."""

    tool: str
    result: ToolResult

    @property
    def ok(self) -> bool:
        return not isinstance(self.result, ToolFailure)

    def payload_json(self) -> str:
        if isinstance(self.result, ToolFailure):
            payload: Dict[str, Any] = {"error": self.result.note}
        else:
            payload = self.result.model_dump(mode="json", by_alias=True)
        return json.dumps(payload, ensure_ascii=True)


@dataclass
class ToolResults:
    """Latest successful result per tool plus the failures of this turn."""

    product: Optional[ProductToolResult] = None
    policy: Optional[PolicyToolResult] = None
    failures: List[ToolFailure] = field(default_factory=list)

    def record(self, invocation: ToolInvocation) -> None:
        result = invocation.result
        if isinstance(result, ToolFailure):
            if all(existing.tool != result.tool for existing in self.failures):
                self.failures.append(result)
            return
        self.failures = [failure for failure in self.failures if failure.tool != invocation.tool]
        if isinstance(result, ProductToolResult):
            self.product = result
        elif isinstance(result, PolicyToolResult):
            self.policy = result


class ChatToolRegistry:
    def __init__(
        self,
        db: AsyncSession,
        *,
        product_search: Optional[ProductSearchService] = None,
        knowledge_search: Optional[KnowledgeSearchService] = None,
        timeout_seconds: Optional[float] = None,
    ):
        self.db = db
        self.product_search = product_search or ProductSearchService(db)
        self.knowledge_search = knowledge_search or KnowledgeSearchService(db)
        self.timeout_seconds = float(
            timeout_seconds
            if timeout_seconds is not None
            else getattr(settings, "TOOL_TIMEOUT_SECONDS", 25.0)
        )

    @staticmethod
    def tool_definitions() -> List[Dict[str, Any]]:
        return [
            {
                "type": "function",
                "function": {
                    "name": TOOL_SEARCH_PRODUCTS,
                    "description": "Use ONLY for product discovery, comparison, or recommendations. Read-only.",
                    "parameters": {
                        "type": "object",
                        "properties": {
                            "query": {"type": "string", "minLength": 1, "maxLength": 500},
                        },
                        "required": ["query"],
                        "additionalProperties": False,
                    },
                },
            },
            {
                "type": "function",
                "function": {
                    "name": TOOL_SEARCH_POLICIES,
                    "description": "Use ONLY for store policies: shipping, returns, refunds, privacy, support hours.",
                    "parameters": {
                        "type": "object",
                        "properties": {
                            "query": {"type": "string", "minLength": 1, "maxLength": 500},
                        },
                        "required": ["query"],
                        "additionalProperties": False,
                    },
                },
            },
        ]

    async def search_products(self, args: SearchProductsArgs) -> ProductToolResult:
        limit = int(getattr(settings, "MAX_PRODUCT_ITEMS", 7))
        return await self.product_search.search_products_for_llm(normalize_query(args.query), limit)

    async def search_policies(self, args: SearchPoliciesArgs) -> PolicyToolResult:
        limit = int(getattr(settings, "MAX_KNOWLEDGE_BASE_SEARCH_ITEMS", 5))
        chunks = await self.knowledge_search.search(normalize_query(args.query), limit)
        if not chunks:
            return PolicyToolResult(answer=NO_POLICY_ANSWER, sources=[])
        return PolicyToolResult(
            answer="\n\n".join(chunk.content for chunk in chunks),
            sources=[PolicySource(title=chunk.title, source=chunk.source) for chunk in chunks],
        )

    async def _dispatch(self, tool_name: str, arguments: Dict[str, Any]) -> ToolResult:
        if tool_name == TOOL_SEARCH_PRODUCTS:
            return await self.search_products(SearchProductsArgs.model_validate(arguments))
        if tool_name == TOOL_SEARCH_POLICIES:
            return await self.search_policies(SearchPoliciesArgs.model_validate(arguments))
        raise ValueError(f"Unsupported tool: {tool_name}")

    @staticmethod
    def _decode_arguments(raw_arguments: Any) -> Dict[str, Any]:
        if isinstance(raw_arguments, dict):
            return raw_arguments
        decoded = json.loads(str(raw_arguments or "{}"))
        if not isinstance(decoded, dict):
            raise ValueError("arguments must be a JSON object")
        return decoded

    async def execute(self, tool_name: str, raw_arguments: Any) -> ToolInvocation:
        """Run one tool call. Never raises; failures come back as ToolFailure."""
        if tool_name not in SUPPORTED_TOOLS:
            logger.warning(f"LLM requested unsupported tool {tool_name!r}")
            return ToolInvocation(
                tool=tool_name,
                result=ToolFailure(tool=tool_name, note=unavailable_note(tool_name)),
            )
        try:
            arguments = self._decode_arguments(raw_arguments)
            result = await asyncio.wait_for(
                self._dispatch(tool_name, arguments),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Tool {tool_name} timed out after {self.timeout_seconds}s")
        except (ValidationError, ValueError) as exc:
            logger.warning(f"Tool {tool_name} called with invalid arguments: {exc}")
        except StorefrontError as exc:
            logger.warning(f"Tool {tool_name} failed: {exc!r}")
        except Exception:
            logger.exception(f"Tool {tool_name} failed unexpectedly")
        else:
            return ToolInvocation(tool=tool_name, result=result)
        return ToolInvocation(
            tool=tool_name,
            result=ToolFailure(tool=tool_name, note=unavailable_note(tool_name)),
        )
