from pydantic import BaseModel, Field
from typing import Literal, Optional, List, Dict, Any

from storefront.schemas.product import ProductToolItem
from storefront.schemas.query import QuerySource


class ProductToolResult(BaseModel):
    type: Literal["product_response"] = "product_response"
    summary: str
    products: List[ProductToolItem] = []
    # Which query-builder path produced the filters; kept off the wire.
    query_source: Optional[QuerySource] = Field(default=None, exclude=True)


class PolicySource(BaseModel):
    title: Optional[str] = None
    source: str


class PolicyToolResult(BaseModel):
    type: Literal["policy_response"] = "policy_response"
    answer: str
    sources: List[PolicySource] = []


class ToolFailure(BaseModel):
    type: Literal["tool_failure"] = "tool_failure"
    tool: str
    note: str


class ResponseEnvelope(BaseModel):
    message: str
    data: Optional[Dict[str, Any]] = None


class ChatHistoryMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str = Field(..., max_length=10000)


class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=10000)
    history: List[ChatHistoryMessage] = []


class ChatResponse(ResponseEnvelope):
    pass
