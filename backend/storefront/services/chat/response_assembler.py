from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from storefront.core.logging import get_logger
from storefront.schemas.chat import (
    PolicyToolResult,
    ProductToolResult,
    ResponseEnvelope,
    ToolFailure,
)
from storefront.schemas.product import ProductToolItem
from storefront.utils.json_repair import extract_json_object

logger = get_logger(__name__)

GENERIC_FAILURE_MESSAGE = "Sorry, I couldn't process your request right now. Please try again in a moment."

PRODUCT_ITEM_FIELDS = ("id", "name", "price", "brand", "category", "rating", "productUrl")


def product_count_message(count: int) -> str:
    if count == 1:
        return "I found 1 product that matches what you're looking for."
    return f"I found {count} products that match what you're looking for."


class ReplyKind(str, enum.Enum):
    canonical = "canonical"
    legacy_product = "legacy_product"
    legacy_policy = "legacy_policy"
    other = "other"


@dataclass
class ParsedReply:
    """LLM reply normalized into the canonical shape, tagged with its origin.

    ``has_data`` tells whether the model produced an explicit ``data`` field.
    Legacy product replies carry their product list in ``products``.
    """

    kind: ReplyKind
    message: str = ""
    data: Optional[Dict[str, Any]] = None
    has_data: bool = False
    products: List[Dict[str, Any]] = field(default_factory=list)


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    return str(value).strip()


def _dict_items(value: Any) -> List[Dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def parse_llm_reply(text: Optional[str]) -> Optional[ParsedReply]:
    """Parse LLM output into a ParsedReply, or None when it is empty/unparsable."""
    if not text or not str(text).strip():
        return None
    try:
        raw = extract_json_object(str(text))
    except ValueError:
        return None

    reply_type = _text(raw.get("type")).lower()

    if "data" in raw and "message" in raw:
        data = raw.get("data")
        return ParsedReply(
            kind=ReplyKind.canonical,
            message=_text(raw.get("message")),
            data=data if isinstance(data, dict) else None,
            has_data=True,
        )

    if reply_type == "product_response" or isinstance(raw.get("products"), list):
        return ParsedReply(
            kind=ReplyKind.legacy_product,
            message=_text(raw.get("message")) or _text(raw.get("summary")),
            products=_dict_items(raw.get("products")),
        )

    if reply_type == "policy_response" or "answer" in raw:
        return ParsedReply(
            kind=ReplyKind.legacy_policy,
            message=_text(raw.get("message")) or _text(raw.get("answer")),
        )

    return ParsedReply(
        kind=ReplyKind.other,
        message=_text(raw.get("message")) or _text(raw.get("reason")),
    )


class ResponseAssembler:
    """Merges the LLM's reply with tool results into one ResponseEnvelope.

    Product URLs always come from the tool result by index. Total: every
    input, however malformed, yields a valid envelope.
    """

    @staticmethod
    def _tool_url(product_result: Optional[ProductToolResult], index: int) -> Optional[str]:
        if product_result is None or index >= len(product_result.products):
            return None
        return product_result.products[index].product_url

    @staticmethod
    def _strip_tool_item(item: ProductToolItem) -> Dict[str, Any]:
        dumped = item.model_dump(mode="json", by_alias=True)
        return {key: dumped.get(key) for key in PRODUCT_ITEM_FIELDS}

    def _tool_products(self, product_result: ProductToolResult) -> List[Dict[str, Any]]:
        return [self._strip_tool_item(item) for item in product_result.products]

    def _with_tool_urls(
        self,
        items: Sequence[Dict[str, Any]],
        product_result: Optional[ProductToolResult],
        *,
        strip: bool,
    ) -> List[Dict[str, Any]]:
        merged: List[Dict[str, Any]] = []
        for index, item in enumerate(items):
            entry = {key: item.get(key) for key in PRODUCT_ITEM_FIELDS} if strip else dict(item)
            entry["productUrl"] = self._tool_url(product_result, index)
            merged.append(entry)
        return merged

    @staticmethod
    def _has_products(product_result: Optional[ProductToolResult]) -> bool:
        return product_result is not None and len(product_result.products) > 0

    def _fallback(
        self,
        product_result: Optional[ProductToolResult],
        policy_result: Optional[PolicyToolResult],
    ) -> ResponseEnvelope:
        if self._has_products(product_result):
            return ResponseEnvelope(
                message=product_count_message(len(product_result.products)),
                data={"products": self._tool_products(product_result)},
            )
        if policy_result is not None:
            return ResponseEnvelope(message=policy_result.answer, data=None)
        if product_result is not None:
            return ResponseEnvelope(message=product_result.summary, data=None)
        return ResponseEnvelope(message=GENERIC_FAILURE_MESSAGE, data=None)

    def _from_canonical(
        self,
        reply: ParsedReply,
        product_result: Optional[ProductToolResult],
        policy_result: Optional[PolicyToolResult],
    ) -> ResponseEnvelope:
        data = dict(reply.data) if reply.data is not None else None
        if data is not None and isinstance(data.get("products"), list):
            data["products"] = self._with_tool_urls(
                _dict_items(data["products"]),
                product_result,
                strip=False,
            )
        message = reply.message or self._fallback(product_result, policy_result).message
        return ResponseEnvelope(message=message, data=data)

    def _from_reply_without_data(
        self,
        reply: ParsedReply,
        product_result: Optional[ProductToolResult],
        policy_result: Optional[PolicyToolResult],
    ) -> ResponseEnvelope:
        if self._has_products(product_result):
            items = reply.products or []
            products = (
                self._with_tool_urls(items, product_result, strip=True)
                if items
                else self._tool_products(product_result)
            )
            message = reply.message or product_count_message(len(products))
            return ResponseEnvelope(message=message, data={"products": products})
        if policy_result is not None:
            return ResponseEnvelope(message=reply.message or policy_result.answer, data=None)
        if reply.message:
            return ResponseEnvelope(message=reply.message, data=None)
        return self._fallback(product_result, policy_result)

    def assemble(
        self,
        llm_text: Optional[str],
        product_result: Optional[ProductToolResult] = None,
        policy_result: Optional[PolicyToolResult] = None,
    ) -> ResponseEnvelope:
        try:
            reply = parse_llm_reply(llm_text)
            if reply is None:
                logger.warning("LLM reply empty or unparsable; building response from tool results")
                return self._fallback(product_result, policy_result)
            logger.debug(f"LLM reply kind={reply.kind.value}")
            if reply.kind == ReplyKind.canonical:
                return self._from_canonical(reply, product_result, policy_result)
            return self._from_reply_without_data(reply, product_result, policy_result)
        except Exception as exc:
            logger.warning(f"Response assembly failed, using generic message: {exc!r}")
            return ResponseEnvelope(message=GENERIC_FAILURE_MESSAGE, data=None)

    def assemble_json(
        self,
        llm_text: Optional[str],
        product_result: Optional[ProductToolResult] = None,
        policy_result: Optional[PolicyToolResult] = None,
    ) -> str:
        return self.assemble(llm_text, product_result, policy_result).model_dump_json()

    @staticmethod
    def with_unavailable_notes(
        envelope: ResponseEnvelope,
        failures: Sequence[ToolFailure],
    ) -> ResponseEnvelope:
        notes = []
        for failure in failures:
            if failure.note and failure.note not in notes:
                notes.append(failure.note)
        if not notes:
            return envelope
        message = "\n\n".join([envelope.message, *notes]) if envelope.message else "\n\n".join(notes)
        return envelope.model_copy(update={"message": message})


response_assembler = ResponseAssembler()
