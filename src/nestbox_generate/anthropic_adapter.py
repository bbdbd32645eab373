# anthropic_adapter.py
# Provider adapter for the Anthropic Messages API.
#
# Guidance goes into the system prompt as its own block marked
# `cache_control: ephemeral`, so iterations 2+ read it from the prompt
# cache. `tool_choice: any` forces a tool call on every turn.

import logging
from typing import Any

import anthropic

from nestbox_generate.context import AssembledContext
from nestbox_generate.models import ContentBlock, Message, ProviderTurn, ToolCall, ToolSpec
from nestbox_generate.provider import ProviderAdapter, ProviderTransportError

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-6"
MAX_TOKENS = 8096
TOOL_USE_STOP_REASON = "tool_use"


# ---------------------------------------------------------------------------
# Request translation
# ---------------------------------------------------------------------------


def build_system(context: AssembledContext) -> list[dict[str, Any]]:
    blocks: list[dict[str, Any]] = []
    if context.guidance:
        blocks.append(
            {
                "type": "text",
                "text": context.guidance,
                "cache_control": {"type": "ephemeral"},
            }
        )
    if context.instructions:
        blocks.append({"type": "text", "text": context.instructions})
    return blocks


def build_tools(tools: list[ToolSpec]) -> list[dict[str, Any]]:
    return [
        {
            "name": tool.name,
            "description": tool.description,
            "input_schema": tool.input_schema(),
        }
        for tool in tools
    ]


def _assistant_blocks(message: Message) -> list[dict[str, Any]]:
    blocks: list[dict[str, Any]] = []
    for block in message.content:
        if block.type == "text" and block.text:
            blocks.append({"type": "text", "text": block.text})
        elif block.type == "tool_call" and block.tool_call:
            blocks.append(
                {
                    "type": "tool_use",
                    "id": block.tool_call.id,
                    "name": block.tool_call.name,
                    "input": block.tool_call.input,
                }
            )
    return blocks


def build_messages(history: list[Message]) -> list[dict[str, Any]]:
    """
    Convert neutral history to Anthropic message params.

    Consecutive tool-result messages collapse into a single user turn,
    since the API expects strict user/assistant alternation.
    """
    messages: list[dict[str, Any]] = []
    pending_results: list[dict[str, Any]] = []

    def flush() -> None:
        if pending_results:
            messages.append({"role": "user", "content": list(pending_results)})
            pending_results.clear()

    for message in history:
        if message.role == "tool":
            for block in message.content:
                if block.type == "tool_result":
                    pending_results.append(
                        {
                            "type": "tool_result",
                            "tool_use_id": block.tool_call_id,
                            "content": block.text,
                        }
                    )
            continue

        flush()
        if message.role == "assistant":
            messages.append({"role": "assistant", "content": _assistant_blocks(message)})
        else:
            text = "\n\n".join(b.text for b in message.content if b.type == "text")
            messages.append({"role": "user", "content": [{"type": "text", "text": text}]})

    flush()
    return messages


# ---------------------------------------------------------------------------
# Response translation
# ---------------------------------------------------------------------------


def parse_response(response: Any) -> ProviderTurn:
    content: list[ContentBlock] = []
    calls: list[ToolCall] = []

    for block in response.content or []:
        if block.type == "text":
            content.append(ContentBlock.of_text(block.text))
        elif block.type == "tool_use":
            call = ToolCall(id=block.id, name=block.name, input=dict(block.input or {}))
            calls.append(call)
            content.append(ContentBlock.of_tool_call(call))

    message = Message(role="assistant", content=content)
    stop_reason = response.stop_reason
    if stop_reason != TOOL_USE_STOP_REASON or not calls:
        return ProviderTurn(message=message, stopped=True, stop_reason=stop_reason)
    return ProviderTurn(message=message, tool_calls=calls, stop_reason=stop_reason)


# ---------------------------------------------------------------------------
# Adapter
# ---------------------------------------------------------------------------


class AnthropicAdapter(ProviderAdapter):
    label = "Claude"

    def __init__(
        self,
        api_key: str | None,
        model: str = DEFAULT_MODEL,
        client: anthropic.Anthropic | None = None,
        max_tokens: int = MAX_TOKENS,
    ) -> None:
        super().__init__(model)
        self._client = client or anthropic.Anthropic(api_key=api_key)
        self._max_tokens = max_tokens

    def step(
        self,
        context: AssembledContext,
        tools: list[ToolSpec],
        history: list[Message],
    ) -> ProviderTurn:
        try:
            response = self._client.messages.create(
                model=self.model,
                max_tokens=self._max_tokens,
                system=build_system(context),
                tools=build_tools(tools),
                tool_choice={"type": "any"},
                messages=build_messages(history),
            )
        except anthropic.APIError as exc:
            raise ProviderTransportError(f"Anthropic request failed: {exc}") from exc

        usage = getattr(response, "usage", None)
        if usage is not None:
            logger.debug(
                "anthropic usage: input=%s cache_read=%s output=%s",
                getattr(usage, "input_tokens", None),
                getattr(usage, "cache_read_input_tokens", None),
                getattr(usage, "output_tokens", None),
            )
        return parse_response(response)
