# openai_adapter.py
# Provider adapter for the OpenAI Chat Completions API.
#
# The whole context is sent as the system message with guidance first;
# OpenAI caches long identical prompt prefixes automatically, so no
# explicit marker is needed. `tool_choice: required` forces a tool call.

import json
import logging
from typing import Any

import openai
from openai import OpenAI

from nestbox_generate.context import AssembledContext
from nestbox_generate.models import ContentBlock, Message, ProviderTurn, ToolCall, ToolSpec
from nestbox_generate.provider import ProviderAdapter, ProviderTransportError

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o"
TOOL_CALLS_FINISH_REASON = "tool_calls"


# ---------------------------------------------------------------------------
# Request translation
# ---------------------------------------------------------------------------


def build_tools(tools: list[ToolSpec]) -> list[dict[str, Any]]:
    return [
        {
            "type": "function",
            "function": {
                "name": tool.name,
                "description": tool.description,
                "parameters": tool.input_schema(),
            },
        }
        for tool in tools
    ]


def _assistant_message(message: Message) -> dict[str, Any]:
    text = "".join(b.text for b in message.content if b.type == "text")
    payload: dict[str, Any] = {"role": "assistant", "content": text or None}
    calls = message.tool_calls
    if calls:
        payload["tool_calls"] = [
            {
                "id": call.id,
                "type": "function",
                "function": {"name": call.name, "arguments": json.dumps(call.input)},
            }
            for call in calls
        ]
    return payload


def build_messages(context: AssembledContext, history: list[Message]) -> list[dict[str, Any]]:
    messages: list[dict[str, Any]] = [{"role": "system", "content": context.text}]
    for message in history:
        if message.role == "assistant":
            messages.append(_assistant_message(message))
        elif message.role == "tool":
            for block in message.content:
                if block.type == "tool_result":
                    messages.append(
                        {
                            "role": "tool",
                            "tool_call_id": block.tool_call_id,
                            "content": block.text,
                        }
                    )
        else:
            text = "\n\n".join(b.text for b in message.content if b.type == "text")
            messages.append({"role": "user", "content": text})
    return messages


# ---------------------------------------------------------------------------
# Response translation
# ---------------------------------------------------------------------------


def parse_arguments(raw: str | None) -> dict[str, Any]:
    """
    Decode a function-call argument string.

    Malformed or non-object JSON yields an empty dict; the tool then
    reports the missing parameter back to the model instead of crashing.
    """
    if not raw:
        return {}
    try:
        value = json.loads(raw, strict=False)
    except json.JSONDecodeError as exc:
        logger.warning("Discarding malformed tool arguments: %s", exc)
        return {}
    return value if isinstance(value, dict) else {}


def parse_response(response: Any) -> ProviderTurn:
    choice = response.choices[0]
    raw = choice.message

    content: list[ContentBlock] = []
    if raw.content:
        content.append(ContentBlock.of_text(raw.content))

    calls: list[ToolCall] = []
    for tool_call in raw.tool_calls or []:
        call = ToolCall(
            id=tool_call.id,
            name=tool_call.function.name,
            input=parse_arguments(tool_call.function.arguments),
        )
        calls.append(call)
        content.append(ContentBlock.of_tool_call(call))

    message = Message(role="assistant", content=content)
    finish_reason = choice.finish_reason
    if finish_reason != TOOL_CALLS_FINISH_REASON or not calls:
        return ProviderTurn(message=message, stopped=True, stop_reason=finish_reason)
    return ProviderTurn(message=message, tool_calls=calls, stop_reason=finish_reason)


# ---------------------------------------------------------------------------
# Adapter
# ---------------------------------------------------------------------------


class OpenAIAdapter(ProviderAdapter):
    label = "OpenAI"

    def __init__(
        self,
        api_key: str | None,
        model: str = DEFAULT_MODEL,
        client: OpenAI | None = None,
    ) -> None:
        super().__init__(model)
        self._client = client or OpenAI(api_key=api_key)

    def step(
        self,
        context: AssembledContext,
        tools: list[ToolSpec],
        history: list[Message],
    ) -> ProviderTurn:
        try:
            response = self._client.chat.completions.create(
                model=self.model,
                messages=build_messages(context, history),
                tools=build_tools(tools),
                tool_choice="required",
            )
        except openai.OpenAIError as exc:
            raise ProviderTransportError(f"OpenAI request failed: {exc}") from exc

        return parse_response(response)
