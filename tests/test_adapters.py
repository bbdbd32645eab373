import json
from types import SimpleNamespace
from unittest.mock import MagicMock

import anthropic
import httpx
import openai
import pytest

from nestbox_generate import anthropic_adapter, openai_adapter
from nestbox_generate.anthropic_adapter import AnthropicAdapter
from nestbox_generate.context import assemble_context
from nestbox_generate.models import ContentBlock, Message, ToolCall, ToolParameter, ToolSpec
from nestbox_generate.openai_adapter import OpenAIAdapter
from nestbox_generate.provider import ProviderTransportError

CONTEXT = assemble_context(["SYSTEM", "GUIDE"], "Extract invoices.")

TOOLS = [
    ToolSpec(
        name="write_and_validate_report",
        description="Write report.yaml",
        parameters=[ToolParameter(name="yaml_content", description="The YAML")],
    ),
    ToolSpec(
        name="finish",
        description="Finish",
        parameters=[ToolParameter(name="summary", description="Summary")],
    ),
]

KICKOFF = Message(role="user", content=[ContentBlock.of_text("Generate report.yaml now.")])


def _history_with_two_calls() -> list[Message]:
    calls = [
        ToolCall(id="t1", name="write_and_validate_report", input={"yaml_content": "a: 1"}),
        ToolCall(id="t2", name="finish", input={"summary": "s"}),
    ]
    return [
        KICKOFF,
        Message(
            role="assistant",
            content=[ContentBlock.of_text("Writing now.")] + [ContentBlock.of_tool_call(c) for c in calls],
        ),
        Message(role="tool", content=[ContentBlock.of_tool_result("t1", "VALID")]),
        Message(role="tool", content=[ContentBlock.of_tool_result("t2", "Done.")]),
    ]


def _request() -> httpx.Request:
    return httpx.Request("POST", "https://api.example.invalid/v1")


# ---------------------------------------------------------------------------
# Anthropic
# ---------------------------------------------------------------------------


def _anthropic_response(blocks, stop_reason="tool_use"):
    return SimpleNamespace(content=blocks, stop_reason=stop_reason, usage=None)


def test_anthropic_request_forces_tool_use_and_caches_guidance():
    client = MagicMock()
    client.messages.create.return_value = _anthropic_response(
        [SimpleNamespace(type="tool_use", id="tu_1", name="finish", input={"summary": "s"})]
    )
    adapter = AnthropicAdapter(api_key="test", model="claude-test", client=client)

    adapter.step(CONTEXT, TOOLS, [KICKOFF])

    kwargs = client.messages.create.call_args.kwargs
    assert kwargs["model"] == "claude-test"
    assert kwargs["max_tokens"] == anthropic_adapter.MAX_TOKENS
    assert kwargs["tool_choice"] == {"type": "any"}
    assert kwargs["system"][0] == {
        "type": "text",
        "text": CONTEXT.guidance,
        "cache_control": {"type": "ephemeral"},
    }
    assert kwargs["system"][1] == {"type": "text", "text": "Extract invoices."}
    assert kwargs["tools"][0] == {
        "name": "write_and_validate_report",
        "description": "Write report.yaml",
        "input_schema": {
            "type": "object",
            "properties": {"yaml_content": {"type": "string", "description": "The YAML"}},
            "required": ["yaml_content"],
        },
    }
    assert kwargs["messages"] == [
        {"role": "user", "content": [{"type": "text", "text": "Generate report.yaml now."}]}
    ]


def test_anthropic_no_cache_block_without_guidance():
    system = anthropic_adapter.build_system(assemble_context([], "only instructions"))
    assert system == [{"type": "text", "text": "only instructions"}]


def test_anthropic_response_keeps_call_order_and_ids():
    client = MagicMock()
    client.messages.create.return_value = _anthropic_response(
        [
            SimpleNamespace(type="text", text="Let me write it."),
            SimpleNamespace(type="tool_use", id="tu_1", name="write_and_validate_report", input={"yaml_content": "a"}),
            SimpleNamespace(type="tool_use", id="tu_2", name="finish", input={"summary": "s"}),
        ]
    )
    adapter = AnthropicAdapter(api_key="test", client=client)

    turn = adapter.step(CONTEXT, TOOLS, [KICKOFF])

    assert turn.stopped is False
    assert [(c.id, c.name) for c in turn.tool_calls] == [
        ("tu_1", "write_and_validate_report"),
        ("tu_2", "finish"),
    ]
    assert turn.message.role == "assistant"
    assert turn.message.content[0].text == "Let me write it."


def test_anthropic_text_only_turn_is_stopped():
    client = MagicMock()
    client.messages.create.return_value = _anthropic_response(
        [SimpleNamespace(type="text", text="I think we are done.")], stop_reason="end_turn"
    )

    turn = AnthropicAdapter(api_key="test", client=client).step(CONTEXT, TOOLS, [KICKOFF])

    assert turn.stopped is True
    assert turn.stop_reason == "end_turn"
    assert turn.tool_calls == []


def test_anthropic_history_groups_tool_results():
    messages = anthropic_adapter.build_messages(_history_with_two_calls())

    assert [m["role"] for m in messages] == ["user", "assistant", "user"]
    assert messages[1]["content"] == [
        {"type": "text", "text": "Writing now."},
        {"type": "tool_use", "id": "t1", "name": "write_and_validate_report", "input": {"yaml_content": "a: 1"}},
        {"type": "tool_use", "id": "t2", "name": "finish", "input": {"summary": "s"}},
    ]
    assert messages[2]["content"] == [
        {"type": "tool_result", "tool_use_id": "t1", "content": "VALID"},
        {"type": "tool_result", "tool_use_id": "t2", "content": "Done."},
    ]


def test_anthropic_transport_error_is_wrapped():
    client = MagicMock()
    client.messages.create.side_effect = anthropic.APIConnectionError(request=_request())

    with pytest.raises(ProviderTransportError, match="Anthropic request failed"):
        AnthropicAdapter(api_key="test", client=client).step(CONTEXT, TOOLS, [KICKOFF])


# ---------------------------------------------------------------------------
# OpenAI
# ---------------------------------------------------------------------------


def _openai_call(call_id, name, arguments):
    return SimpleNamespace(id=call_id, function=SimpleNamespace(name=name, arguments=arguments))


def _openai_response(tool_calls, finish_reason="tool_calls", content=None):
    message = SimpleNamespace(content=content, tool_calls=tool_calls)
    return SimpleNamespace(choices=[SimpleNamespace(finish_reason=finish_reason, message=message)])


def test_openai_request_requires_tool_and_sends_context_as_system():
    client = MagicMock()
    client.chat.completions.create.return_value = _openai_response(
        [_openai_call("call_1", "finish", '{"summary": "s"}')]
    )
    adapter = OpenAIAdapter(api_key="test", model="gpt-test", client=client)

    adapter.step(CONTEXT, TOOLS, [KICKOFF])

    kwargs = client.chat.completions.create.call_args.kwargs
    assert kwargs["model"] == "gpt-test"
    assert kwargs["tool_choice"] == "required"
    assert kwargs["messages"] == [
        {"role": "system", "content": CONTEXT.text},
        {"role": "user", "content": "Generate report.yaml now."},
    ]
    assert kwargs["tools"][1] == {
        "type": "function",
        "function": {
            "name": "finish",
            "description": "Finish",
            "parameters": {
                "type": "object",
                "properties": {"summary": {"type": "string", "description": "Summary"}},
                "required": ["summary"],
            },
        },
    }


def test_openai_response_keeps_call_order_and_ids():
    client = MagicMock()
    client.chat.completions.create.return_value = _openai_response(
        [
            _openai_call("call_a", "write_and_validate_report", json.dumps({"yaml_content": "a: 1"})),
            _openai_call("call_b", "finish", json.dumps({"summary": "s"})),
        ]
    )

    turn = OpenAIAdapter(api_key="test", client=client).step(CONTEXT, TOOLS, [KICKOFF])

    assert turn.stopped is False
    assert [(c.id, c.name, c.input) for c in turn.tool_calls] == [
        ("call_a", "write_and_validate_report", {"yaml_content": "a: 1"}),
        ("call_b", "finish", {"summary": "s"}),
    ]


def test_openai_malformed_arguments_become_empty_input():
    client = MagicMock()
    client.chat.completions.create.return_value = _openai_response(
        [_openai_call("call_a", "write_and_validate_report", "{not json")]
    )

    turn = OpenAIAdapter(api_key="test", client=client).step(CONTEXT, TOOLS, [KICKOFF])

    assert turn.tool_calls[0].input == {}


def test_openai_arguments_allow_literal_newlines():
    assert openai_adapter.parse_arguments('{"yaml_content": "a: 1\nb: 2"}') == {
        "yaml_content": "a: 1\nb: 2"
    }


def test_openai_stop_without_tool_calls():
    client = MagicMock()
    client.chat.completions.create.return_value = _openai_response(
        None, finish_reason="stop", content="Here is your config."
    )

    turn = OpenAIAdapter(api_key="test", client=client).step(CONTEXT, TOOLS, [KICKOFF])

    assert turn.stopped is True
    assert turn.stop_reason == "stop"
    assert turn.message.content[0].text == "Here is your config."


def test_openai_history_round_trip():
    messages = openai_adapter.build_messages(CONTEXT, _history_with_two_calls())

    assert [m["role"] for m in messages] == ["system", "user", "assistant", "tool", "tool"]
    assistant = messages[2]
    assert assistant["content"] == "Writing now."
    assert [c["id"] for c in assistant["tool_calls"]] == ["t1", "t2"]
    assert json.loads(assistant["tool_calls"][0]["function"]["arguments"]) == {"yaml_content": "a: 1"}
    assert messages[3] == {"role": "tool", "tool_call_id": "t1", "content": "VALID"}
    assert messages[4] == {"role": "tool", "tool_call_id": "t2", "content": "Done."}


def test_openai_transport_error_is_wrapped():
    client = MagicMock()
    client.chat.completions.create.side_effect = openai.APIConnectionError(request=_request())

    with pytest.raises(ProviderTransportError, match="OpenAI request failed"):
        OpenAIAdapter(api_key="test", client=client).step(CONTEXT, TOOLS, [KICKOFF])
