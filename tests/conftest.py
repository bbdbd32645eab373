import pytest

from nestbox_generate.models import ContentBlock, Message, ProviderTurn, ToolCall
from nestbox_generate.provider import ProviderAdapter

NAME_SCHEMA = """\
type: object
required: [name]
properties:
  name:
    type: string
"""


class ScriptedAdapter(ProviderAdapter):
    """Replays canned turns and records the history seen on each call."""

    label = "Scripted"

    def __init__(self, turns: list[ProviderTurn]) -> None:
        super().__init__("scripted-model")
        self._turns = list(turns)
        self.calls: list[list[Message]] = []
        self.tools_seen: list[list[str]] = []

    def step(self, context, tools, history):
        self.calls.append(list(history))
        self.tools_seen.append([t.name for t in tools])
        if not self._turns:
            raise AssertionError("ScriptedAdapter ran out of turns")
        return self._turns.pop(0)


def _tool_turn(*calls: tuple[str, str, dict]) -> ProviderTurn:
    """Build a tool-calling turn from (id, name, input) triples."""
    tool_calls = [ToolCall(id=i, name=n, input=args) for i, n, args in calls]
    return ProviderTurn(
        message=Message(
            role="assistant",
            content=[ContentBlock.of_tool_call(c) for c in tool_calls],
        ),
        tool_calls=tool_calls,
        stop_reason="tool_use",
    )


def _stop_turn(reason: str = "end_turn") -> ProviderTurn:
    return ProviderTurn(
        message=Message(role="assistant", content=[ContentBlock.of_text("All done.")]),
        stopped=True,
        stop_reason=reason,
    )


@pytest.fixture
def name_schema() -> str:
    return NAME_SCHEMA


@pytest.fixture
def scripted_adapter():
    return ScriptedAdapter


@pytest.fixture
def tool_turn():
    return _tool_turn


@pytest.fixture
def stop_turn():
    return _stop_turn
