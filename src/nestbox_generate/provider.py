# provider.py
# Backend-neutral contract every language-model adapter implements.
#
# An adapter owns all of its backend's quirks: request shape, how a
# mandatory tool call is requested, how multi-call turns are encoded and
# how results are correlated. The harness only ever sees ProviderTurn.

from abc import ABC, abstractmethod

from nestbox_generate.context import AssembledContext
from nestbox_generate.models import Message, ProviderTurn, ToolSpec


class ProviderTransportError(Exception):
    """Raised when the backend call itself fails. Fatal for the invocation."""


class ProviderAdapter(ABC):
    """Turns (context, tools, history) into one backend call."""

    #: Human-readable backend label used in progress messages.
    label: str = "model"

    def __init__(self, model: str) -> None:
        self.model = model

    @abstractmethod
    def step(
        self,
        context: AssembledContext,
        tools: list[ToolSpec],
        history: list[Message],
    ) -> ProviderTurn:
        """
        Perform exactly one backend call.

        Must require a tool call on every turn. A reply without one is
        reported as `stopped=True`, never raised. Tool calls keep their
        order and backend request ids.
        """
