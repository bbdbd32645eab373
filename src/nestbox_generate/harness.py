# harness.py
# Tool-validated artifact synthesis loop.
#
# The harness is the kernel. The model is a passive responder: this class
# owns the session, drives every turn, dispatches each requested tool
# call against the registry and decides when to stop.
#
# Control flow per iteration:
#   adapter.step(context, tools, history) → append assistant turn
#   → stopped? end early → dispatch tool calls in order
#   → append one result per call → finished? end
#
# Terminal states: FINISHED, EXHAUSTED, STOPPED_EARLY. None of them
# raises; only load and transport errors propagate to the caller.

import logging
from typing import Callable

from nestbox_generate.context import AssembledContext
from nestbox_generate.models import (
    Artifact,
    ArtifactSnapshot,
    ArtifactSpec,
    ContentBlock,
    FinishPolicy,
    Message,
    Session,
    SessionState,
    SynthesisResult,
    ToolCall,
)
from nestbox_generate.provider import ProviderAdapter
from nestbox_generate.tools import VALID_MARKER, ToolKind, ToolRegistry

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], None]


def _ignore_progress(_message: str) -> None:
    return None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _result_headline(result: str) -> str:
    """Single-line digest of a tool result for progress output."""
    if result == VALID_MARKER:
        return "✓ valid"
    return result.split("\n", 1)[0]


def _snapshot(session: Session) -> dict[str, ArtifactSnapshot]:
    return {
        name: ArtifactSnapshot(
            name=name,
            text=artifact.text,
            valid=artifact.valid,
            required=artifact.required,
        )
        for name, artifact in session.artifacts.items()
    }


# ---------------------------------------------------------------------------
# Harness
# ---------------------------------------------------------------------------


class SynthesisHarness:
    """
    Runs one synthesis session to a terminal state.

    Example:
        harness = SynthesisHarness(
            adapter=AnthropicAdapter(api_key=key),
            context=context,
            artifacts=[(spec, schema_text)],
            kickoff="Generate the report.yaml file now.",
            finish_description="Signal that report.yaml is complete.",
            budget=5,
        )
        result = harness.run()
    """

    def __init__(
        self,
        adapter: ProviderAdapter,
        context: AssembledContext,
        artifacts: list[tuple[ArtifactSpec, str]],
        kickoff: str,
        finish_description: str,
        budget: int,
        finish_policy: FinishPolicy = FinishPolicy.REQUIRE_VALID,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        if budget < 1:
            raise ValueError(f"Iteration budget must be at least 1, got {budget}.")

        self._adapter = adapter
        self._context = context
        self._progress = on_progress or _ignore_progress

        self.session = Session(
            budget=budget,
            artifacts={
                spec.name: Artifact(name=spec.name, schema_text=schema, required=spec.required)
                for spec, schema in artifacts
            },
            history=[Message(role="user", content=[ContentBlock.of_text(kickoff)])],
        )
        self.registry = ToolRegistry(
            self.session,
            [spec for spec, _ in artifacts],
            finish_description=finish_description,
            finish_policy=finish_policy,
        )
        self._stop_reason: str | None = None

        if finish_policy is FinishPolicy.ALLOW_INVALID:
            logger.warning("finish is permitted before all artifacts validate")

    # ------------------------------------------------------------------
    # Turn processing
    # ------------------------------------------------------------------

    def _dispatch(self, calls: list[ToolCall]) -> bool:
        """
        Service tool calls in request order.

        Returns True once a finish call has set the terminal flag; any
        calls after it in the same turn are not serviced.
        """
        session = self.session
        for call in calls:
            self._progress(f"  → tool: {call.name}")
            result = self.registry.invoke(call.name, call.input)
            self._progress(f"    {_result_headline(result)}")
            logger.debug("tool %s (%s) -> %s", call.name, call.id, _result_headline(result))

            session.history.append(
                Message(role="tool", content=[ContentBlock.of_tool_result(call.id, result)])
            )

            if self.registry.kind_of(call.name) is ToolKind.FINISH and session.finished:
                return True
        return False

    def _turn(self) -> None:
        session = self.session
        session.iteration += 1
        self._progress(
            f"Iteration {session.iteration}/{session.budget} - calling {self._adapter.label}..."
        )

        turn = self._adapter.step(self._context, self.registry.definitions, session.history)
        session.history.append(turn.message)

        if turn.stopped:
            self._stop_reason = turn.stop_reason
            session.state = SessionState.STOPPED_EARLY
            self._progress(f"Agent stopped unexpectedly: {turn.stop_reason}")
            return

        if self._dispatch(turn.tool_calls):
            session.state = SessionState.FINISHED

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def run(self) -> SynthesisResult:
        """
        Drive the session until finished, stopped, or out of budget.

        Always returns a result; artifacts that were never written come
        back with empty text and `valid=False`.
        """
        session = self.session
        self._progress("Starting agent...")

        while session.state is SessionState.RUNNING and session.iteration < session.budget:
            self._turn()

        if session.state is SessionState.RUNNING:
            session.state = SessionState.EXHAUSTED
            self._progress(
                f"Warning: reached max iterations ({session.budget}) without finishing."
            )

        logger.debug("session ended: state=%s iterations=%d", session.state.value, session.iteration)
        return SynthesisResult(
            state=session.state,
            iterations=session.iteration,
            artifacts=_snapshot(session),
            summary=session.summary,
            stop_reason=self._stop_reason,
        )
