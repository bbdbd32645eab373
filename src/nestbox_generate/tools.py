# tools.py
# Tool registry: the actions a model may invoke during a session.
#
# The lookup table is built once per session from the job's artifact
# specs. Names the model invents fall through to an "unknown" result
# string; dispatch never raises on model input.

from dataclasses import dataclass
from enum import Enum
from typing import Any

from nestbox_generate.models import (
    ArtifactSpec,
    FinishPolicy,
    Session,
    ToolParameter,
    ToolSpec,
)
from nestbox_generate.validation import validate

CONTENT_PARAM = "yaml_content"
SUMMARY_PARAM = "summary"
FINISH_TOOL = "finish"

VALID_MARKER = "VALID"
FINISHED_MARKER = "Done."
ERRORS_HEADER = "VALIDATION ERRORS - fix all of these before calling again:"


class ToolKind(str, Enum):
    WRITE = "write"
    FINISH = "finish"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class _Route:
    kind: ToolKind
    artifact: str | None = None


_UNKNOWN = _Route(ToolKind.UNKNOWN)


def format_errors(errors: list[str]) -> str:
    bullets = "\n".join(f"  • {e}" for e in errors)
    return f"{ERRORS_HEADER}\n{bullets}"


class ToolRegistry:
    """
    Fixed set of tools for one session.

    One write-and-validate tool per artifact plus a terminal `finish`.
    Handlers mutate only the Session passed in at construction.
    """

    def __init__(
        self,
        session: Session,
        specs: list[ArtifactSpec],
        finish_description: str,
        finish_policy: FinishPolicy = FinishPolicy.REQUIRE_VALID,
    ) -> None:
        self._session = session
        self._finish_policy = finish_policy
        self._specs: list[ToolSpec] = []
        self._routes: dict[str, _Route] = {}

        for spec in specs:
            self._register(
                ToolSpec(
                    name=spec.tool_name,
                    description=spec.tool_description,
                    parameters=[
                        ToolParameter(
                            name=CONTENT_PARAM,
                            description=f"The complete YAML content for {spec.filename}",
                        )
                    ],
                ),
                _Route(ToolKind.WRITE, spec.name),
            )
        self._register(
            ToolSpec(
                name=FINISH_TOOL,
                description=finish_description,
                parameters=[
                    ToolParameter(
                        name=SUMMARY_PARAM,
                        description="Brief summary of what was generated and why key choices were made",
                    )
                ],
            ),
            _Route(ToolKind.FINISH),
        )
        self._write_tools = [s.tool_name for s in specs]

    def _register(self, spec: ToolSpec, route: _Route) -> None:
        if spec.name in self._routes:
            raise ValueError(f"Duplicate tool name: {spec.name!r}")
        self._specs.append(spec)
        self._routes[spec.name] = route

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def definitions(self) -> list[ToolSpec]:
        """Tool definitions in registration order. Same for every backend."""
        return list(self._specs)

    @property
    def finish_policy(self) -> FinishPolicy:
        return self._finish_policy

    def kind_of(self, name: str) -> ToolKind:
        return self._routes.get(name, _UNKNOWN).kind

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def invoke(self, name: str, args: dict[str, Any]) -> str:
        route = self._routes.get(name, _UNKNOWN)
        if route.kind is ToolKind.WRITE:
            return self._write_and_validate(route.artifact, args)
        if route.kind is ToolKind.FINISH:
            return self._finish(args)
        return f"Unknown tool: {name}"

    def _write_and_validate(self, artifact_name: str, args: dict[str, Any]) -> str:
        content = args.get(CONTENT_PARAM, "")
        if not isinstance(content, str):
            content = str(content)

        artifact = self._session.artifacts[artifact_name]
        artifact.text = content
        result = validate(content, artifact.schema_text)
        artifact.valid = result.valid

        if result.valid:
            return VALID_MARKER
        return format_errors(result.errors)

    def _finish(self, args: dict[str, Any]) -> str:
        session = self._session
        if self._finish_policy is FinishPolicy.REQUIRE_VALID and not session.required_valid():
            tools = " and ".join(self._write_tools)
            return (
                "Cannot finish: not all files have passed validation yet. "
                f"Call {tools} first and ensure each returns \"{VALID_MARKER}\"."
            )

        summary = args.get(SUMMARY_PARAM)
        session.summary = summary if isinstance(summary, str) else None
        session.finished = True
        return FINISHED_MARKER
