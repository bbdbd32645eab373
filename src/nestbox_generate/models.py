# models.py
# Data contracts for the artifact synthesis harness.
# No business logic lives here, only schema and validation.

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field


class SessionState(str, Enum):
    RUNNING = "running"
    FINISHED = "finished"
    EXHAUSTED = "exhausted"
    STOPPED_EARLY = "stopped_early"


class FinishPolicy(str, Enum):
    """How strictly the finish tool gates on artifact validity."""

    REQUIRE_VALID = "require_valid"
    ALLOW_INVALID = "allow_invalid"


class ValidationResult(BaseModel):
    """Outcome of validating one document against one schema."""

    valid: bool
    errors: list[str] = Field(default_factory=list)


class ArtifactSpec(BaseModel):
    """Static description of one document a job must produce."""

    name: str = Field(..., description="Short key, e.g. 'config'.")
    filename: str = Field(..., description="Output file name, e.g. 'config.yaml'.")
    tool_name: str = Field(..., description="Name of the write-and-validate tool.")
    tool_description: str
    schema_resource: str = Field(..., description="Schema file inside the job's resources.")
    required: bool = True


class Artifact(BaseModel):
    """Mutable per-session state of one target document."""

    name: str
    schema_text: str = Field(..., description="Raw schema the text must satisfy.")
    text: str = ""
    valid: bool = False
    required: bool = True


class ToolParameter(BaseModel):
    name: str
    description: str
    required: bool = True


class ToolSpec(BaseModel):
    """A callable action offered to the model. Identical across backends."""

    name: str
    description: str
    parameters: list[ToolParameter] = Field(default_factory=list)

    def input_schema(self) -> dict[str, Any]:
        """JSON Schema for the tool input; every parameter is a string."""
        return {
            "type": "object",
            "properties": {
                p.name: {"type": "string", "description": p.description}
                for p in self.parameters
            },
            "required": [p.name for p in self.parameters if p.required],
        }


class ToolCall(BaseModel):
    """A tool invocation requested by the model."""

    id: str
    name: str
    input: dict[str, Any] = Field(default_factory=dict)


class ContentBlock(BaseModel):
    """One block of a message: plain text, a tool call, or a tool result."""

    type: Literal["text", "tool_call", "tool_result"]
    text: str = ""
    tool_call: ToolCall | None = None
    tool_call_id: str | None = None

    @classmethod
    def of_text(cls, text: str) -> "ContentBlock":
        return cls(type="text", text=text)

    @classmethod
    def of_tool_call(cls, call: ToolCall) -> "ContentBlock":
        return cls(type="tool_call", tool_call=call)

    @classmethod
    def of_tool_result(cls, tool_call_id: str, text: str) -> "ContentBlock":
        return cls(type="tool_result", tool_call_id=tool_call_id, text=text)


class Message(BaseModel):
    """One conversation turn, in a backend-neutral shape."""

    role: Literal["user", "assistant", "tool"]
    content: list[ContentBlock] = Field(default_factory=list)

    @property
    def tool_calls(self) -> list[ToolCall]:
        return [b.tool_call for b in self.content if b.type == "tool_call" and b.tool_call]


class ProviderTurn(BaseModel):
    """What a provider adapter returns for a single backend call."""

    message: Message
    tool_calls: list[ToolCall] = Field(default_factory=list)
    stopped: bool = False
    stop_reason: str | None = None


class Session(BaseModel):
    """Owned by exactly one harness run; never persisted."""

    history: list[Message] = Field(default_factory=list)
    artifacts: dict[str, Artifact] = Field(default_factory=dict)
    iteration: int = 0
    budget: int = Field(..., ge=1)
    finished: bool = False
    state: SessionState = SessionState.RUNNING
    summary: str | None = None

    def required_valid(self) -> bool:
        return all(a.valid for a in self.artifacts.values() if a.required)


class ArtifactSnapshot(BaseModel):
    name: str
    text: str
    valid: bool
    required: bool


class SynthesisResult(BaseModel):
    """Read-only outcome handed back to the caller in every terminal state."""

    state: SessionState
    iterations: int
    artifacts: dict[str, ArtifactSnapshot]
    summary: str | None = None
    stop_reason: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.state is SessionState.FINISHED and all(
            a.valid and a.text.strip() for a in self.artifacts.values() if a.required
        )
