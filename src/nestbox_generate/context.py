# context.py
# Assembles the instructional context sent on every turn of a session.
#
# Guidance texts are loaded once, before the loop starts, and form a
# stable prefix. Adapters that support prompt caching mark that prefix.

from pathlib import Path

from pydantic import BaseModel

GUIDANCE_DELIMITER = "\n\n---\n\n"


class GuidanceLoadError(Exception):
    """Raised when a guidance text or schema cannot be read. Always fatal."""


class AssembledContext(BaseModel):
    """Guidance prefix plus per-invocation instructions."""

    guidance: str
    instructions: str

    @property
    def text(self) -> str:
        if not self.guidance:
            return self.instructions
        return f"{self.guidance}{GUIDANCE_DELIMITER}{self.instructions}"


def read_resource(path: Path) -> str:
    """Read a UTF-8 text resource, failing fast if it is missing."""
    try:
        return path.read_text(encoding="utf-8")
    except OSError as exc:
        raise GuidanceLoadError(f"Unable to load {path}: {exc.strerror or exc}") from exc


def assemble_context(guidance: list[str], instructions: str) -> AssembledContext:
    """Join guidance texts in the given order and attach the instructions verbatim."""
    return AssembledContext(
        guidance=GUIDANCE_DELIMITER.join(guidance),
        instructions=instructions,
    )


def load_context(paths: list[Path], instructions: str) -> AssembledContext:
    return assemble_context([read_resource(p) for p in paths], instructions)
