# jobs.py
# The generation jobs the CLI exposes, and the wiring that turns one into
# a ready-to-run harness.
#
# Each job names its guidance texts, its artifacts and their schemas. All
# resources are read here, once, before the loop starts.

from pathlib import Path

from pydantic import BaseModel, Field

from nestbox_generate.context import AssembledContext, assemble_context, read_resource
from nestbox_generate.harness import ProgressCallback, SynthesisHarness
from nestbox_generate.models import ArtifactSpec, FinishPolicy
from nestbox_generate.provider import ProviderAdapter

RESOURCES_DIR = Path(__file__).parent / "resources"


class GuidanceSource(BaseModel):
    """A guidance file. Files with a heading are embedded as a fenced YAML example."""

    filename: str
    heading: str | None = None


class JobSpec(BaseModel):
    name: str
    title: str
    resource_dir: str
    guidance: list[GuidanceSource]
    artifacts: list[ArtifactSpec] = Field(..., min_length=1)
    subject: str = Field(..., description="What the instructions describe, e.g. 'pipeline'.")
    finish_description: str
    default_budget: int = Field(..., ge=1)

    @property
    def resource_path(self) -> Path:
        return RESOURCES_DIR / self.resource_dir

    def kickoff(self) -> str:
        files = " and ".join(a.filename for a in self.artifacts)
        noun = "file" if len(self.artifacts) == 1 else "files"
        return (
            f"The instructions for the {self.subject} you need to configure follow the "
            f"guidance in the system prompt.\n\n"
            f"Generate the {files} {noun} now. Use the tools to write and validate them."
        )


def _write_tool_description(filename: str) -> str:
    return (
        f"Write the {filename} content and validate it against the schema. "
        'Returns "VALID" on success or a list of validation errors to fix.'
    )


DOC_PROC = JobSpec(
    name="doc-proc",
    title="Document Pipeline Generator",
    resource_dir="doc_proc",
    guidance=[
        GuidanceSource(filename="SYSTEM_PROMPT.md"),
        GuidanceSource(filename="CONFIG_GUIDE.md"),
        GuidanceSource(filename="EVAL_GUIDE.md"),
    ],
    artifacts=[
        ArtifactSpec(
            name="config",
            filename="config.yaml",
            tool_name="write_and_validate_config",
            tool_description=_write_tool_description("config.yaml"),
            schema_resource="config.schema.yaml",
        ),
        ArtifactSpec(
            name="eval",
            filename="eval.yaml",
            tool_name="write_and_validate_eval",
            tool_description=_write_tool_description("eval.yaml"),
            schema_resource="eval-test-cases.schema.yaml",
        ),
    ],
    subject="pipeline",
    finish_description=(
        "Signal that both files are complete and valid. Call this only after both "
        'write_and_validate_config and write_and_validate_eval have returned "VALID".'
    ),
    default_budget=8,
)

REPORT_COMPOSER = JobSpec(
    name="report-composer",
    title="Report Composer Generator",
    resource_dir="report_composer",
    guidance=[
        GuidanceSource(filename="SYSTEM_PROMPT.md"),
        GuidanceSource(filename="REPORT_CONFIG_GUIDE.md"),
        GuidanceSource(
            filename="annual_report_10k.yaml",
            heading="Example 1: Annual Report / 10-K Analysis",
        ),
        GuidanceSource(
            filename="vc_portfolio_monitoring.yaml",
            heading="Example 2: VC Portfolio Monitoring",
        ),
    ],
    artifacts=[
        ArtifactSpec(
            name="report",
            filename="report.yaml",
            tool_name="write_and_validate_report",
            tool_description=_write_tool_description("report.yaml"),
            schema_resource="report_config.schema.yaml",
        ),
    ],
    subject="report",
    finish_description=(
        "Signal that the report.yaml is complete and valid. Call this only after "
        'write_and_validate_report has returned "VALID".'
    ),
    default_budget=5,
)

JOBS: dict[str, JobSpec] = {job.name: job for job in (DOC_PROC, REPORT_COMPOSER)}


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def load_guidance(job: JobSpec) -> list[str]:
    texts: list[str] = []
    for source in job.guidance:
        text = read_resource(job.resource_path / source.filename)
        if source.heading:
            text = f"# {source.heading}\n\n```yaml\n{text}\n```"
        texts.append(text)
    return texts


def load_schemas(job: JobSpec) -> list[tuple[ArtifactSpec, str]]:
    return [
        (spec, read_resource(job.resource_path / spec.schema_resource))
        for spec in job.artifacts
    ]


def build_context(job: JobSpec, instructions: str) -> AssembledContext:
    return assemble_context(load_guidance(job), instructions)


def build_harness(
    job: JobSpec,
    adapter: ProviderAdapter,
    instructions: str,
    budget: int | None = None,
    finish_policy: FinishPolicy = FinishPolicy.REQUIRE_VALID,
    on_progress: ProgressCallback | None = None,
) -> SynthesisHarness:
    """Load every resource the job needs and return a harness ready to run."""
    return SynthesisHarness(
        adapter=adapter,
        context=build_context(job, instructions),
        artifacts=load_schemas(job),
        kickoff=job.kickoff(),
        finish_description=job.finish_description,
        budget=budget or job.default_budget,
        finish_policy=finish_policy,
        on_progress=on_progress,
    )
