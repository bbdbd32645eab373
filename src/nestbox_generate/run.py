# run.py
# Entry point. Config and wiring only; no generation logic lives here.
#
#   nestbox-generate doc-proc -f instructions.md -o ./out
#   nestbox-generate report-composer -f instructions.md -o ./out

import logging
from pathlib import Path

import typer
from dotenv import load_dotenv
from rich.logging import RichHandler

from nestbox_generate import display
from nestbox_generate.config import ConfigError, make_adapter, resolve_settings
from nestbox_generate.context import GuidanceLoadError
from nestbox_generate.jobs import DOC_PROC, REPORT_COMPOSER, JobSpec, build_harness
from nestbox_generate.models import SynthesisResult
from nestbox_generate.provider import ProviderTransportError

app = typer.Typer(
    help="Generate validated Nestbox configuration files from an instructions file.",
    no_args_is_help=True,
)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log harness diagnostics."),
) -> None:
    load_dotenv()
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=display.console, show_path=False)],
        )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _read_instructions(path: Path) -> str:
    if not path.is_file():
        raise ConfigError(f"Instructions file not found: {path}")
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        raise ConfigError("Instructions file is empty.")
    return text


def _write_outputs(job: JobSpec, result: SynthesisResult, output_dir: Path) -> list[tuple[str, str, Path]]:
    """Persist every artifact that has text, valid or not."""
    outputs: list[tuple[str, str, Path]] = []
    for spec in job.artifacts:
        path = output_dir / spec.filename
        artifact = result.artifacts.get(spec.name)
        if artifact is not None and artifact.text.strip():
            path.write_text(artifact.text, encoding="utf-8")
        outputs.append((spec.name, spec.filename, path))
    return outputs


def _generate(
    job: JobSpec,
    file: Path,
    output: Path,
    anthropic_api_key: str | None,
    openai_api_key: str | None,
    model: str | None,
    max_iterations: int | None,
    allow_invalid_finish: bool,
) -> None:
    try:
        settings = resolve_settings(
            default_budget=job.default_budget,
            anthropic_api_key=anthropic_api_key,
            openai_api_key=openai_api_key,
            model=model,
            max_iterations=max_iterations,
            allow_invalid_finish=allow_invalid_finish,
        )
        instructions_path = file.resolve()
        instructions = _read_instructions(instructions_path)
    except ConfigError as exc:
        display.error(str(exc))
        raise typer.Exit(code=1) from exc

    output_dir = output.resolve()
    output_dir.mkdir(parents=True, exist_ok=True)

    display.banner(job.title, instructions_path, output_dir, settings.provider_label, settings.model)

    try:
        with display.progress() as on_progress:
            harness = build_harness(
                job,
                make_adapter(settings),
                instructions,
                budget=settings.max_iterations,
                finish_policy=settings.finish_policy,
                on_progress=on_progress,
            )
            result = harness.run()
    except (GuidanceLoadError, ProviderTransportError) as exc:
        display.error(str(exc))
        raise typer.Exit(code=1) from exc

    outputs = _write_outputs(job, result, output_dir)
    display.results(result, outputs)

    if not result.succeeded:
        display.warning("one or more files were not generated or have validation issues.")
        raise typer.Exit(code=1)

    display.done()


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

FILE_OPTION = typer.Option(..., "--file", "-f", help="Path to the instructions Markdown file.")
OUTPUT_OPTION = typer.Option(..., "--output", "-o", help="Output directory for the generated files.")
ANTHROPIC_OPTION = typer.Option(
    None, "--anthropic-api-key", help="Anthropic API key (or set ANTHROPIC_API_KEY)."
)
OPENAI_OPTION = typer.Option(None, "--openai-api-key", help="OpenAI API key (or set OPENAI_API_KEY).")
MODEL_OPTION = typer.Option(
    None, "--model", help="Model ID (defaults to claude-sonnet-4-6 for Anthropic, gpt-4o for OpenAI)."
)
ALLOW_INVALID_OPTION = typer.Option(
    False,
    "--allow-invalid-finish",
    help="Let the model finish before every file validates.",
)


@app.command("doc-proc")
def doc_proc(
    file: Path = FILE_OPTION,
    output: Path = OUTPUT_OPTION,
    anthropic_api_key: str | None = ANTHROPIC_OPTION,
    openai_api_key: str | None = OPENAI_OPTION,
    model: str | None = MODEL_OPTION,
    max_iterations: int = typer.Option(
        DOC_PROC.default_budget, "--max-iterations", help="Maximum agent iterations."
    ),
    allow_invalid_finish: bool = ALLOW_INVALID_OPTION,
) -> None:
    """Generate a document pipeline config.yaml and eval.yaml."""
    _generate(
        DOC_PROC,
        file,
        output,
        anthropic_api_key,
        openai_api_key,
        model,
        max_iterations,
        allow_invalid_finish,
    )


@app.command("report-composer")
def report_composer(
    file: Path = FILE_OPTION,
    output: Path = OUTPUT_OPTION,
    anthropic_api_key: str | None = ANTHROPIC_OPTION,
    openai_api_key: str | None = OPENAI_OPTION,
    model: str | None = MODEL_OPTION,
    max_iterations: int = typer.Option(
        REPORT_COMPOSER.default_budget, "--max-iterations", help="Maximum agent iterations."
    ),
    allow_invalid_finish: bool = ALLOW_INVALID_OPTION,
) -> None:
    """Generate a report composer report.yaml."""
    _generate(
        REPORT_COMPOSER,
        file,
        output,
        anthropic_api_key,
        openai_api_key,
        model,
        max_iterations,
        allow_invalid_finish,
    )


if __name__ == "__main__":
    app()
