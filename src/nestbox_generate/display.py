# display.py
# All terminal output for the generator CLI.
#
# This module owns presentation entirely. run.py never formats strings:
# it calls named functions here. The harness never prints at all; its
# progress messages reach the spinner through a callback.
#
# Colour language:
#   cyan: banner / routing events
#   green: valid / done
#   yellow: invalid artifacts, warnings
#   red: missing artifacts, fatal errors
#   dim: secondary detail

from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from nestbox_generate.models import ArtifactSnapshot, SessionState, SynthesisResult

console = Console()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _label(tag: str, color: str) -> Text:
    t = Text()
    t.append(f" {tag} ", style=f"bold white on {color}")
    return t


def _status(artifact: ArtifactSnapshot | None, path: Path) -> tuple[str, str]:
    if artifact is None or not artifact.text.strip():
        return "[bold red]✗ not generated[/bold red]", ""
    if artifact.valid:
        return "[bold green]✓ valid[/bold green]", escape(str(path))
    return "[bold yellow]⚠ invalid[/bold yellow]", escape(str(path))


_STATE_NOTES = {
    SessionState.FINISHED: "[green]finished[/green]",
    SessionState.EXHAUSTED: "[yellow]iteration budget exhausted[/yellow]",
    SessionState.STOPPED_EARLY: "[yellow]model stopped without calling a tool[/yellow]",
}


# ---------------------------------------------------------------------------
# Run lifecycle
# ---------------------------------------------------------------------------


def banner(title: str, instructions: Path, output_dir: Path, provider: str, model: str) -> None:
    console.print()
    console.print(
        Panel.fit(
            f"[bold cyan]Nestbox — {escape(title)}[/bold cyan]\n\n"
            f"[dim]Instructions:[/dim] [white]{escape(str(instructions))}[/white]\n"
            f"[dim]Output      :[/dim] [white]{escape(str(output_dir))}[/white]\n"
            f"[dim]Provider    :[/dim] [white]{escape(provider)}[/white]\n"
            f"[dim]Model       :[/dim] [white]{escape(model)}[/white]",
            border_style="cyan",
            padding=(1, 4),
        )
    )


@contextmanager
def progress() -> Iterator[Callable[[str], None]]:
    """Spinner whose text tracks the harness's progress messages."""
    with console.status("[cyan]Initialising agent...[/cyan]", spinner="dots") as status:

        def update(message: str) -> None:
            status.update(f"[cyan]{escape(message)}[/cyan]")

        yield update


def results(
    result: SynthesisResult,
    outputs: list[tuple[str, str, Path]],
) -> None:
    """
    Per-artifact summary table.

    `outputs` holds (artifact name, filename, written path) in job order.
    """
    console.print()
    table = Table(
        box=box.SIMPLE_HEAVY,
        border_style="dim",
        show_header=True,
        header_style="bold dim",
        padding=(0, 1),
    )
    table.add_column("File", style="bold white", width=14)
    table.add_column("Status", width=18)
    table.add_column("Path", style="dim white")

    for name, filename, path in outputs:
        status, shown = _status(result.artifacts.get(name), path)
        table.add_row(filename, status, shown)

    console.print(
        Panel(
            table,
            title="[bold]Results[/bold]",
            subtitle=f"[dim]{_STATE_NOTES.get(result.state, result.state.value)}[/dim]",
            border_style="dim",
            padding=(0, 1),
        )
    )
    console.print(f"[dim]  Completed in {result.iterations} iteration(s).[/dim]")
    if result.summary:
        console.print(f"[dim]  Summary: {escape(result.summary)}[/dim]")


def warning(message: str) -> None:
    console.print()
    console.print(f"[yellow]Warning: {escape(message)}[/yellow]")


def done() -> None:
    console.print()
    console.print(_label("DONE", "green"))
    console.print()


def error(message: str) -> None:
    console.print()
    console.print(
        Panel(
            f"[bold white]Error: {escape(message)}[/bold white]",
            title=_label("ERROR", "red"),
            border_style="red",
            padding=(0, 2),
        )
    )
