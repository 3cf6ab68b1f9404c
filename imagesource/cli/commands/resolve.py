"""Resolve command: run a source through an ImageView and report the outcome."""

import asyncio
import dataclasses
from typing import Dict, List, Optional

import typer
from rich.console import Console
from rich.table import Table

from imagesource.component import ImageView
from imagesource.interfaces import MemoryDisplay, RecordingNotifier
from imagesource.models import ResolutionReport
from imagesource.options import ResolverConfig

app = typer.Typer(help="Resolve a source into image data")
console = Console()

_STATE_STYLE = {
    "Loaded": "green",
    "Failed": "bold red",
    "Loading": "cyan",
    "Unloaded": "yellow",
}


async def resolve_source(source: str, config: ResolverConfig) -> ResolutionReport:
    """Resolve ``source`` with a fresh ImageView and collect what happened."""
    display = MemoryDisplay()
    notifier = RecordingNotifier()
    view = ImageView(config=config, display=display, notifier=notifier)
    errors: List[BaseException] = []
    view.failed.connect(errors.append)

    view.set_source(source)
    await view.wait_idle()

    label = source if len(source) <= 80 else source[:77] + "..."
    return ResolutionReport.build(
        label,
        view.state.value,
        notifier.states,
        image=display.current,
        error=errors[0] if errors else None,
    )


@app.callback(invoke_without_command=True)
def main(
    source: str = typer.Argument(..., help="URL, path or embedded data"),
    cache: bool = typer.Option(False, help="Use the loader's in-memory cache"),
    app_root_dir: Optional[str] = typer.Option(
        None, help="Directory serving relative (application root) sources"
    ),
    timeout: Optional[float] = typer.Option(None, help="HTTP timeout in seconds"),
    as_json: bool = typer.Option(False, "--json", help="Print a JSON report"),
):
    """Resolve SOURCE and print the lifecycle it went through."""
    config = ResolverConfig.from_env()
    overrides: Dict[str, object] = {"cache_enabled": cache}
    if app_root_dir:
        overrides["app_root_dir"] = app_root_dir
    if timeout is not None:
        overrides["http_timeout"] = timeout
    config = dataclasses.replace(config, **overrides)

    report = asyncio.run(resolve_source(source, config))

    if as_json:
        typer.echo(report.model_dump_json(indent=2))
    else:
        table = Table("Step", "State")
        for idx, state in enumerate(report.states, start=1):
            style = _STATE_STYLE.get(state, "")
            table.add_row(str(idx), f"[{style}]{state}[/{style}]" if style else state)
        console.print(table)
        if report.state == "Loaded":
            console.print(
                f"[green]Loaded[/green] {report.kind} {report.mime_type} "
                f"{report.width}x{report.height}"
            )
        elif report.state == "Failed":
            console.print(
                f"[bold red]Error:[/bold red] {report.error_type}: {report.error}"
            )
        else:
            console.print(f"[yellow]{report.state}[/yellow]")

    if report.state == "Failed":
        raise typer.Exit(1)
