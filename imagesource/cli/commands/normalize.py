"""Normalize command: show how a source value is classified."""

import typer
from rich.console import Console

from imagesource.exceptions import ImageSourceError
from imagesource.models import SourceReport
from imagesource.normalizer import SourceNormalizer
from imagesource.options import DEFAULT_APP_ROOT

app = typer.Typer(help="Normalize a source value")
console = Console()


@app.callback(invoke_without_command=True)
def main(
    text: str = typer.Argument(..., help="Source text"),
    app_root: str = typer.Option(
        DEFAULT_APP_ROOT, help="Root that relative sources are rewritten under"
    ),
    as_json: bool = typer.Option(False, "--json", help="Print a JSON report"),
):
    """Classify TEXT as embedded data or a URI."""
    try:
        source = SourceNormalizer(app_root=app_root).normalize(text)
    except ImageSourceError as e:
        console.print(f"[bold red]Error:[/bold red] {str(e)}")
        raise typer.Exit(1)

    report = SourceReport.from_source(source)
    if as_json:
        typer.echo(report.model_dump_json(indent=2))
        return

    console.print(f"Kind: [bold]{report.kind}[/bold]")
    if report.reference:
        console.print(f"Reference: {report.reference}")
    if report.payload:
        console.print(f"Bytes: {report.payload.length}")
        mime = report.payload.mime_type or report.payload.sniffed_mime
        console.print(f"MIME: {mime or '-'}")
