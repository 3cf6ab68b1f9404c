"""Decode command: show what an embedded-data string decodes to."""

import typer
from rich.console import Console
from rich.table import Table

from imagesource.decoding import decode
from imagesource.exceptions import PayloadDecodeError
from imagesource.models import PayloadReport

app = typer.Typer(help="Decode embedded image data")
console = Console()


@app.callback(invoke_without_command=True)
def main(
    text: str = typer.Argument(..., help="base64, hex or data: string"),
    as_json: bool = typer.Option(False, "--json", help="Print a JSON report"),
):
    """Decode TEXT as embedded image data."""
    try:
        payload = decode(text)
    except PayloadDecodeError as e:
        console.print(f"[bold red]Error:[/bold red] {str(e)}")
        raise typer.Exit(1)

    if payload is None:
        console.print("[yellow]Not embedded data[/yellow]")
        raise typer.Exit(1)

    report = PayloadReport.from_payload(payload)
    if as_json:
        typer.echo(report.model_dump_json(indent=2))
        return

    table = Table("Field", "Value")
    table.add_row("MIME hint", report.mime_type or "-")
    table.add_row("Sniffed MIME", report.sniffed_mime or "-")
    table.add_row("Length", str(report.length))
    table.add_row("Leading bytes", report.preview_hex)
    console.print(table)
