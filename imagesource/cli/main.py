#!/usr/bin/env python
"""Command line interface for imagesource."""

import logging

import typer
from rich.console import Console
from rich.logging import RichHandler

from imagesource.cli.commands import decode, normalize, resolve
from imagesource.options import ResolverConfig

app = typer.Typer(help="Inspect and resolve image sources")
console = Console()

# Add command groups
app.add_typer(decode.app, name="decode")
app.add_typer(normalize.app, name="normalize")
app.add_typer(resolve.app, name="resolve")


@app.callback()
def callback(
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug logging (or set IMAGESOURCE_DEBUG=1)"
    ),
):
    """Decode embedded image data, normalize sources and resolve them."""
    if verbose or ResolverConfig.from_env().debug:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
        )


def main():
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
