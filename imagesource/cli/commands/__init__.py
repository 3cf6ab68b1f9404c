"""Command modules for the imagesource CLI."""

# Import all command modules here for easy access
from imagesource.cli.commands import decode, normalize, resolve

__all__ = ["decode", "normalize", "resolve"]
