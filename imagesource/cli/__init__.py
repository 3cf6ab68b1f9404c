"""Command line interface for imagesource."""
