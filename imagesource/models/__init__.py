"""Public exports for report models."""

from __future__ import annotations

from .reports import PayloadReport, ResolutionReport, SourceReport

__all__ = [
    "PayloadReport",
    "ResolutionReport",
    "SourceReport",
]
