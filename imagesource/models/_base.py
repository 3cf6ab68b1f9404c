"""Base class for the ``--json`` report models."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict

from ..options import ResolverConfig

EXTRA_MODES = frozenset({"allow", "forbid", "ignore"})


def report_extra_mode(config: Optional[ResolverConfig] = None) -> str:
    """``extra`` policy for reports, from ``IMAGESOURCE_REPORT_EXTRA``.

    Anything but allow/forbid/ignore falls back to ``forbid``.
    """
    mode = (config or ResolverConfig.from_env()).report_extra.strip().lower()
    return mode if mode in EXTRA_MODES else "forbid"


class ReportModel(BaseModel):
    # Fixed at import time
    model_config = ConfigDict(extra=report_extra_mode())
