"""
Resolver configuration.

Centralizes behavior flags so callers can tune defaults without touching core
logic. ``ResolverConfig.from_env()`` reads ``IMAGESOURCE_*`` variables; any
variable that is unset or unparseable keeps the field default.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from typing import Dict, Mapping, Optional

DEFAULT_APP_ROOT = "app:///"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def _env_flag(raw: Optional[str], default: bool) -> bool:
    if raw is None:
        return default
    val = raw.strip().lower()
    if val in _TRUE:
        return True
    if val in _FALSE:
        return False
    return default


@dataclass(frozen=True)
class ResolverConfig:
    # Relative sources are rewritten under this root
    app_root: str = DEFAULT_APP_ROOT
    # Directory the default loader serves app_root URIs from
    app_root_dir: Optional[str] = None

    cache_enabled: bool = False
    lazy_loading: bool = False

    # Decoder tuning
    trial_buffer_size: int = 1 << 10
    sniff_window: int = 128
    # Run decoding and image construction on a worker thread
    offload_decoding: bool = False

    # Default loader transport
    http_timeout: float = 30.0
    chunk_size: int = 65_536
    # Most recently used images kept when caching is on
    cache_size: int = 128

    debug: bool = False
    # pydantic extra mode for report models: allow | forbid | ignore
    report_extra: str = "forbid"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ResolverConfig":
        env = os.environ if environ is None else environ
        values: Dict[str, object] = {}
        for f in fields(cls):
            raw = env.get(f"IMAGESOURCE_{f.name.upper()}")
            if raw is None:
                continue
            default = f.default
            if isinstance(default, bool):
                values[f.name] = _env_flag(raw, default)
            elif isinstance(default, int):
                try:
                    values[f.name] = int(raw)
                except ValueError:
                    pass
            elif isinstance(default, float):
                try:
                    values[f.name] = float(raw)
                except ValueError:
                    pass
            else:
                values[f.name] = raw.strip() or default
        return cls(**values)  # type: ignore[arg-type]
