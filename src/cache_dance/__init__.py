"""Save 'RUN --mount=type=cache' caches between CI runs."""

from .cache_map import BareTarget, CacheMap, MountOptions, resolve_cache_map  # noqa: F401
from .config import DanceConfig  # noqa: F401
from .diagnostics import Diagnostics  # noqa: F401
from .exceptions import (  # noqa: F401
    CacheDanceError,
    ConfigError,
    EngineError,
    ParseError,
    SecurityError,
)
from .orchestrator import run_extraction, run_injection  # noqa: F401

__all__ = [
    "BareTarget",
    "CacheDanceError",
    "CacheMap",
    "ConfigError",
    "DanceConfig",
    "Diagnostics",
    "EngineError",
    "MountOptions",
    "ParseError",
    "SecurityError",
    "resolve_cache_map",
    "run_extraction",
    "run_injection",
]
