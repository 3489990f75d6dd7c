"""Cache map model, Dockerfile discovery and resolution."""

from .dockerfile_scanner import CacheMountDeclaration, DockerfileCacheScanner
from .options import (
    BareTarget,
    CacheMap,
    CacheOptions,
    MountOptions,
    parse_cache_options,
)
from .resolver import DISCOVERED_TARGET, CacheMapResolver, resolve_cache_map

__all__ = [
    "BareTarget",
    "CacheMap",
    "CacheMapResolver",
    "CacheMountDeclaration",
    "CacheOptions",
    "DISCOVERED_TARGET",
    "DockerfileCacheScanner",
    "MountOptions",
    "parse_cache_options",
    "resolve_cache_map",
]
