"""
Injection and extraction across the whole cache map.

Entries are processed one after another; the build cache and the builder
instance are shared by all of them.
"""

import json
import logging
import time
from typing import List, Optional

from .build.engine import ContainerEngine
from .build.transfer import extract_one, inject_one
from .cache_map.options import CacheMap
from .cache_map.resolver import CacheMapResolver
from .config import DanceConfig
from .diagnostics import Diagnostics, elapsed_seconds

log = logging.getLogger(__name__)


def _resolve(config: DanceConfig, diagnostics: Diagnostics) -> CacheMap:
    resolver = CacheMapResolver(
        cache_root=config.cache_dir,
        dockerfile=config.dockerfile,
        diagnostics=diagnostics,
    )
    return resolver.resolve(config.cache_map)


def _engine_for(
    config: DanceConfig, engine: Optional[ContainerEngine], diagnostics: Diagnostics
) -> ContainerEngine:
    if engine is not None:
        return engine
    return ContainerEngine(builder=config.builder, diagnostics=diagnostics)


def run_injection(
    config: DanceConfig,
    engine: Optional[ContainerEngine] = None,
    diagnostics: Optional[Diagnostics] = None,
) -> List[str]:
    """
    Inject every host cache directory into its cache mount.

    Returns:
        Host directories processed, in cache map order
    """
    diagnostics = diagnostics or config.diagnostics()
    cache_map = _resolve(config, diagnostics)
    engine = _engine_for(config, engine, diagnostics)
    image = config.resolved_utility_image

    start = time.monotonic()
    diagnostics.section("INJECT CACHES - START")
    diagnostics.debug(f"Total caches to inject: {len(cache_map)}")
    diagnostics.debug(f"Cache map: {json.dumps(cache_map.to_json(), indent=2)}")
    diagnostics.debug(f"Rsync mode: {config.rsync_mode}")

    processed = []
    for source, options in cache_map.items():
        inject_one(
            source,
            options,
            config.scratch_dir,
            image,
            engine,
            rsync=config.rsync_mode,
            diagnostics=diagnostics,
        )
        processed.append(source)

    diagnostics.section("INJECT CACHES - TIMING")
    diagnostics.debug(f"Inject total: {elapsed_seconds(start)}s")
    log.info(f"Injected {len(processed)} cache(s)")
    return processed


def run_extraction(
    config: DanceConfig,
    engine: Optional[ContainerEngine] = None,
    diagnostics: Optional[Diagnostics] = None,
) -> List[str]:
    """
    Extract every cache mount into its host cache directory.

    Nothing is resolved when ``skip_extraction`` is set, because the
    persisted cache was already warm.

    Returns:
        Host directories processed, in cache map order
    """
    diagnostics = diagnostics or config.diagnostics()
    diagnostics.section("EXTRACT CACHES - POST JOB CLEANUP")
    diagnostics.debug(f"skip-extraction: {config.skip_extraction}")

    if config.skip_extraction:
        log.info("skip-extraction is set. Skipping extraction step...")
        return []

    cache_map = _resolve(config, diagnostics)
    engine = _engine_for(config, engine, diagnostics)
    image = config.resolved_utility_image

    start = time.monotonic()
    diagnostics.section("EXTRACT CACHES - START")
    diagnostics.debug(f"Total caches to extract: {len(cache_map)}")
    diagnostics.debug(f"Cache map: {json.dumps(cache_map.to_json(), indent=2)}")
    diagnostics.debug(f"Rsync mode: {config.rsync_mode}")

    processed = []
    for source, options in cache_map.items():
        extract_one(
            source,
            options,
            config.scratch_dir,
            image,
            engine,
            rsync=config.rsync_mode,
            diagnostics=diagnostics,
        )
        processed.append(source)

    diagnostics.section("EXTRACT CACHES - TIMING")
    diagnostics.debug(f"Extract total: {elapsed_seconds(start)}s")
    log.info(f"Extracted {len(processed)} cache(s)")
    return processed
