"""Debug dump of the invocation inputs and the cache map they resolve to."""

import json
import os
from pathlib import Path

from ..cache_map.resolver import CacheMapResolver
from ..config import DanceConfig
from ..diagnostics import Diagnostics
from ..exceptions import CacheDanceError

GITHUB_ENV_VARS = ("GITHUB_WORKSPACE", "GITHUB_STATE", "STATE_POST")


def dump_inputs(config: DanceConfig, diagnostics: Diagnostics) -> None:
    """
    Log environment, options, the resolved cache map and generated mount args.

    A cache map that fails to resolve is reported here and left for the
    actual run to raise.
    """
    if not diagnostics.enabled:
        return

    diagnostics.section("INPUT VALUES DUMP")
    for name in GITHUB_ENV_VARS:
        diagnostics.debug(f"{name}: {os.getenv(name) or '(not set)'}")
    diagnostics.debug(f"Current working directory: {Path.cwd()}")

    dockerfile_path = Path(config.dockerfile).resolve()
    cache_dir_path = Path(config.cache_dir).resolve() if config.cache_dir else None

    diagnostics.debug("--- Options ---")
    diagnostics.debug(f"builder: {config.builder}")
    diagnostics.debug(f"dockerfile: {config.dockerfile}")
    diagnostics.debug(f"dockerfile (absolute): {dockerfile_path}")
    diagnostics.debug(f"cache-dir: {config.cache_dir}")
    diagnostics.debug(f"cache-dir (absolute): {cache_dir_path or '(not set)'}")
    diagnostics.debug(f"scratch-dir: {config.scratch_dir}")
    diagnostics.debug(f"scratch-dir (absolute): {Path(config.scratch_dir).resolve()}")
    diagnostics.debug(f"skip-extraction: {config.skip_extraction}")
    diagnostics.debug(f"utility-image: {config.utility_image}")
    diagnostics.debug(f"utility-image (effective): {config.resolved_utility_image}")
    diagnostics.debug(f"rsync-mode: {config.rsync_mode}")
    diagnostics.debug(f"is-debug: {config.debug}")
    diagnostics.debug(f"extract (post step): {config.extract}")

    diagnostics.debug("--- Raw cache-map input ---")
    diagnostics.debug(f"cache-map: {config.cache_map}")

    try:
        cache_map = CacheMapResolver(
            cache_root=config.cache_dir,
            dockerfile=config.dockerfile,
            diagnostics=Diagnostics(),
        ).resolve(config.cache_map)
    except CacheDanceError as e:
        diagnostics.debug(f"Failed to parse cache-map: {e}")
    else:
        diagnostics.debug("--- Parsed cache-map ---")
        diagnostics.debug(json.dumps(cache_map.to_json(), indent=2))
        diagnostics.debug("--- Mount args that will be generated ---")
        for source, options in cache_map.items():
            diagnostics.debug(f"  {source}:")
            diagnostics.debug(f"    target: {options.target_path}")
            diagnostics.debug(f"    id: {options.identity}")
            diagnostics.debug(f"    mount: --mount={options.mount_args()}")

    diagnostics.debug("--- Dockerfile check ---")
    diagnostics.debug(
        f"Dockerfile exists: {'YES' if dockerfile_path.is_file() else f'NO (path: {dockerfile_path})'}"
    )

    if cache_dir_path is not None:
        diagnostics.debug("--- Cache-dir check ---")
        if cache_dir_path.exists():
            diagnostics.debug(f"cache-dir exists: YES (isDirectory: {cache_dir_path.is_dir()})")
        else:
            diagnostics.debug("cache-dir exists: NO (will be created)")
