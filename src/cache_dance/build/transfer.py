"""
Cache transfer between BuildKit cache mounts and host directories.

Each call processes one cache map entry: it generates a small recipe, builds
a throwaway image from it through the container engine, moves the data and
removes the throwaway resources again.
"""

import json
import logging
from pathlib import Path, PurePosixPath
from typing import Optional

from ..cache_map.options import CacheOptions
from ..diagnostics import Diagnostics
from ..exceptions import CacheDanceError
from ..safety import unique_suffix, validate_safe_path
from .engine import BuildRequest, ContainerEngine
from .recipe import (
    EXTRACT_RECIPE_NAME,
    INJECT_RECIPE_NAME,
    STAGING_PATH,
    RecipeValues,
    generate_extract_recipe,
    generate_inject_recipe,
    write_recipe,
)
from .workspace import remove_tree, reset_directory, unpack_archive, write_buildstamp

log = logging.getLogger(__name__)

IMAGE_REPOSITORY = "dance"
CONTAINER_PREFIX = "cache-container"
HOST_MOUNT_PATH = "/mnt/host-cache"
ARCHIVE_NAME = "dance-cache.tar"


def extract_image_name(host_dir: str) -> str:
    return f"{IMAGE_REPOSITORY}:extract-{unique_suffix(host_dir)}"


def inject_image_name(host_dir: str) -> str:
    return f"{IMAGE_REPOSITORY}:inject-{unique_suffix(host_dir)}"


def container_name(host_dir: str) -> str:
    return f"{CONTAINER_PREFIX}-{unique_suffix(host_dir)}"


def _describe(
    diagnostics: Diagnostics,
    title: str,
    host_dir: str,
    options: CacheOptions,
    scratch_dir: str,
    image: str,
    engine: ContainerEngine,
    rsync: bool,
) -> None:
    diagnostics.section(title)
    diagnostics.debug(f"Cache source: {host_dir}")
    diagnostics.debug(f"Cache options: {json.dumps(options.to_json())}")
    diagnostics.debug(f"Scratch dir: {scratch_dir}")
    diagnostics.debug(f"Container image: {image}")
    diagnostics.debug(f"Builder: {engine.builder}")
    diagnostics.debug(f"Unique suffix: {unique_suffix(host_dir)}")
    diagnostics.debug(f"Rsync mode: {rsync}")


def extract_one(
    host_dir: str,
    options: CacheOptions,
    scratch_dir: str,
    image: str,
    engine: ContainerEngine,
    rsync: bool = False,
    diagnostics: Optional[Diagnostics] = None,
) -> Path:
    """
    Pull the contents of a cache mount into a host directory.

    Args:
        host_dir: Host directory receiving the cache contents (relative path)
        options: Cache mount options of the entry
        scratch_dir: Scratch workspace, recreated empty (relative path)
        image: Utility image the helper image is built from
        engine: Container engine bound to the builder
        rsync: Sync differentially with rsync instead of copying via docker cp
        diagnostics: Verbose output settings (defaults to the engine's)

    Returns:
        Path of the populated host directory

    Raises:
        SecurityError: If a path or interpolated value is unsafe
        EngineError: If the build, copy or sync fails
    """
    diagnostics = diagnostics or engine.diagnostics
    validate_safe_path(host_dir, "cache source")
    validate_safe_path(scratch_dir, "scratch directory")

    image_name = extract_image_name(host_dir)
    _describe(diagnostics, f"EXTRACT CACHE: {host_dir}", host_dir, options, scratch_dir, image, engine, rsync)
    diagnostics.debug(f"Image name: {image_name}")

    # Clean scratch directory to avoid leftover data from previous entries
    scratch = reset_directory(Path(scratch_dir))
    write_buildstamp(scratch)

    values = RecipeValues.from_options(options, image)
    diagnostics.debug(f"Target path: {values.target}")
    diagnostics.debug(f"Mount args (CRITICAL): {values.mount_args}")
    recipe = write_recipe(generate_extract_recipe(values), scratch / EXTRACT_RECIPE_NAME)

    host = Path(host_dir)
    before = diagnostics.inspect_directory(host, f"Cache source BEFORE extraction ({host_dir})")
    host.mkdir(parents=True, exist_ok=True)

    with engine.ephemeral_image(image_name):
        engine.build(
            BuildRequest(recipe=recipe, context_dir=scratch, tag=image_name, load=True)
        )

        if rsync:
            _sync_to_host(engine, image_name, host, diagnostics)
        else:
            _copy_to_host(engine, image_name, container_name(host_dir), scratch, host, diagnostics)

    after = diagnostics.inspect_directory(host, f"Cache source AFTER extraction ({host_dir})")
    diagnostics.compare_sizes(before, after, f"Extract: {host_dir}")
    log.info(f"Extracted cache into {host_dir}")
    return host


def _sync_to_host(
    engine: ContainerEngine, image_name: str, host: Path, diagnostics: Diagnostics
) -> None:
    # -a keeps permissions, timestamps and links; --delete mirrors removals
    diagnostics.debug("Using rsync mode: syncing directly to host cache-dir")
    engine.run_image(
        image_name,
        ["rsync", "-a", "--delete", f"{STAGING_PATH}/", f"{HOST_MOUNT_PATH}/"],
        volumes={str(host.resolve()): HOST_MOUNT_PATH},
    )
    diagnostics.debug("Rsync completed successfully")


def _copy_to_host(
    engine: ContainerEngine,
    image_name: str,
    name: str,
    scratch: Path,
    host: Path,
    diagnostics: Diagnostics,
) -> None:
    diagnostics.debug("Using cp mode: extracting via docker cp")
    archive = scratch / ARCHIVE_NAME

    with engine.ephemeral_container(name, image_name):
        engine.copy_from_container(name, STAGING_PATH, archive)

    unpack_archive(archive, scratch)
    archive.unlink()

    extracted = scratch / PurePosixPath(STAGING_PATH).name
    if not extracted.is_dir():
        raise CacheDanceError(
            f"Archive copied from {name} did not contain {STAGING_PATH}"
        )
    diagnostics.inspect_directory(extracted, "Scratch dir after docker cp")

    diagnostics.debug(f"Moving extracted cache to: {host}")
    remove_tree(host)
    extracted.rename(host)


def inject_one(
    host_dir: str,
    options: CacheOptions,
    scratch_dir: str,
    image: str,
    engine: ContainerEngine,
    rsync: bool = False,
    diagnostics: Optional[Diagnostics] = None,
) -> None:
    """
    Push a host directory into a cache mount.

    The host directory is created when missing, since the first run has
    nothing to inject, and removed afterwards.

    Args:
        host_dir: Host directory with the cache contents (relative path)
        options: Cache mount options of the entry
        scratch_dir: Scratch workspace, recreated empty (relative path)
        image: Utility image the helper image is built from
        engine: Container engine bound to the builder
        rsync: Skip files already present in the mount instead of copying all
        diagnostics: Verbose output settings (defaults to the engine's)

    Raises:
        SecurityError: If a path or interpolated value is unsafe
        EngineError: If the build fails
    """
    diagnostics = diagnostics or engine.diagnostics
    validate_safe_path(host_dir, "cache source")
    validate_safe_path(scratch_dir, "scratch directory")

    image_name = inject_image_name(host_dir)
    _describe(diagnostics, f"INJECT CACHE: {host_dir}", host_dir, options, scratch_dir, image, engine, rsync)
    diagnostics.debug(f"Image name: {image_name}")

    scratch = reset_directory(Path(scratch_dir))
    host = Path(host_dir)
    host.mkdir(parents=True, exist_ok=True)
    diagnostics.inspect_directory(host, f"Cache source BEFORE injection ({host_dir})")

    write_buildstamp(host)

    values = RecipeValues.from_options(options, image)
    diagnostics.debug(f"Target path: {values.target}")
    diagnostics.debug(f"Mount args: {values.mount_args}")
    if values.ownership_command:
        diagnostics.debug(f"Ownership command: {values.ownership_command.strip()}")
    recipe = write_recipe(
        generate_inject_recipe(values, rsync=rsync), scratch / INJECT_RECIPE_NAME
    )

    with engine.ephemeral_image(image_name):
        engine.build(BuildRequest(recipe=recipe, context_dir=host, tag=image_name))

    log.info(f"Injected {host_dir} into cache mount {options.identity}")

    try:
        remove_tree(host)
    except (OSError, CacheDanceError) as e:
        log.warning(f"Error while cleaning cache source directory: {e}. Ignoring...")
