"""
Cache map resolution.

Turns the raw ``cache-map`` input into a validated ``CacheMap``, either from
the explicit JSON configuration or by scanning the Dockerfile for cache
mounts when the configuration is empty.
"""

import json
import logging
import posixpath
from pathlib import Path, PurePosixPath
from typing import Dict, Optional, Union

from ..diagnostics import Diagnostics
from ..exceptions import ConfigError, SecurityError
from ..safety import validate_relative_path
from .dockerfile_scanner import DockerfileCacheScanner
from .options import CacheMap, CacheOptions, MountOptions, parse_cache_options

log = logging.getLogger(__name__)

# Target used for discovered mounts. Its value does not matter as long as it
# differs from the staging path used by the transfer recipes.
DISCOVERED_TARGET = "/var/cache-target"


def base_component(path: str) -> str:
    """
    Reduce a path to its last component.

    Raises:
        SecurityError: If nothing usable is left (for example '..' or '/')
    """
    name = PurePosixPath(path).name
    if name in ("", ".", ".."):
        raise SecurityError(f"Cannot derive a directory name from '{path}'")
    return name


class CacheMapResolver:
    """Build the resolved cache map for one invocation."""

    def __init__(
        self,
        cache_root: Optional[str] = None,
        dockerfile: Union[str, Path] = "Dockerfile",
        diagnostics: Optional[Diagnostics] = None,
    ):
        self.cache_root = cache_root or None
        self.dockerfile = Path(dockerfile)
        self.diagnostics = diagnostics or Diagnostics()

    def resolve(self, raw_config: str) -> CacheMap:
        """
        Resolve the cache map.

        Args:
            raw_config: JSON object text of host paths to cache options

        Returns:
            Validated cache map, in configuration or Dockerfile order

        Raises:
            ConfigError: If the configuration is not a JSON object of valid options,
                two keys map to the same path under cache-dir, or the Dockerfile
                cannot be read during auto-discovery
            ParseError: If a Dockerfile cache mount has neither id nor target
            SecurityError: If a host path escapes the working root
        """
        decoded = self._decode(raw_config)

        if decoded:
            entries = self._from_config(decoded)
        else:
            log.info(
                "No cache map provided. Parsing the Dockerfile to find the cache mount instructions..."
            )
            entries = self._from_dockerfile()
            log.info(
                f"Cache map parsed from Dockerfile: "
                f"{json.dumps({k: v.to_json() for k, v in entries.items()})}"
            )

        for source in entries:
            validate_relative_path(source, "cache source")

        cache_map = CacheMap(entries)
        self.diagnostics.debug(f"Resolved cache map: {json.dumps(cache_map.to_json(), indent=2)}")
        return cache_map

    def _decode(self, raw_config: str) -> dict:
        text = raw_config if raw_config and raw_config.strip() else "{}"
        try:
            decoded = json.loads(text)
        except json.JSONDecodeError as e:
            raise ConfigError(
                f"Failed to parse cache map. Expected JSON, got:\n{raw_config}\n{e}"
            ) from e

        if not isinstance(decoded, dict):
            raise ConfigError(
                f"Failed to parse cache map. Expected a JSON object, got:\n{raw_config}"
            )
        return decoded

    def _prefixed(self, name: str) -> str:
        if self.cache_root is None:
            return name
        return posixpath.join(self.cache_root, name)

    def _from_config(self, decoded: dict) -> Dict[str, CacheOptions]:
        entries: Dict[str, CacheOptions] = {}
        origins: Dict[str, str] = {}
        for source, raw_options in decoded.items():
            options = parse_cache_options(raw_options, source)

            if self.cache_root is None:
                entries[source] = options
                continue

            normalized = base_component(source)
            if normalized != source:
                log.warning(
                    f'cache-map key "{source}" was normalized to "{normalized}" '
                    "(only the base name is kept under cache-dir)"
                )

            host_path = self._prefixed(normalized)
            if host_path in origins:
                raise ConfigError(
                    f'cache-map keys "{origins[host_path]}" and "{source}" both map to '
                    f'"{host_path}" under cache-dir; give them distinct base names'
                )
            origins[host_path] = source
            entries[host_path] = options

        if self.cache_root is not None:
            log.info(f'cache-dir applied: cache paths will be under "{self.cache_root}/"')
        return entries

    def _from_dockerfile(self) -> Dict[str, CacheOptions]:
        scanner = DockerfileCacheScanner(self.dockerfile)
        entries: Dict[str, CacheOptions] = {}

        for mount in scanner.discover():
            source = self._prefixed(base_component(mount.identity))

            previous = entries.get(source)
            if previous is not None and previous.identity != mount.identity:
                log.warning(
                    f'Cache mounts "{previous.identity}" and "{mount.identity}" both map to '
                    f'"{source}"; only "{mount.identity}" (line {mount.line}) will be kept'
                )

            # Always pin the id explicitly: the synthesized mount uses a different
            # target, so leaving id out would address a different cache volume.
            entries[source] = MountOptions(
                target=DISCOVERED_TARGET, extras=(("id", mount.identity),)
            )
            self.diagnostics.debug(
                f"Discovered {mount.flag} (line {mount.line}) -> {source} "
                f"(id={mount.identity}, explicit={mount.explicit_id})"
            )

        return entries


def resolve_cache_map(
    raw_config: str,
    cache_root: Optional[str] = None,
    dockerfile: Union[str, Path] = "Dockerfile",
    diagnostics: Optional[Diagnostics] = None,
) -> CacheMap:
    """Convenience wrapper around ``CacheMapResolver.resolve``."""
    return CacheMapResolver(cache_root, dockerfile, diagnostics).resolve(raw_config)
