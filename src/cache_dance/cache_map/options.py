"""
Cache mount options for a single cache map entry.

A cache map value is either a bare target path or a structured set of mount
options with a mandatory ``target``. Both forms are modelled as frozen
dataclasses sharing the ``CacheOptions`` interface.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, Iterator, Mapping, Tuple, Union

from ..exceptions import ConfigError

Scalar = Union[str, int, float, bool]

CACHE_MOUNT_TYPE = "cache"


def format_option_value(value: Scalar) -> str:
    """Render a mount option value the way BuildKit reads it."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


@dataclass(frozen=True)
class BareTarget:
    """Only the container target path is given; BuildKit derives the id from it."""

    target: str

    @property
    def target_path(self) -> str:
        return self.target

    @property
    def identity(self) -> str:
        return self.target

    @property
    def uid(self) -> str:
        return ""

    @property
    def gid(self) -> str:
        return ""

    def mount_args(self) -> str:
        """Value for ``RUN --mount=``."""
        return f"type={CACHE_MOUNT_TYPE},target={self.target}"

    def to_json(self) -> Any:
        return self.target


@dataclass(frozen=True)
class MountOptions:
    """Target path plus extra mount options, kept in their original order."""

    target: str
    extras: Tuple[Tuple[str, Scalar], ...] = ()

    @property
    def target_path(self) -> str:
        return self.target

    def get(self, key: str, default: Any = None) -> Any:
        for name, value in self.extras:
            if name == key:
                return value
        return default

    @property
    def identity(self) -> str:
        explicit = self.get("id")
        if explicit is not None and explicit != "":
            return format_option_value(explicit)
        return self.target

    @property
    def uid(self) -> str:
        value = self.get("uid")
        return "" if value is None else format_option_value(value)

    @property
    def gid(self) -> str:
        value = self.get("gid")
        return "" if value is None else format_option_value(value)

    def mount_args(self) -> str:
        """Value for ``RUN --mount=``, passing every extra option through verbatim."""
        parts = [f"type={CACHE_MOUNT_TYPE}", f"target={self.target}"]
        parts.extend(f"{key}={format_option_value(value)}" for key, value in self.extras)
        return ",".join(parts)

    def to_json(self) -> Any:
        data: Dict[str, Any] = {"target": self.target}
        data.update(self.extras)
        return data


CacheOptions = Union[BareTarget, MountOptions]


def parse_cache_options(raw: Any, source: str = "") -> CacheOptions:
    """
    Convert a decoded JSON cache map value into ``CacheOptions``.

    Args:
        raw: String target or object with a ``target`` key
        source: Cache map key, used in error messages

    Raises:
        ConfigError: If the value has the wrong shape or lacks ``target``
    """
    where = f" for '{source}'" if source else ""

    if isinstance(raw, str):
        if not raw:
            raise ConfigError(f"Empty target path{where}")
        return BareTarget(raw)

    if not isinstance(raw, dict):
        raise ConfigError(
            f"Expected a target path or an object of mount options{where}, "
            f"got: {raw!r}"
        )

    target = raw.get("target")
    if not isinstance(target, str) or not target:
        raise ConfigError(
            f"Expected the 'target' key in the cache options{where}, got:\n{raw!r}"
        )

    extras = []
    for key, value in raw.items():
        if key == "target":
            continue
        if value is None or not isinstance(value, (str, int, float, bool)):
            raise ConfigError(
                f"Mount option '{key}'{where} must be a string, number or boolean, "
                f"got: {value!r}"
            )
        extras.append((str(key), value))

    return MountOptions(target=target, extras=tuple(extras))


class CacheMap(Mapping[str, CacheOptions]):
    """Read-only, ordered mapping of host directories to cache options."""

    def __init__(self, entries: Union[Mapping[str, CacheOptions], None] = None):
        self._entries = MappingProxyType(dict(entries or {}))

    def __getitem__(self, key: str) -> CacheOptions:
        return self._entries[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"CacheMap({dict(self._entries)!r})"

    def to_json(self) -> Dict[str, Any]:
        return {source: options.to_json() for source, options in self._entries.items()}
