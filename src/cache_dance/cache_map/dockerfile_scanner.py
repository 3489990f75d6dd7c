"""Dockerfile scanner for discovering RUN --mount=type=cache declarations."""

import csv
import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from dockerfile_parse import DockerfileParser

from ..exceptions import ConfigError, ParseError

logger = logging.getLogger(__name__)

TARGET_KEYS = ("target", "dst", "destination")


@dataclass(frozen=True)
class CacheMountDeclaration:
    """A cache mount found on a RUN instruction."""

    identity: str
    target: Optional[str]
    explicit_id: bool
    line: int
    flag: str


def parse_mount_flag(spec: str) -> Dict[str, str]:
    """
    Split the value of a ``--mount=`` flag into its options.

    BuildKit reads the value as one CSV record, so quoted fields may contain
    commas. Keys are case-insensitive; bare keys map to an empty string.
    """
    fields = next(csv.reader([spec]), [])
    options: Dict[str, str] = {}
    for field in fields:
        key, _, value = field.partition("=")
        options[key.strip().lower()] = value.strip()
    return options


def _leading_flags(value: str) -> List[str]:
    flags = []
    for token in value.split():
        if not token.startswith("--"):
            break
        flags.append(token[2:])
    return flags


class DockerfileCacheScanner:
    """Scans a Dockerfile for cache mounts on RUN instructions."""

    def __init__(self, dockerfile: Path):
        self.dockerfile = Path(dockerfile)

    def read(self) -> str:
        try:
            return self.dockerfile.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigError(
                f"Cannot read Dockerfile '{self.dockerfile}' to discover cache mounts: {e}"
            ) from e

    def discover(self) -> List[CacheMountDeclaration]:
        """
        Find every cache mount declared in the Dockerfile.

        Returns:
            Declarations in file order

        Raises:
            ConfigError: If the Dockerfile cannot be read
            ParseError: If a cache mount has neither id nor target
        """
        content = self.read()
        parser = DockerfileParser(fileobj=io.BytesIO(content.encode("utf-8")))

        mounts = []
        for instruction in parser.structure:
            if instruction["instruction"].upper() != "RUN":
                continue
            mounts.extend(self._scan_run(instruction))

        logger.debug(f"Found {len(mounts)} cache mounts in {self.dockerfile}")
        return mounts

    def _scan_run(self, instruction: dict) -> List[CacheMountDeclaration]:
        mounts = []
        for flag in _leading_flags(instruction["value"]):
            name, _, spec = flag.partition("=")
            if name.lower() != "mount":
                continue

            options = parse_mount_flag(spec)
            if options.get("type") != "cache":
                continue

            target = next((options[k] for k in TARGET_KEYS if options.get(k)), None)
            # BuildKit defaults the cache id to the target path
            # https://docs.docker.com/reference/dockerfile/#run---mounttypecache
            identity = options.get("id") or target
            if not identity:
                raise ParseError(
                    f"cache mount must define id or target: --{flag} in "
                    f"{instruction['content'].strip()} "
                    f"(line {instruction['startline'] + 1})"
                )

            mounts.append(
                CacheMountDeclaration(
                    identity=identity,
                    target=target,
                    explicit_id=bool(options.get("id")),
                    line=instruction["startline"] + 1,
                    flag=f"--{flag}",
                )
            )
        return mounts
