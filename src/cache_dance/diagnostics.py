"""
Verbose diagnostics for cache injection and extraction.

A ``Diagnostics`` value is created once from the CLI options and passed to
every component at construction, instead of a process-wide debug flag.
"""

import logging
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from .safety import is_within

log = logging.getLogger(__name__)

SECTION_RULE = "=" * 60
MAX_LISTED_ENTRIES = 20
MAX_LISTED_FILES = 10
MAX_FIND_DEPTH = 3


def elapsed_seconds(start: float) -> float:
    """Seconds since ``start`` (a ``time.monotonic()`` value), rounded to 10ms."""
    return round(time.monotonic() - start, 2)


@dataclass(frozen=True)
class Diagnostics:
    """Switch and helpers for verbose troubleshooting output."""

    enabled: bool = False

    def debug(self, message: str) -> None:
        if self.enabled:
            log.info(f"[DEBUG] {message}")

    def section(self, title: str) -> None:
        if self.enabled:
            log.info(SECTION_RULE)
            log.info(f"[DEBUG] {title}")
            log.info(SECTION_RULE)

    def inspect_directory(
        self, path: Union[str, Path], label: str, workspace: Union[str, Path, None] = None
    ) -> Optional[str]:
        """
        Log size and contents of a directory.

        Paths outside the workspace (current directory by default) are not
        inspected.

        Args:
            path: Directory to inspect
            label: Heading for the log section

        Returns:
            The ``du -sh`` summary for size comparisons, or None
        """
        if not self.enabled:
            return None

        self.section(f"Directory Inspection: {label}")
        self.debug(f"Path: {path}")

        dir_path = Path(path)
        if not is_within(dir_path, Path(workspace) if workspace else Path.cwd()):
            self.debug("  -> Outside of the workspace, not inspecting")
            return None
        if not dir_path.exists():
            self.debug("  -> Directory does not exist or is not accessible")
            return None
        if not dir_path.is_dir():
            self.debug("  -> Not a directory")
            return None

        size = self._disk_usage(dir_path)
        self.debug(f"Size: {size or '(unable to determine)'}")

        try:
            entries = sorted(dir_path.iterdir())
        except OSError:
            self.debug("Contents: (unable to list)")
            entries = []
        else:
            self.debug(f"Contents ({len(entries)} items):")
            for entry in entries[:MAX_LISTED_ENTRIES]:
                kind = "[DIR]" if entry.is_dir() else "[FILE]"
                self.debug(f"  {kind} {entry.name}")
            if len(entries) > MAX_LISTED_ENTRIES:
                self.debug(f"  ... and {len(entries) - MAX_LISTED_ENTRIES} more items")

        files = [
            f
            for f in dir_path.rglob("*")
            if f.is_file() and len(f.relative_to(dir_path).parts) <= MAX_FIND_DEPTH
        ]
        self.debug(
            f"Files (recursive, max depth {MAX_FIND_DEPTH}): {len(files)} files found"
        )
        for f in files[:MAX_LISTED_FILES]:
            self.debug(f"  {f}")
        if len(files) > MAX_LISTED_FILES:
            self.debug(f"  ... and {len(files) - MAX_LISTED_FILES} more files")

        return size

    def compare_sizes(
        self, before: Optional[str], after: Optional[str], label: str
    ) -> None:
        if not self.enabled:
            return

        self.section(f"Size Comparison: {label}")
        self.debug(f"Before: {before or '(not available)'}")
        self.debug(f"After:  {after or '(not available)'}")

        if before and after:
            self.debug("  -> Compare these values to verify cache extraction worked")
            if before.split()[0] == after.split()[0]:
                log.warning(
                    f"[DEBUG] {label}: sizes are identical, cache may not have been extracted"
                )

    @staticmethod
    def _disk_usage(path: Path) -> Optional[str]:
        try:
            result = subprocess.run(
                ["du", "-sh", str(path)], capture_output=True, text=True, check=True
            )
        except (OSError, subprocess.CalledProcessError):
            return None
        return result.stdout.strip() or None
