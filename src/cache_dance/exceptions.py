"""Custom exceptions for cache_dance.

Every failure raised by the cache transfer core derives from
``CacheDanceError`` so the CLI can report it with a single handler.
"""

from typing import Optional, Sequence


class CacheDanceError(Exception):
    """Base exception for cache injection and extraction errors."""

    pass


class ConfigError(CacheDanceError):
    """Raised when configuration is malformed or misses a required field."""

    pass


class SecurityError(CacheDanceError):
    """Raised when a path or value is unsafe to use.

    Covers absolute paths, parent-directory traversal and characters that
    could inject commands into a generated build recipe.
    """

    pass


class ParseError(CacheDanceError):
    """Raised when a build file cache mount defines neither id nor target."""

    pass


class EngineError(CacheDanceError):
    """Raised when a container engine invocation exits non-zero."""

    def __init__(
        self,
        message: str,
        command: Optional[Sequence[str]] = None,
        returncode: Optional[int] = None,
        stderr: Optional[str] = None,
    ):
        """Initialize with the failed command details.

        Args:
            message: Human readable description of the failure.
            command: Argument vector of the failed process.
            returncode: Exit status of the failed process.
            stderr: Captured standard error, if any.
        """
        super().__init__(message)
        self.command = list(command) if command is not None else []
        self.returncode = returncode
        self.stderr = stderr
