"""
Path and name safety checks.

Host paths and mount options end up in file operations and in generated
build recipes, so they are validated here before anything touches disk or
the container engine.
"""

import os
import posixpath
import re
from pathlib import Path, PurePosixPath
from typing import Union

from .exceptions import SecurityError

SHELL_METACHARACTERS = frozenset(";|&$`\\'\"<>(){}[]!#*?~")

_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]")
_DASH_RUN = re.compile(r"-+")
_MOUNT_VALUE = re.compile(r"[a-zA-Z0-9/._\-=,]+")
_MOUNT_VALUE_CHARS = re.compile(r"[a-zA-Z0-9/._\-=,]")


def validate_relative_path(path: str, label: str = "path") -> None:
    """
    Reject absolute paths, paths that climb out of the working root and paths
    that name the working root itself.

    Raises:
        SecurityError: If the path is empty, absolute, contains a '..' segment
            or normalizes to '.'
    """
    if not path:
        raise SecurityError(f"{label} must not be empty")

    if posixpath.isabs(path) or os.path.isabs(path):
        raise SecurityError(
            f"{label} must be a relative path, got absolute path: {path}"
        )

    # 'a/..' normalizes to '.', so the raw segments are checked too
    if ".." in PurePosixPath(path).parts:
        raise SecurityError(f"{label} contains path traversal sequence: {path}")

    if posixpath.normpath(path) == ".":
        raise SecurityError(
            f"{label} must name a directory below the working root, got: {path}"
        )


def reject_shell_metacharacters(value: str, label: str = "value") -> None:
    """
    Reject values containing characters with meaning to a shell.

    Raises:
        SecurityError: If any shell metacharacter is present
    """
    found = sorted(set(value) & SHELL_METACHARACTERS)
    if found:
        raise SecurityError(
            f"{label} contains potentially dangerous characters "
            f"({' '.join(found)}): {value}"
        )


def validate_safe_path(path: str, label: str = "path") -> None:
    """Run both the traversal and the metacharacter checks on a host path."""
    validate_relative_path(path, label)
    reject_shell_metacharacters(path, label)


def validate_recipe_value(value: str, label: str = "value") -> str:
    """
    Check a value before it is interpolated into a build recipe.

    Whitespace and control characters are rejected as well, since a newline
    would start a new recipe instruction.

    Returns:
        The value unchanged

    Raises:
        SecurityError: If the value is empty or unsafe
    """
    if not value:
        raise SecurityError(f"{label} must not be empty")
    reject_shell_metacharacters(value, label)
    if any(ch.isspace() or not ch.isprintable() for ch in value):
        raise SecurityError(
            f"{label} contains whitespace or control characters: {value!r}"
        )
    return value


def validate_mount_value(value: str, label: str = "value") -> str:
    """
    Check a cache mount target, mount argument string, uid or gid.

    On top of ``validate_recipe_value``, only ASCII letters, digits and
    ``/ . _ - = ,`` are accepted. The utility image is not checked here since
    registry references need ``:`` and ``@``.

    Returns:
        The value unchanged

    Raises:
        SecurityError: If the value is empty, unsafe or outside the allowed set
    """
    validate_recipe_value(value, label)
    if not _MOUNT_VALUE.fullmatch(value):
        disallowed = sorted(set(_MOUNT_VALUE_CHARS.sub("", value)))
        raise SecurityError(
            f"{label} contains characters outside [a-zA-Z0-9/._-=,] "
            f"({' '.join(disallowed)}): {value}"
        )
    return value


def unique_suffix(path: str) -> str:
    """
    Derive a name-safe token from a host path for image and container names.

    The same path always gives the same token, and distinct cache entries get
    distinct tokens because the full host path is used.

    Example:
        >>> unique_suffix("/var/cache/apt")
        'var-cache-apt'
    """
    dashed = _DASH_RUN.sub("-", _NON_ALNUM.sub("-", path))
    return dashed.strip("-").lower()


def is_within(path: Union[str, Path], root: Union[str, Path]) -> bool:
    """Check whether ``path`` resolves to ``root`` or somewhere below it."""
    resolved = Path(root, path).resolve()
    resolved_root = Path(root).resolve()
    return resolved == resolved_root or resolved_root in resolved.parents
