"""Host filesystem helpers for the scratch workspace and host cache directories."""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import tarfile
from datetime import datetime, timezone
from pathlib import Path

from ..exceptions import CacheDanceError
from .recipe import BUILDSTAMP_FILE

logger = logging.getLogger(__name__)


def remove_tree(path: Path) -> None:
    """
    Remove a directory tree if it exists.

    Files written by a container are often owned by root, so a permission
    failure is retried with ``sudo rm -rf``.

    Raises:
        CacheDanceError: If the tree cannot be removed
    """
    if not path.exists() and not path.is_symlink():
        return

    try:
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        else:
            path.unlink()
        return
    except PermissionError as e:
        logger.info(f"Permission denied removing {path} ({e}), retrying with sudo")

    try:
        subprocess.run(
            ["sudo", "rm", "-rf", str(path)], check=True, capture_output=True, text=True
        )
    except (OSError, subprocess.CalledProcessError) as e:
        stderr = getattr(e, "stderr", "") or ""
        raise CacheDanceError(f"Failed to remove {path}: {e} {stderr}".strip()) from e


def reset_directory(path: Path) -> Path:
    """Recreate ``path`` as an empty directory."""
    remove_tree(path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def write_buildstamp(directory: Path) -> Path:
    """Write the current time so the build engine never reuses a cached layer."""
    stamp = directory / BUILDSTAMP_FILE
    stamp.write_text(datetime.now(timezone.utc).isoformat())
    return stamp


def _safe_extract_tar(tar: tarfile.TarFile, target_dir: Path) -> None:
    target_dir_resolved = target_dir.resolve()

    for member in tar.getmembers():
        member_path = (target_dir / member.name).resolve()
        if (
            not str(member_path).startswith(str(target_dir_resolved) + os.sep)
            and member_path != target_dir_resolved
        ):
            raise CacheDanceError(f"unsafe tar member path: {member.name}")

    if hasattr(tarfile, "tar_filter"):
        # keep symlinks as-is, cache trees may contain absolute ones
        tar.extractall(path=target_dir, filter="tar")
    else:
        tar.extractall(path=target_dir)


def unpack_archive(archive: Path, target_dir: Path) -> None:
    """
    Unpack a tar archive produced by ``docker cp`` into ``target_dir``.

    Raises:
        CacheDanceError: If the archive is unreadable or has members escaping target_dir
    """
    try:
        with tarfile.open(archive, mode="r:*") as tf:
            _safe_extract_tar(tf, target_dir)
    except tarfile.TarError as e:
        raise CacheDanceError(f"failed to unpack {archive}: {e}") from e
