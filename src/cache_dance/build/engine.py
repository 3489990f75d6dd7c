"""
Container engine operations.

Wraps the ``docker`` CLI calls used to move data between BuildKit cache
mounts and the host: buildx builds, container create/copy/run and removal.
"""

import logging
import subprocess
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Iterator, List, Mapping, Optional, Sequence, Union

from ..diagnostics import Diagnostics
from ..exceptions import EngineError

log = logging.getLogger(__name__)

OUTPUT_PREVIEW_CHARS = 500


@dataclass
class CommandResult:
    """Result of one container engine invocation."""

    args: List[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def success(self) -> bool:
        return self.returncode == 0


@dataclass
class BuildRequest:
    """Configuration for a buildx build of a generated recipe."""

    recipe: Path
    context_dir: Path
    tag: str
    load: bool = False


class ContainerEngine:
    """Run docker commands against a named buildx builder."""

    def __init__(
        self,
        builder: str = "default",
        executable: str = "docker",
        diagnostics: Optional[Diagnostics] = None,
    ):
        """
        Initialize container engine.

        Args:
            builder: Name of the buildx builder used for builds
            executable: Container CLI to invoke
            diagnostics: Verbose output settings
        """
        self.builder = builder or "default"
        self.executable = executable
        self.diagnostics = diagnostics or Diagnostics()

    def run(
        self, args: Sequence[str], stdout: Optional[IO[bytes]] = None
    ) -> CommandResult:
        """
        Run the container CLI with ``args``.

        Args:
            args: Arguments after the executable name
            stdout: Binary file to receive standard output instead of capturing it

        Returns:
            CommandResult of the finished process

        Raises:
            EngineError: If the process cannot start or exits non-zero
        """
        command = [self.executable, *args]
        command_str = " ".join(command)
        self.diagnostics.debug(f"Executing: {command_str}")

        try:
            completed = subprocess.run(
                command,
                stdout=stdout if stdout is not None else subprocess.PIPE,
                stderr=subprocess.PIPE,
                check=False,
            )
        except OSError as e:
            raise EngineError(
                f"Failed to start '{command_str}': {e}", command=command
            ) from e

        result = CommandResult(
            args=command,
            returncode=completed.returncode,
            stdout=_decode(completed.stdout),
            stderr=_decode(completed.stderr),
        )

        if result.stdout:
            self.diagnostics.debug(f"Output: {_preview(result.stdout)}")

        if not result.success:
            log.error(f"Error running command: {command_str}")
            if result.stderr:
                log.error(result.stderr.rstrip())
            raise EngineError(
                f"'{command_str}' exited with code {result.returncode}",
                command=command,
                returncode=result.returncode,
                stderr=result.stderr,
            )

        return result

    def build(self, request: BuildRequest) -> CommandResult:
        """Build a recipe with buildx into a tagged image."""
        args = [
            "buildx",
            "build",
            "--builder",
            self.builder,
            "-f",
            str(request.recipe),
            "--tag",
            request.tag,
        ]
        if request.load:
            args.append("--load")
        if self.diagnostics.enabled:
            args.append("--progress=plain")
        args.append(str(request.context_dir))

        log.info(f"Building image: {request.tag}")
        self.diagnostics.debug(
            "TIP: For more detailed docker output, run with: BUILDKIT_PROGRESS=plain"
        )
        result = self.run(args)
        self.diagnostics.debug("Docker build completed successfully (exit code: 0)")
        return result

    def create_container(self, name: str, image: str) -> CommandResult:
        self.diagnostics.debug(f"Creating container: {name}")
        return self.run(["create", "-ti", "--name", name, image])

    def copy_from_container(
        self, container: str, source: str, archive: Path
    ) -> CommandResult:
        """
        Stream ``source`` out of a container as a tar archive.

        Args:
            container: Container name
            source: Path inside the container
            archive: Host file that receives the tar stream
        """
        with open(archive, "wb") as fh:
            return self.run(["cp", "-L", f"{container}:{source}", "-"], stdout=fh)

    def run_image(
        self,
        image: str,
        command: Sequence[str],
        volumes: Optional[Mapping[str, str]] = None,
    ) -> CommandResult:
        """Run ``command`` in a disposable container of ``image``."""
        args = ["run", "--rm"]
        for host_path, container_path in (volumes or {}).items():
            args.extend(["-v", f"{host_path}:{container_path}"])
        args.append(image)
        args.extend(command)
        return self.run(args)

    def remove_container(self, name: str) -> CommandResult:
        return self.run(["rm", "-f", name])

    def remove_image(self, name: str) -> CommandResult:
        return self.run(["rmi", "-f", name])

    def discard_container(self, name: str) -> None:
        """Remove a container, logging instead of raising on failure."""
        try:
            self.remove_container(name)
        except EngineError as e:
            log.warning(f"Ignoring failure to remove container {name}: {e}")

    def discard_image(self, name: str) -> None:
        """Remove an image, logging instead of raising on failure."""
        try:
            self.remove_image(name)
        except EngineError as e:
            log.warning(f"Ignoring failure to remove image {name}: {e}")

    @contextmanager
    def ephemeral_image(self, name: str) -> Iterator[str]:
        """Scope a throwaway image; it is removed on every exit path."""
        try:
            yield name
        finally:
            self.discard_image(name)

    @contextmanager
    def ephemeral_container(self, name: str, image: str) -> Iterator[str]:
        """
        Create a throwaway container and remove it on every exit path.

        A stale container with the same name from an interrupted run is
        removed first.
        """
        self.discard_container(name)
        self.create_container(name, image)
        try:
            yield name
        finally:
            self.discard_container(name)


def _decode(data: Union[bytes, str, None]) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return data


def _preview(text: str) -> str:
    if len(text) <= OUTPUT_PREVIEW_CHARS:
        return text
    return f"{text[:OUTPUT_PREVIEW_CHARS]}...(truncated)"
