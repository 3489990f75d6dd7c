"""
Test configuration and fixtures for cache-dance tests.

Provides shared fixtures for:
- A working directory to hold relative host cache paths
- A fake container engine emulating BuildKit cache volumes
- Environment variable isolation for GitHub Actions inputs
"""

import csv
import os
import shutil
import tarfile
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Set, Tuple

import pytest

from cache_dance.build.engine import BuildRequest, CommandResult, ContainerEngine
from cache_dance.exceptions import EngineError
from cache_dance.safety import unique_suffix


def _cache_mount_options(recipe: str) -> Dict[str, str]:
    for token in recipe.split():
        if token.startswith("--mount=type=cache"):
            spec = token[len("--mount="):]
            fields = next(csv.reader([spec]))
            return dict(field.partition("=")[::2] for field in fields)
    raise AssertionError(f"no cache mount in recipe:\n{recipe}")


def _copy_tree(source: Path, destination: Path, ignore_existing: bool = False) -> None:
    destination.mkdir(parents=True, exist_ok=True)
    for path in source.rglob("*"):
        target = destination / path.relative_to(source)
        if path.is_dir():
            target.mkdir(parents=True, exist_ok=True)
        elif not (ignore_existing and target.exists()):
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(path, target)


class FakeContainerEngine(ContainerEngine):
    """Container engine stand-in.

    Cache mount volumes are directories under ``volumes_root`` keyed by the
    mount identity, resolved the way BuildKit does (explicit id, else target).
    """

    def __init__(self, volumes_root: Path, **kwargs):
        super().__init__(builder="fake-builder", **kwargs)
        self.volumes_root = volumes_root
        self.calls: List[Tuple[str, str]] = []
        self.images: Dict[str, str] = {}
        self.containers: Dict[str, str] = {}
        self.fail_on: Set[str] = set()

    def volume(self, identity: str) -> Path:
        return self.volumes_root / (unique_suffix(identity) or "root")

    def _record(self, operation: str, subject: str) -> CommandResult:
        self.calls.append((operation, subject))
        if operation in self.fail_on:
            raise EngineError(
                f"fake {operation} failed", command=[operation, subject], returncode=1
            )
        return CommandResult(args=[operation, subject], returncode=0)

    def operations(self) -> List[str]:
        return [operation for operation, _ in self.calls]

    def run(self, args: Sequence[str], stdout=None) -> CommandResult:
        raise AssertionError(f"unexpected raw engine call: {args}")

    def build(self, request: BuildRequest) -> CommandResult:
        result = self._record("build", request.tag)
        recipe = request.recipe.read_text()
        options = _cache_mount_options(recipe)
        identity = options.get("id") or options["target"]

        if "type=bind" in recipe:
            _copy_tree(
                request.context_dir,
                self.volume(identity),
                ignore_existing="--ignore-existing" in recipe,
            )

        self.images[request.tag] = identity
        return result

    def create_container(self, name: str, image: str) -> CommandResult:
        result = self._record("create", name)
        self.containers[name] = image
        return result

    def copy_from_container(self, container: str, source: str, archive: Path) -> CommandResult:
        result = self._record("copy", container)
        volume = self.volume(self.images[self.containers[container]])
        volume.mkdir(parents=True, exist_ok=True)
        with tarfile.open(archive, "w") as tf:
            tf.add(volume, arcname=Path(source).name)
        return result

    def run_image(
        self, image: str, command: Sequence[str], volumes: Optional[Mapping[str, str]] = None
    ) -> CommandResult:
        result = self._record("sync", image)
        assert command[:3] == ["rsync", "-a", "--delete"]
        volume = self.volume(self.images[image])
        volume.mkdir(parents=True, exist_ok=True)
        (host_path,) = list((volumes or {}).keys())
        host = Path(host_path)
        for child in host.iterdir():
            if child.is_dir():
                shutil.rmtree(child)
            else:
                child.unlink()
        _copy_tree(volume, host)
        return result

    def remove_container(self, name: str) -> CommandResult:
        result = self._record("rm", name)
        self.containers.pop(name, None)
        return result

    def remove_image(self, name: str) -> CommandResult:
        result = self._record("rmi", name)
        self.images.pop(name, None)
        return result


@pytest.fixture
def workspace(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Provide an empty working directory and chdir into it.

    Host cache paths must be relative, so tests run from here.
    """
    root = tmp_path / "workspace"
    root.mkdir()
    monkeypatch.chdir(root)
    return root


@pytest.fixture
def fake_engine(tmp_path: Path) -> FakeContainerEngine:
    """Provide a fake engine with its volumes outside the workspace."""
    volumes = tmp_path / "volumes"
    volumes.mkdir()
    return FakeContainerEngine(volumes)


@pytest.fixture(autouse=True)
def clean_action_env(monkeypatch: pytest.MonkeyPatch):
    """Remove GitHub Actions inputs and state variables from the environment."""
    for key in list(os.environ):
        if key.startswith("INPUT_") or key in ("STATE_POST", "GITHUB_STATE", "LOG_LEVEL"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.delenv("CACHE_DANCE_RICH_UI", raising=False)
