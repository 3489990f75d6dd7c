"""Main CLI entry point for cache-dance."""

import logging
import os
import traceback
from datetime import datetime, timezone
from importlib import metadata
from typing import Optional

import typer
from dotenv import load_dotenv
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape

from ..config import DEFAULT_BUILDER, DEFAULT_UTILITY_IMAGE, DanceConfig
from ..exceptions import CacheDanceError
from ..logger import setup_logging
from ..orchestrator import run_extraction, run_injection
from .inputs import dump_inputs

console = Console()


def get_version() -> str:
    """Get the package version from metadata."""
    try:
        return metadata.version("cache-dance")
    except metadata.PackageNotFoundError:
        return "unknown"


def _version_callback(value: bool):
    if value:
        console.print(f"cache-dance v{get_version()}")
        raise typer.Exit()


def mark_post_step() -> None:
    """Ask the runner to run the extract (post) step by saving POST=true."""
    state_file = os.getenv("GITHUB_STATE")
    if state_file:
        with open(state_file, "a", encoding="utf-8") as fh:
            fh.write(f"POST=true{os.linesep}")


# command: cache-dance
app = typer.Typer(
    name="cache-dance",
    help="Save 'RUN --mount=type=cache' caches on GitHub Actions or other CI platforms",
    rich_markup_mode="rich",
    add_completion=False,
)


@app.command()
def main(
    extract: bool = typer.Option(
        False,
        "--extract",
        envvar="STATE_POST",
        help="Extract the cache from the docker cache mounts (post step). Otherwise, inject the cache",
    ),
    cache_map: str = typer.Option(
        "{}",
        "--cache-map",
        envvar="INPUT_CACHE-MAP",
        help="JSON map of host source paths to container targets or mount options",
    ),
    dockerfile: str = typer.Option(
        "Dockerfile",
        "--dockerfile",
        envvar="INPUT_DOCKERFILE",
        help="Dockerfile scanned for cache mounts when --cache-map is empty",
    ),
    cache_dir: Optional[str] = typer.Option(
        None,
        "--cache-dir",
        envvar="INPUT_CACHE-DIR",
        help="Root directory holding the host cache directories",
    ),
    scratch_dir: str = typer.Option(
        "scratch",
        "--scratch-dir",
        envvar="INPUT_SCRATCH-DIR",
        help="Where temporary files are stored during processing",
    ),
    skip_extraction: bool = typer.Option(
        False,
        "--skip-extraction",
        envvar="INPUT_SKIP-EXTRACTION",
        help="Skip the extraction of the cache (e.g. when the cache was restored exactly)",
    ),
    utility_image: str = typer.Option(
        DEFAULT_UTILITY_IMAGE,
        "--utility-image",
        envvar="INPUT_UTILITY-IMAGE",
        help="Container image used for injecting and extracting the cache",
    ),
    builder: str = typer.Option(
        DEFAULT_BUILDER,
        "--builder",
        envvar="INPUT_BUILDER",
        help="Name of the buildx builder",
    ),
    is_debug: bool = typer.Option(
        False,
        "--is-debug",
        envvar="INPUT_IS-DEBUG",
        help="Enable verbose debug logs for troubleshooting",
    ),
    rsync_mode: bool = typer.Option(
        True,
        "--rsync-mode/--no-rsync-mode",
        envvar="INPUT_RSYNC-MODE",
        help="Use rsync for differential sync instead of cp -R",
    ),
    cache_source: Optional[str] = typer.Option(
        None,
        "--cache-source",
        envvar="INPUT_CACHE-SOURCE",
        help="Deprecated: use --cache-map",
        hidden=True,
    ),
    cache_target: Optional[str] = typer.Option(
        None,
        "--cache-target",
        envvar="INPUT_CACHE-TARGET",
        help="Deprecated: use --cache-map",
        hidden=True,
    ),
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        callback=_version_callback,
        is_eager=True,
        help="Show version",
    ),
):
    """
    Inject host cache directories into BuildKit cache mounts, or extract them back.

    Examples:
      cache-dance --cache-map '{"go-mod": "/go/pkg/mod"}'
      cache-dance --extract --cache-dir cache-mount
    """
    load_dotenv()

    try:
        config = DanceConfig(
            extract=extract,
            cache_map=cache_map,
            dockerfile=dockerfile,
            cache_dir=cache_dir,
            scratch_dir=scratch_dir,
            skip_extraction=skip_extraction,
            utility_image=utility_image,
            builder=builder,
            debug=is_debug,
            rsync_mode=rsync_mode,
            cache_source=cache_source,
            cache_target=cache_target,
        )
    except ValidationError as e:
        console.print(f"[red]Error:[/red] invalid options\n{escape(str(e))}")
        raise typer.Exit(1)

    setup_logging(logging.DEBUG if config.debug else logging.INFO)
    diagnostics = config.diagnostics()

    diagnostics.section("BuildKit Cache Dance - DEBUG MODE ENABLED")
    diagnostics.debug(f"Step type: {'POST (extract)' if config.extract else 'MAIN (inject)'}")
    diagnostics.debug(f"Timestamp: {datetime.now(timezone.utc).isoformat()}")
    dump_inputs(config, diagnostics)

    try:
        if config.extract:
            run_extraction(config, diagnostics=diagnostics)
        else:
            mark_post_step()
            run_injection(config, diagnostics=diagnostics)
    except CacheDanceError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Cancelled by user[/yellow]")
        raise typer.Exit(1)
    except Exception as e:
        console.print(f"[red]Unexpected error:[/red] {escape(str(e))}")
        console.print(escape(traceback.format_exc()))
        raise typer.Exit(1)

    diagnostics.section("BuildKit Cache Dance - STEP COMPLETE")


if __name__ == "__main__":
    app()
