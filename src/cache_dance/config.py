"""
Configuration management for cache injection and extraction.

Settings come from the CLI options. When running as a GitHub Action, typer
reads each option from the ``INPUT_*`` variable the runner sets for it.
"""

import json
import logging
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .diagnostics import Diagnostics

log = logging.getLogger(__name__)

DEFAULT_UTILITY_IMAGE = "ghcr.io/containerd/busybox:latest"
RSYNC_UTILITY_IMAGE = "ghcr.io/hiromaily/cache-dance-rsync:latest"
DEFAULT_BUILDER = "default"


class DanceConfig(BaseModel):
    """Settings for one inject or extract invocation."""

    extract: bool = Field(
        False, description="Run the extract (post) step instead of injection"
    )
    cache_map: str = Field(
        "{}", description="JSON map of host paths to cache mount targets or options"
    )
    dockerfile: str = Field(
        "Dockerfile", description="Dockerfile scanned when cache_map is empty"
    )
    cache_dir: Optional[str] = Field(
        None, description="Root directory for host cache paths"
    )
    scratch_dir: str = Field("scratch", description="Temporary working directory")
    skip_extraction: bool = Field(False, description="Skip the extract step")
    utility_image: str = Field(
        DEFAULT_UTILITY_IMAGE, description="Image used to inject and extract caches"
    )
    builder: str = Field(DEFAULT_BUILDER, description="buildx builder name")
    debug: bool = Field(False, description="Verbose diagnostics")
    rsync_mode: bool = Field(True, description="Differential sync with rsync")
    cache_source: Optional[str] = Field(None, description="Deprecated, use cache_map")
    cache_target: Optional[str] = Field(None, description="Deprecated, use cache_map")

    @field_validator("cache_map", mode="before")
    @classmethod
    def default_empty_cache_map(cls, v):
        if v is None or (isinstance(v, str) and not v.strip()):
            return "{}"
        return v

    @field_validator("cache_dir", "cache_source", "cache_target", mode="before")
    @classmethod
    def empty_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("builder", mode="before")
    @classmethod
    def default_builder(cls, v):
        if v is None or (isinstance(v, str) and not v.strip()):
            return DEFAULT_BUILDER
        return v

    @field_validator("utility_image", mode="before")
    @classmethod
    def default_utility_image(cls, v):
        if v is None or (isinstance(v, str) and not v.strip()):
            return DEFAULT_UTILITY_IMAGE
        return v

    @model_validator(mode="after")
    def merge_deprecated_source_target(self) -> "DanceConfig":
        if self.cache_source and self.cache_target:
            log.warning(
                "The `cache-source` and `cache-target` options are deprecated. "
                "Use `cache-map` instead."
            )
            self.cache_map = json.dumps({self.cache_source: self.cache_target})
        return self

    @property
    def resolved_utility_image(self) -> str:
        """
        Image used for the helper builds.

        A custom image always wins; otherwise rsync mode needs an image with
        rsync installed.
        """
        if self.utility_image != DEFAULT_UTILITY_IMAGE:
            return self.utility_image
        if self.rsync_mode:
            return RSYNC_UTILITY_IMAGE
        return DEFAULT_UTILITY_IMAGE

    def diagnostics(self) -> Diagnostics:
        return Diagnostics(enabled=self.debug)
