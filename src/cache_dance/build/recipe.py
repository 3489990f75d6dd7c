"""Generator for the throwaway build recipes ("Dancefiles")."""

import logging
from dataclasses import dataclass
from pathlib import Path

from ..cache_map.options import CacheOptions
from ..safety import validate_mount_value, validate_recipe_value

logger = logging.getLogger(__name__)

# Staging path inside the helper image. Must differ from any mount target.
STAGING_PATH = "/var/dance-cache"
BUILDSTAMP_FILE = "buildstamp"
EXTRACT_RECIPE_NAME = "Dancefile.extract"
INJECT_RECIPE_NAME = "Dancefile.inject"

EXTRACT_TEMPLATE = """
FROM {image}
COPY {buildstamp} {buildstamp}
RUN --mount={mount_args} \\
    mkdir -p {staging}/ \\
    && cp -p -R {target}/. {staging}/ || true
"""

INJECT_TEMPLATE = """
FROM {image}
COPY {buildstamp} {buildstamp}
RUN --mount={mount_args} \\
    --mount=type=bind,source=.,target={staging} \\
    {copy_command}{ownership} || true
"""

# cp copies everything; rsync --ignore-existing keeps files already in the mount
CP_INJECT_COMMAND = "cp -p -R {staging}/. {target}"
RSYNC_INJECT_COMMAND = "rsync -a --ignore-existing {staging}/ {target}/"


@dataclass(frozen=True)
class RecipeValues:
    """Values interpolated into a recipe, already checked for safety."""

    image: str
    target: str
    mount_args: str
    uid: str = ""
    gid: str = ""

    @classmethod
    def from_options(cls, options: CacheOptions, image: str) -> "RecipeValues":
        """
        Collect and validate recipe values for a cache entry.

        Raises:
            SecurityError: If any value could break out of the recipe
        """
        values = cls(
            image=validate_recipe_value(image, "utility image"),
            target=validate_mount_value(options.target_path, "target path"),
            mount_args=validate_mount_value(options.mount_args(), "mount args"),
            uid=options.uid,
            gid=options.gid,
        )
        if values.uid:
            validate_mount_value(values.uid, "uid")
        if values.gid:
            validate_mount_value(values.gid, "gid")
        return values

    @property
    def ownership_command(self) -> str:
        """``chown`` suffix restoring file ownership, empty without uid/gid."""
        if not self.uid and not self.gid:
            return ""
        return f" && chown -R {self.uid}:{self.gid} {self.target}"


def generate_extract_recipe(values: RecipeValues) -> str:
    """Recipe copying the cache mount contents into the staging path."""
    return EXTRACT_TEMPLATE.format(
        image=values.image,
        buildstamp=BUILDSTAMP_FILE,
        mount_args=values.mount_args,
        staging=STAGING_PATH,
        target=values.target,
    )


def generate_inject_recipe(values: RecipeValues, rsync: bool = False) -> str:
    """Recipe copying the bind-mounted build context into the cache mount."""
    template = RSYNC_INJECT_COMMAND if rsync else CP_INJECT_COMMAND
    copy_command = template.format(staging=STAGING_PATH, target=values.target)
    return INJECT_TEMPLATE.format(
        image=values.image,
        buildstamp=BUILDSTAMP_FILE,
        mount_args=values.mount_args,
        staging=STAGING_PATH,
        copy_command=copy_command,
        ownership=values.ownership_command,
    )


def write_recipe(content: str, output_path: Path) -> Path:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(content)
    logger.info(f"Generated {output_path.name}:\n{content}")
    return output_path
