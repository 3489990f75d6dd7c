"""Unit tests for path and name safety checks."""

import pytest

from cache_dance.exceptions import SecurityError
from cache_dance.safety import (
    SHELL_METACHARACTERS,
    is_within,
    reject_shell_metacharacters,
    unique_suffix,
    validate_mount_value,
    validate_recipe_value,
    validate_relative_path,
    validate_safe_path,
)


class TestUniqueSuffix:
    """Tests for unique_suffix."""

    def test_absolute_path(self):
        assert unique_suffix("/var/cache/apt") == "var-cache-apt"

    def test_plain_name_is_unchanged(self):
        assert unique_suffix("go-mod") == "go-mod"

    def test_repeated_separators_collapse(self):
        assert unique_suffix("//var//cache//") == "var-cache"

    def test_lowercases(self):
        assert unique_suffix("Cache-Mount/Go_Mod") == "cache-mount-go-mod"

    def test_deterministic(self):
        assert unique_suffix("cache-mount/pip") == unique_suffix("cache-mount/pip")

    def test_distinct_host_paths_get_distinct_suffixes(self):
        paths = ["cache-mount/go-mod", "cache-mount/go-build", "cache-mount/pip", "apt"]
        assert len({unique_suffix(p) for p in paths}) == len(paths)


class TestValidateRelativePath:
    """Tests for validate_relative_path."""

    @pytest.mark.parametrize("path", ["cache", "cache-mount/go-mod", "./x", "cache/"])
    def test_accepts_relative_paths(self, path):
        validate_relative_path(path)

    def test_rejects_absolute_path(self):
        with pytest.raises(SecurityError, match="must be a relative path"):
            validate_relative_path("/etc/passwd", "cache source")

    @pytest.mark.parametrize(
        "path", ["..", "../etc", "../../etc", "a/../../b", "a/..", "a/../b", "a/b/../.."]
    )
    def test_rejects_traversal(self, path):
        with pytest.raises(SecurityError, match="path traversal"):
            validate_relative_path(path)

    @pytest.mark.parametrize("path", [".", "./", "./."])
    def test_rejects_working_root(self, path):
        with pytest.raises(SecurityError, match="below the working root"):
            validate_relative_path(path, "cache source")

    def test_rejects_empty_path(self):
        with pytest.raises(SecurityError, match="must not be empty"):
            validate_relative_path("", "cache source")


class TestRejectShellMetacharacters:
    """Tests for reject_shell_metacharacters."""

    @pytest.mark.parametrize("char", sorted(SHELL_METACHARACTERS))
    def test_rejects_each_metacharacter(self, char):
        with pytest.raises(SecurityError, match="dangerous characters"):
            reject_shell_metacharacters(f"cache{char}dir")

    def test_accepts_clean_value(self):
        reject_shell_metacharacters("type=cache,target=/go/pkg/mod,id=go-mod")

    def test_error_names_label(self):
        with pytest.raises(SecurityError, match="scratch directory"):
            reject_shell_metacharacters("a;b", "scratch directory")


class TestValidateSafePath:
    """Tests for validate_safe_path."""

    def test_combines_both_checks(self):
        with pytest.raises(SecurityError):
            validate_safe_path("/abs")
        with pytest.raises(SecurityError):
            validate_safe_path("cache$(id)")
        validate_safe_path("cache-mount/go-mod")


class TestValidateRecipeValue:
    """Tests for validate_recipe_value."""

    def test_returns_value(self):
        assert validate_recipe_value("/go/pkg/mod") == "/go/pkg/mod"

    @pytest.mark.parametrize(
        "value", ["/tmp/x\nRUN rm -rf /", "/tmp/a b", "/tmp/\tx", "/tmp/x;ls", ""]
    )
    def test_rejects_unsafe_values(self, value):
        with pytest.raises(SecurityError):
            validate_recipe_value(value, "target path")


class TestIsWithin:
    """Tests for is_within."""

    def test_inside(self, tmp_path):
        assert is_within("a/b", tmp_path)
        assert is_within(".", tmp_path)

    def test_outside(self, tmp_path):
        assert not is_within("../x", tmp_path)
        assert not is_within("/etc", tmp_path)


class TestValidateMountValue:
    """Tests for validate_mount_value."""

    @pytest.mark.parametrize(
        "value",
        [
            "/go/pkg/mod",
            "type=cache,target=/root/.cache/go-build,id=go_build,sharing=locked",
            "1000",
        ],
    )
    def test_accepts_allowed_characters(self, value):
        assert validate_mount_value(value, "mount args") == value

    @pytest.mark.parametrize(
        "value", ["/tmp/%x", "/tmp/a^b", "/tmp/a@b", "/tmp/a+b", "/tmp/a:b", "/var/caché"]
    )
    def test_rejects_characters_outside_allowed_set(self, value):
        with pytest.raises(SecurityError, match="outside"):
            validate_mount_value(value, "target path")

    def test_still_rejects_metacharacters(self):
        with pytest.raises(SecurityError, match="dangerous characters"):
            validate_mount_value("/tmp/$(id)", "target path")
