from __future__ import annotations

import pytest

from s3streamarchive.naming import (
    basename,
    is_folder_marker,
    is_valid_source_key,
    normalize_prefix,
    resolve_name,
)


class TestResolveName:
    def test_strips_folders_by_default(self):
        assert resolve_name("a/b/c.txt") == "c.txt"

    def test_preserves_folder_structure(self):
        assert resolve_name("a/b/c.txt", preserve_folder_structure=True) == "a/b/c.txt"

    @pytest.mark.parametrize("preserve", [False, True])
    def test_explicit_name_wins(self, preserve):
        assert resolve_name("a/b/c.txt", "renamed.txt", preserve) == "renamed.txt"

    def test_empty_explicit_name_is_ignored(self):
        assert resolve_name("a/b/c.txt", "") == "c.txt"

    def test_key_without_separator_is_unchanged(self):
        assert resolve_name("c.txt") == "c.txt"

    def test_strip_prefix_keeps_nested_folders(self):
        assert resolve_name("dir/x.txt", strip_prefix="dir/") == "x.txt"
        assert resolve_name("dir/sub/y.txt", strip_prefix="dir/") == "sub/y.txt"

    def test_preserve_ignores_strip_prefix(self):
        assert resolve_name("dir/sub/y.txt", preserve_folder_structure=True, strip_prefix="dir/") == "dir/sub/y.txt"

    def test_empty_strip_prefix_keeps_key(self):
        assert resolve_name("dir/sub/y.txt", strip_prefix="") == "dir/sub/y.txt"

    def test_is_deterministic(self):
        results = {resolve_name("x/y/z.bin", None, False, "x/") for _ in range(10)}
        assert results == {"y/z.bin"}


class TestKeyHelpers:
    @pytest.mark.parametrize(
        ("prefix", "expected"),
        [
            ("dir", "dir/"),
            ("dir/", "dir/"),
            ("dir///", "dir/"),
            ("a/b", "a/b/"),
            ("", ""),
            ("/", ""),
        ],
    )
    def test_normalize_prefix(self, prefix, expected):
        assert normalize_prefix(prefix) == expected

    @pytest.mark.parametrize(("key", "expected"), [("", True), ("dir/", True), ("dir/file", False), (None, True)])
    def test_is_folder_marker(self, key, expected):
        assert is_folder_marker(key) is expected
        assert is_valid_source_key(key) is not expected

    def test_basename(self):
        assert basename("a/b/c") == "c"
        assert basename("c") == "c"
