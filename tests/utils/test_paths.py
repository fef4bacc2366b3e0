"""
Unit tests for path validation and shell quoting.
"""

import shutil
import subprocess

import pytest

from podmanager.exceptions import InvalidPathError
from podmanager.utils.paths import (
    basename,
    escape_shell_arg,
    join_path,
    normalize_directory,
    normalize_file,
)


@pytest.mark.unit
class TestNormalizeDirectory:

    @pytest.mark.parametrize("path", [None, "", "   "])
    def test_blank_uses_default(self, path):
        assert normalize_directory(path) == "/"
        assert normalize_directory(path, default="/home/user") == "/home/user/"

    def test_adds_single_trailing_slash(self):
        assert normalize_directory("/tmp") == "/tmp/"
        assert normalize_directory("/tmp///") == "/tmp/"
        assert normalize_directory("  /var/log  ") == "/var/log/"

    def test_root_stays_root(self):
        assert normalize_directory("/") == "/"

    def test_relative_path_rejected(self):
        with pytest.raises(InvalidPathError, match="absolute"):
            normalize_directory("tmp")

    @pytest.mark.parametrize("path", ["/tmp/../etc", "/..", "/a/..b"])
    def test_dotdot_rejected(self, path):
        with pytest.raises(InvalidPathError, match="invalid path"):
            normalize_directory(path)

    def test_invalid_path_is_value_error(self):
        with pytest.raises(ValueError):
            normalize_directory("relative/dir")


@pytest.mark.unit
class TestNormalizeFile:

    @pytest.mark.parametrize("path", [None, "", "  "])
    def test_empty_rejected(self, path):
        with pytest.raises(InvalidPathError):
            normalize_file(path)

    def test_trimmed(self):
        assert normalize_file("  /etc/hosts ") == "/etc/hosts"

    def test_traversal_rejected(self):
        with pytest.raises(InvalidPathError):
            normalize_file("/home/../etc/shadow")

    def test_relative_rejected(self):
        with pytest.raises(InvalidPathError):
            normalize_file("etc/hosts")


@pytest.mark.unit
class TestShellHelpers:

    def test_escape_plain(self):
        assert escape_shell_arg("/tmp/a b.txt") == "'/tmp/a b.txt'"

    def test_escape_single_quote(self):
        assert escape_shell_arg("it's") == "'it'\"'\"'s'"

    def test_escape_neutralizes_substitution(self):
        # Everything stays inside single quotes, so $() is not expanded
        assert escape_shell_arg("/tmp/$(rm -rf /)") == "'/tmp/$(rm -rf /)'"

    @pytest.mark.skipif(shutil.which("sh") is None, reason="needs a POSIX shell")
    @pytest.mark.parametrize("value", [
        "it's",
        "''",
        "a'b'c",
        "`id`",
        "$(echo pwned)",
        "$HOME",
        "a;b && c | d",
        "back\\slash \"double\"",
        "line\nbreak",
        "/tmp/it's here.txt",
    ])
    def test_escape_survives_real_shell(self, value):
        result = subprocess.run(
            ["sh", "-c", f"printf %s {escape_shell_arg(value)}"],
            capture_output=True,
            text=True,
            check=True,
        )

        assert result.stdout == value

    def test_basename_handles_both_separators(self):
        assert basename("C:\\Users\\me\\notes.txt") == "notes.txt"
        assert basename("/tmp/data.csv") == "data.csv"
        assert basename("plain.txt") == "plain.txt"
        assert basename("") == ""

    def test_join_path(self):
        assert join_path("/tmp/", "a.txt") == "/tmp/a.txt"
        assert join_path("/", "a.txt") == "/a.txt"
