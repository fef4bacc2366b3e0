"""
Path helpers for commands executed inside pods.

User-supplied paths end up inside `/bin/sh -c` strings, so every path is
validated here before a command is built, and quoted with escape_shell_arg
when it is interpolated.

The traversal check is deliberately coarse: any literal ".." is rejected.
Encoded sequences and symlinks inside the pod are not resolved.
"""

from typing import Optional

from ..exceptions import InvalidPathError


def _validate(path: str) -> str:
    if not path.startswith("/"):
        raise InvalidPathError("Path must be absolute (start with '/')")
    if ".." in path:
        raise InvalidPathError("invalid path")
    return path


def normalize_directory(path: Optional[str], default: str = "/") -> str:
    """
    Validate a directory path and return it with exactly one trailing slash.

    Args:
        path: User-supplied directory path; blank means `default`
        default: Directory used when no path was given

    Returns:
        Absolute directory path ending in "/"

    Raises:
        InvalidPathError: Path is relative or contains ".."
    """
    if path is None or not path.strip():
        path = default

    directory = _validate(path.strip())
    return directory.rstrip("/") + "/"


def normalize_file(path: Optional[str]) -> str:
    """
    Validate a file path and return it trimmed.

    Raises:
        InvalidPathError: Path is empty, relative or contains ".."
    """
    if path is None or not path.strip():
        raise InvalidPathError("File path is required")

    return _validate(path.strip())


def escape_shell_arg(value: str) -> str:
    """
    Quote a value for /bin/sh.

    The value is wrapped in single quotes; each embedded single quote closes
    the quote, emits a double-quoted quote and reopens: ' -> '"'"'
    """
    return "'" + value.replace("'", "'\"'\"'") + "'"


def basename(path: str) -> str:
    """Last component of a '/' or '\\' separated path (browsers may send either)."""
    return path.replace("\\", "/").rstrip("/").split("/")[-1] if path else ""


def join_path(directory: str, name: str) -> str:
    """Join a normalized directory (trailing '/') and a bare file name."""
    return f"{directory.rstrip('/')}/{name}"
