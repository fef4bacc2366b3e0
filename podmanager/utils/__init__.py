"""Utility modules for the pod manager service."""

from .paths import (
    normalize_directory,
    normalize_file,
    escape_shell_arg,
    join_path,
    basename,
)
from .listing import parse_listing
from .resource_naming import sanitize_pod_name, get_service_name

__all__ = [
    'normalize_directory',
    'normalize_file',
    'escape_shell_arg',
    'join_path',
    'basename',
    'parse_listing',
    'sanitize_pod_name',
    'get_service_name',
]
