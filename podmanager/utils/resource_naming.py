"""
Resource naming utilities for managed pods.

Pod names must be DNS-1123 labels: lowercase alphanumeric and '-',
starting and ending with an alphanumeric character.

Every managed pod `P` is paired with exactly one Service named `service-P`.
The pairing is derived from the name and never stored.
"""

import re
import uuid

_INVALID_CHARS = re.compile(r"[^a-z0-9]")
_DASH_RUNS = re.compile(r"-+")


def generate_pod_name() -> str:
    """Random fallback name, e.g. "pod-3f2a9c1e"."""
    return "pod-" + uuid.uuid4().hex[:8]


def sanitize_pod_name(name: str) -> str:
    """
    Turn a user-supplied name into a DNS-safe pod name.

    Examples:
        >>> sanitize_pod_name("My Pod!!")
        "my-pod"
        >>> sanitize_pod_name("!!!")  # -> generated, e.g. "pod-3f2a9c1e"
    """
    if not name or not name.strip():
        return generate_pod_name()

    sanitized = _INVALID_CHARS.sub("-", name.lower())
    sanitized = _DASH_RUNS.sub("-", sanitized).strip("-")

    if not sanitized:
        return generate_pod_name()

    if not sanitized[0].isalnum():
        sanitized = "p" + sanitized

    return sanitized


def get_service_name(pod_name: str) -> str:
    """Name of the Service paired with a pod."""
    return f"service-{pod_name}"
