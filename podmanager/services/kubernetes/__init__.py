"""
Kubernetes Module

Kubernetes-specific code behind the pod manager:
- KubernetesClient: Low-level CoreV1 API interactions (pods, services, logs, exec)
- helpers: Image templates, labels and manifests for user pods and services
- ExecTransport: Command execution over the multiplexed exec websocket
"""

from .client import KubernetesClient, get_k8s_client
from .helpers import (
    # Image templates
    ImageTemplate,
    resolve_image_template,
    # Labels and manifests
    get_standard_labels,
    create_pod_manifest,
    create_service_manifest,
)
from .exec_transport import ExecResult, ExecSession, ExecTransport, get_exec_transport

__all__ = [
    # Client
    "KubernetesClient",
    "get_k8s_client",
    # Image templates
    "ImageTemplate",
    "resolve_image_template",
    # Manifest Helpers
    "get_standard_labels",
    "create_pod_manifest",
    "create_service_manifest",
    # Exec
    "ExecResult",
    "ExecSession",
    "ExecTransport",
    "get_exec_transport",
]
