"""
Kubernetes Manifest Helpers

Builds the two resources behind every managed pod:
- Pod: a single container named after settings.k8s_container_name, never restarted
- Service: NodePort service `service-<pod>` selecting the pod by name label

Image templates decide the container command, args and exposed port from the
requested image string. The table is ordered; the first matching predicate
wins and anything unrecognized falls back to an idle shell.
"""

from dataclasses import dataclass
from kubernetes import client
from typing import Callable, Dict, List, Optional, Tuple
import logging

from ...utils.resource_naming import get_service_name

logger = logging.getLogger(__name__)

POD_NAME_LABEL = "user-pod-name"
CONTAINER_PORT_NAME = "main-port"

IDLE_SHELL_COMMAND = ["/bin/bash", "-c", "sleep infinity"]

JUPYTER_ARGS = [
    "start-notebook.sh",
    "--NotebookApp.token=''",
    "--NotebookApp.password=''",
    "--NotebookApp.allow_origin='*'",
]


@dataclass(frozen=True)
class ImageTemplate:
    """Launch settings resolved for a requested image."""
    image: str
    command: Optional[List[str]]
    args: Optional[List[str]]
    port: int


def _is_tagged(image: str) -> bool:
    return ":" in image


def _jupyter_template(image: str) -> ImageTemplate:
    return ImageTemplate(
        image=image if _is_tagged(image) else f"{image}:latest",
        command=None,
        args=list(JUPYTER_ARGS),
        port=8888,
    )


def _ubuntu_template(image: str) -> ImageTemplate:
    return ImageTemplate(
        image=image if _is_tagged(image) else "ubuntu:22.04",
        command=list(IDLE_SHELL_COMMAND),
        args=None,
        port=80,
    )


def _default_template(image: str) -> ImageTemplate:
    return ImageTemplate(
        image=image,
        command=list(IDLE_SHELL_COMMAND),
        args=None,
        port=8888,
    )


IMAGE_TEMPLATES: List[Tuple[Callable[[str], bool], Callable[[str], ImageTemplate]]] = [
    (lambda image: "jupyter" in image, _jupyter_template),
    (lambda image: "ubuntu" in image, _ubuntu_template),
]


def resolve_image_template(image: str) -> ImageTemplate:
    """
    Resolve command, args and port for a requested image.

    Examples:
        >>> resolve_image_template("jupyter/base-notebook").image
        "jupyter/base-notebook:latest"
        >>> resolve_image_template("ubuntu").image
        "ubuntu:22.04"
    """
    for matches, build in IMAGE_TEMPLATES:
        if matches(image):
            return build(image)
    return _default_template(image)


# =============================================================================
# Labels
# =============================================================================

def get_standard_labels(pod_name: str, app_label: str) -> Dict[str, str]:
    """
    Get standard labels for a managed resource.

    Args:
        pod_name: Sanitized pod name the resource belongs to
        app_label: Value of the `app` label (pod label or service label)

    Returns:
        Dict of labels
    """
    return {
        "app": app_label,
        POD_NAME_LABEL: pod_name,
    }


# =============================================================================
# Manifests
# =============================================================================

def create_pod_manifest(
    pod_name: str,
    namespace: str,
    template: ImageTemplate,
    app_label: str,
    container_name: str = "main"
) -> client.V1Pod:
    """
    Create Pod manifest for a user pod.

    Args:
        pod_name: Sanitized pod name
        namespace: Kubernetes namespace
        template: Resolved image template
        app_label: Value of the `app` label used to list managed pods
        container_name: Name of the single container

    Returns:
        V1Pod manifest
    """
    container = client.V1Container(
        name=container_name,
        image=template.image,
        command=template.command,
        args=template.args,
        ports=[
            client.V1ContainerPort(
                container_port=template.port,
                name=CONTAINER_PORT_NAME
            )
        ]
    )

    return client.V1Pod(
        metadata=client.V1ObjectMeta(
            name=pod_name,
            namespace=namespace,
            labels=get_standard_labels(pod_name, app_label)
        ),
        spec=client.V1PodSpec(
            containers=[container],
            restart_policy="Never"
        )
    )


def create_service_manifest(
    pod_name: str,
    namespace: str,
    port: int,
    app_label: str
) -> client.V1Service:
    """
    Create NodePort Service manifest paired with a user pod.

    The node port is left unset so Kubernetes assigns one.
    """
    return client.V1Service(
        metadata=client.V1ObjectMeta(
            name=get_service_name(pod_name),
            namespace=namespace,
            labels=get_standard_labels(pod_name, app_label)
        ),
        spec=client.V1ServiceSpec(
            selector={POD_NAME_LABEL: pod_name},
            ports=[
                client.V1ServicePort(
                    port=port,
                    target_port=port
                )
            ],
            type="NodePort"
        )
    )
