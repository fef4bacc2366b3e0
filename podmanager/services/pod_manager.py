"""
Pod Lifecycle Manager

Creates, reads, lists and deletes user pods together with their paired
NodePort services.

Lifecycle per pod name: Absent -> Creating -> Present -> Deleting -> Absent.

Create is idempotent: an existing pod with the same sanitized name is deleted
first, and its disappearance is polled for a bounded time. If the pod is still
terminating when the poll gives up, creation proceeds anyway and Kubernetes
may answer 409; that race is accepted.
"""

import logging
from typing import Dict, List, Optional

from kubernetes import client
from tenacity import AsyncRetrying, retry_if_result, stop_after_attempt, wait_fixed

from ..config import get_settings
from ..schemas import CreatePodRequest, PodInfo
from ..utils.resource_naming import get_service_name, sanitize_pod_name
from .kubernetes.client import KubernetesClient, get_k8s_client
from .kubernetes.helpers import create_pod_manifest, create_service_manifest, resolve_image_template

logger = logging.getLogger(__name__)


def map_to_pod_info(pod: client.V1Pod, service: Optional[client.V1Service] = None) -> PodInfo:
    """Compose a PodInfo from a pod and (optionally) its paired service."""
    containers = (pod.spec.containers if pod.spec else None) or []

    ports: Dict[str, int] = {}
    for container in containers:
        for port in container.ports or []:
            ports[port.name or str(port.container_port)] = port.container_port

    node_port = None
    if service is not None and service.spec and service.spec.ports:
        node_port = service.spec.ports[0].node_port

    return PodInfo(
        name=pod.metadata.name,
        namespace=pod.metadata.namespace or "default",
        status=(pod.status.phase if pod.status else None) or "",
        image=containers[0].image if containers else "",
        created_at=pod.metadata.creation_timestamp,
        pod_ip=pod.status.pod_ip if pod.status else None,
        ports=ports,
        node_port=node_port,
    )


class PodManager:
    """Lifecycle operations for user pods and their services."""

    def __init__(self, k8s_client: KubernetesClient, settings=None):
        self.k8s = k8s_client
        self.settings = settings or get_settings()

    @property
    def _pod_selector(self) -> str:
        return f"app={self.settings.pod_label}"

    @property
    def _service_selector(self) -> str:
        return f"app={self.settings.service_label}"

    # =========================================================================
    # READ
    # =========================================================================

    async def list_pods(self) -> List[PodInfo]:
        """List all managed pods, each merged with its paired service."""
        pods = await self.k8s.list_pods(self._pod_selector)
        services = await self.k8s.list_services(self._service_selector)

        services_by_name = {svc.metadata.name: svc for svc in services}

        return [
            map_to_pod_info(pod, services_by_name.get(get_service_name(pod.metadata.name)))
            for pod in pods
        ]

    async def get_pod(self, name: str) -> Optional[PodInfo]:
        """Read one pod. Returns None if it does not exist."""
        pod = await self.k8s.read_pod(name)
        if pod is None:
            return None

        service = None
        try:
            service = await self.k8s.read_service(get_service_name(name))
        except Exception as e:
            # The service is optional for reads; the pod is reported without a node port
            logger.debug(f"[K8S] Could not read service for pod {name}: {e}")

        return map_to_pod_info(pod, service)

    async def get_pod_logs(self, name: str, tail_lines: int = 100) -> str:
        """
        Fetch the tail of a pod's log.

        Failures are returned as text so that callers can show them in place
        of the log.
        """
        try:
            return await self.k8s.read_pod_log(name, tail_lines=tail_lines) or ""
        except Exception as e:
            logger.warning(f"[K8S] Error fetching logs for pod {name}: {e}")
            return f"Error fetching logs: {e}"

    # =========================================================================
    # CREATE
    # =========================================================================

    async def _pod_exists(self, name: str) -> bool:
        return await self.k8s.read_pod(name) is not None

    async def wait_for_pod_deletion(self, name: str) -> bool:
        """
        Poll until the pod is gone or the attempts run out.

        Returns:
            True if the pod disappeared in time
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.settings.delete_poll_attempts),
            wait=wait_fixed(self.settings.delete_poll_interval_seconds),
            retry=retry_if_result(lambda present: present),
            retry_error_callback=lambda retry_state: retry_state.outcome.result(),
        )
        still_present = await retrying(self._pod_exists, name)

        if still_present:
            logger.warning(f"[K8S] Pod {name} still terminating after wait, creating anyway")
        return not still_present

    async def create_pod(self, request: CreatePodRequest) -> PodInfo:
        """
        Create (or recreate) a pod and its NodePort service.

        Steps:
        1. Sanitize the name, resolve the image template
        2. Delete an existing pod of that name and wait for it to go away
        3. Create the pod
        4. Replace any stale service and create the paired service
           (the pod is deleted again if this step fails)

        Returns:
            PodInfo composed from the created pod and service
        """
        pod_name = sanitize_pod_name(request.name)
        template = resolve_image_template(request.image)
        namespace = self.k8s.namespace

        logger.info(f"[K8S] Creating pod {pod_name} (image: {template.image}, port: {template.port})")

        if await self._pod_exists(pod_name):
            logger.info(f"[K8S] Pod {pod_name} exists, recreating")
            await self.delete_pod(pod_name)
            await self.wait_for_pod_deletion(pod_name)

        pod_manifest = create_pod_manifest(
            pod_name=pod_name,
            namespace=namespace,
            template=template,
            app_label=self.settings.pod_label,
            container_name=self.settings.k8s_container_name,
        )
        created_pod = await self.k8s.create_pod(pod_manifest)

        service_manifest = create_service_manifest(
            pod_name=pod_name,
            namespace=namespace,
            port=template.port,
            app_label=self.settings.service_label,
        )

        try:
            await self.k8s.delete_service(service_manifest.metadata.name)
            created_service = await self.k8s.create_service(service_manifest)
        except Exception as e:
            logger.error(f"[K8S] Service creation failed for pod {pod_name}, rolling back pod: {e}")
            try:
                await self.k8s.delete_pod(pod_name)
            except Exception as rollback_error:
                logger.error(f"[K8S] Rollback of pod {pod_name} failed: {rollback_error}")
            raise

        return map_to_pod_info(created_pod, created_service)

    # =========================================================================
    # DELETE
    # =========================================================================

    async def delete_pod(self, name: str) -> None:
        """
        Delete a pod and its paired service.

        Either resource already being absent is not an error.
        """
        pod_deleted = await self.k8s.delete_pod(name)
        service_deleted = await self.k8s.delete_service(get_service_name(name))

        logger.info(f"[K8S] Delete {name}: pod {'removed' if pod_deleted else 'absent'}, "
                    f"service {'removed' if service_deleted else 'absent'}")


# Global instance - lazily initialized
_pod_manager_instance: Optional[PodManager] = None


def get_pod_manager() -> PodManager:
    """Get or create the global pod manager instance."""
    global _pod_manager_instance
    if _pod_manager_instance is None:
        _pod_manager_instance = PodManager(get_k8s_client())
    return _pod_manager_instance
