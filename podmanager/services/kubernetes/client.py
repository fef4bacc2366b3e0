"""
Kubernetes Client for Managed Pods

This module provides a thin async interface over the Kubernetes CoreV1 API
for the resources this service manages: pods, their paired services, pod
logs and exec streams. All resources live in one namespace.

Blocking client calls run in worker threads via asyncio.to_thread so that
request handlers, the pod monitor and log streams never block each other.
"""

from kubernetes import client, config
from kubernetes.client.rest import ApiException
from kubernetes.stream import stream
import logging
import asyncio
from typing import List, Optional

from ...config import get_settings
from ...exceptions import ExecChannelError, NotFoundError, OrchestratorError

logger = logging.getLogger(__name__)


def _api_error(action: str, e: ApiException) -> OrchestratorError:
    return OrchestratorError(f"Failed to {action}: {e.reason}", status=e.status)


class KubernetesClient:
    """
    Manages Kubernetes resources for user pods.

    Not-found results are reported as None/False so callers can treat
    absence as a normal outcome (reading the log of a missing pod raises
    NotFoundError); every other API failure is raised as OrchestratorError.
    """

    def __init__(self, namespace: Optional[str] = None):
        """Initialize Kubernetes client with in-cluster or kubeconfig."""
        self.settings = get_settings()

        try:
            # Try in-cluster config first (for production)
            config.load_incluster_config()
            logger.info("Loaded in-cluster Kubernetes configuration")
        except config.ConfigException:
            try:
                # Fall back to kubeconfig (for development)
                config.load_kube_config()
                logger.info("Loaded kubeconfig for development")
            except config.ConfigException as e:
                logger.error(f"Failed to load Kubernetes config: {e}")
                raise RuntimeError("Cannot load Kubernetes configuration") from e

        self.core_v1 = client.CoreV1Api()
        self.namespace = namespace or self.settings.k8s_namespace
        self.container_name = self.settings.k8s_container_name

        logger.info(f"Kubernetes client initialized - Namespace: {self.namespace}")

    # =========================================================================
    # POD MANAGEMENT
    # =========================================================================

    async def list_pods(self, label_selector: str) -> List[client.V1Pod]:
        """List pods in the managed namespace matching a label selector."""
        try:
            pods = await asyncio.to_thread(
                self.core_v1.list_namespaced_pod,
                namespace=self.namespace,
                label_selector=label_selector
            )
            return list(pods.items)
        except ApiException as e:
            raise _api_error("list pods", e) from e

    async def read_pod(self, name: str) -> Optional[client.V1Pod]:
        """Read a pod, or None if it does not exist."""
        try:
            return await asyncio.to_thread(
                self.core_v1.read_namespaced_pod,
                name=name,
                namespace=self.namespace
            )
        except ApiException as e:
            if e.status == 404:
                return None
            raise _api_error(f"read pod {name}", e) from e

    async def create_pod(self, pod: client.V1Pod) -> client.V1Pod:
        """Create a pod."""
        try:
            created = await asyncio.to_thread(
                self.core_v1.create_namespaced_pod,
                namespace=self.namespace,
                body=pod
            )
            logger.info(f"[K8S] ✅ Created pod: {pod.metadata.name}")
            return created
        except ApiException as e:
            raise _api_error(f"create pod {pod.metadata.name}", e) from e

    async def delete_pod(self, name: str) -> bool:
        """Delete a pod. Returns False if it was already gone."""
        try:
            await asyncio.to_thread(
                self.core_v1.delete_namespaced_pod,
                name=name,
                namespace=self.namespace
            )
            logger.info(f"[K8S] Deleted pod: {name}")
            return True
        except ApiException as e:
            if e.status == 404:
                logger.debug(f"[K8S] Pod {name} already absent")
                return False
            raise _api_error(f"delete pod {name}", e) from e

    async def read_pod_log(self, name: str, tail_lines: int = 100) -> str:
        """Read the last `tail_lines` lines of a pod's log."""
        try:
            return await asyncio.to_thread(
                self.core_v1.read_namespaced_pod_log,
                name=name,
                namespace=self.namespace,
                tail_lines=tail_lines
            )
        except ApiException as e:
            if e.status == 404:
                raise NotFoundError(f"Pod {name} not found") from e
            raise _api_error(f"read logs for pod {name}", e) from e

    # =========================================================================
    # SERVICE MANAGEMENT
    # =========================================================================

    async def list_services(self, label_selector: str) -> List[client.V1Service]:
        """List services in the managed namespace matching a label selector."""
        try:
            services = await asyncio.to_thread(
                self.core_v1.list_namespaced_service,
                namespace=self.namespace,
                label_selector=label_selector
            )
            return list(services.items)
        except ApiException as e:
            raise _api_error("list services", e) from e

    async def read_service(self, name: str) -> Optional[client.V1Service]:
        """Read a service, or None if it does not exist."""
        try:
            return await asyncio.to_thread(
                self.core_v1.read_namespaced_service,
                name=name,
                namespace=self.namespace
            )
        except ApiException as e:
            if e.status == 404:
                return None
            raise _api_error(f"read service {name}", e) from e

    async def create_service(self, service: client.V1Service) -> client.V1Service:
        """Create a service."""
        try:
            created = await asyncio.to_thread(
                self.core_v1.create_namespaced_service,
                namespace=self.namespace,
                body=service
            )
            logger.info(f"[K8S] ✅ Created service: {service.metadata.name}")
            return created
        except ApiException as e:
            raise _api_error(f"create service {service.metadata.name}", e) from e

    async def delete_service(self, name: str) -> bool:
        """Delete a service. Returns False if it was already gone."""
        try:
            await asyncio.to_thread(
                self.core_v1.delete_namespaced_service,
                name=name,
                namespace=self.namespace
            )
            logger.info(f"[K8S] Deleted service: {name}")
            return True
        except ApiException as e:
            if e.status == 404:
                logger.debug(f"[K8S] Service {name} already absent")
                return False
            raise _api_error(f"delete service {name}", e) from e

    # =========================================================================
    # EXEC STREAMS
    # =========================================================================

    def _get_stream_client(self) -> client.CoreV1Api:
        """
        Create a fresh CoreV1Api client for stream operations.

        The kubernetes-python `stream()` function temporarily patches the
        api_client.request method to use WebSocket. Sharing self.core_v1 would
        let concurrent regular API calls (the pod monitor lists pods every few
        seconds) pick up the patched method and fail with
        "WebSocketBadStatusException: Handshake status 200 OK".
        """
        return client.CoreV1Api()

    def open_exec_stream(
        self,
        pod_name: str,
        command: List[str],
        stdin: bool = False,
        tty: bool = False
    ):
        """
        Open a multiplexed exec websocket to the pod's primary container.

        Blocking; call through asyncio.to_thread.

        Args:
            pod_name: Name of the pod
            command: Command vector to execute
            stdin: Whether to open the stdin sub-stream
            tty: Allocate a pseudo-terminal (interactive terminal only)

        Returns:
            kubernetes.stream.ws_client.WSClient, not yet pumped
        """
        try:
            logger.debug(f"[K8S:EXEC] Opening exec in pod {pod_name}: {' '.join(command[:3])}...")

            return stream(
                self._get_stream_client().connect_get_namespaced_pod_exec,
                pod_name,
                self.namespace,
                container=self.container_name,
                command=command,
                stderr=True,
                stdin=stdin,
                stdout=True,
                tty=tty,
                _preload_content=False
            )

        except Exception as e:
            logger.error(f"[K8S:EXEC] Failed to open exec channel to pod {pod_name}: {e}")
            raise ExecChannelError(f"Failed to open exec channel to pod {pod_name}: {e}") from e


# Global instance - lazily initialized
_k8s_client_instance: Optional[KubernetesClient] = None


def get_k8s_client() -> KubernetesClient:
    """Get or create the global Kubernetes client instance."""
    global _k8s_client_instance
    if _k8s_client_instance is None:
        _k8s_client_instance = KubernetesClient()
    return _k8s_client_instance
