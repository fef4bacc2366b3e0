"""
Services Module

Key Submodules:
- kubernetes: API client, manifests and exec transport
- pod_manager: Pod + service lifecycle
- file_transfer: Upload, download and listing over exec
- subscription_hub / pod_monitor: Live pod state for websocket observers
"""

from .pod_manager import PodManager, get_pod_manager
from .file_transfer import FileTransferService, DownloadResult, get_file_transfer
from .subscription_hub import SubscriptionHub, StreamHandle, LogStreamRegistry
from .pod_monitor import PodMonitor

__all__ = [
    "PodManager",
    "get_pod_manager",
    "FileTransferService",
    "DownloadResult",
    "get_file_transfer",
    "SubscriptionHub",
    "StreamHandle",
    "LogStreamRegistry",
    "PodMonitor",
]
