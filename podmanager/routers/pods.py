"""
Pods Router

CRUD endpoints for user pods and their paired NodePort services.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from fastapi.responses import PlainTextResponse

from ..schemas import CreatePodRequest, PodInfo
from ..services.pod_manager import PodManager, get_pod_manager
from ..services.subscription_hub import SubscriptionHub
from .hub import get_hub

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("", response_model=List[PodInfo], response_model_by_alias=True)
async def list_pods(pod_manager: PodManager = Depends(get_pod_manager)):
    """List all managed pods."""
    return await pod_manager.list_pods()


@router.get("/{name}", response_model=PodInfo, response_model_by_alias=True)
async def get_pod(name: str, pod_manager: PodManager = Depends(get_pod_manager)):
    pod = await pod_manager.get_pod(name)
    if pod is None:
        raise HTTPException(status_code=404, detail=f"Pod {name} not found")
    return pod


@router.post("", response_model=PodInfo, response_model_by_alias=True, status_code=status.HTTP_201_CREATED)
async def create_pod(
    request: CreatePodRequest,
    response: Response,
    pod_manager: PodManager = Depends(get_pod_manager),
    hub: SubscriptionHub = Depends(get_hub)
):
    """
    Create (or recreate) a pod with its NodePort service.

    An existing pod with the same sanitized name is replaced.
    """
    pod = await pod_manager.create_pod(request)
    response.headers["Location"] = f"/api/pods/{pod.name}"

    await hub.send_to_group(pod.name, {
        "type": "PodUpdate",
        "pod": pod.model_dump(mode="json", by_alias=True),
    })
    return pod


@router.delete("/{name}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_pod(
    name: str,
    pod_manager: PodManager = Depends(get_pod_manager),
    hub: SubscriptionHub = Depends(get_hub)
):
    """Delete a pod and its service. Deleting an absent pod succeeds."""
    await pod_manager.delete_pod(name)
    await hub.send_to_group(name, {"type": "PodDeleted", "pod": name})
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{name}/logs", response_class=PlainTextResponse)
async def get_pod_logs(
    name: str,
    tail_lines: int = Query(100, alias="tailLines", ge=1),
    pod_manager: PodManager = Depends(get_pod_manager)
):
    return await pod_manager.get_pod_logs(name, tail_lines=tail_lines)
