from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from datetime import datetime
from typing import Optional, Dict


class CamelModel(BaseModel):
    """Serialize with camelCase keys for the frontend, accept either form."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PodInfo(CamelModel):
    name: str
    namespace: str = "default"
    status: str = ""
    image: str = ""
    created_at: Optional[datetime] = None
    pod_ip: Optional[str] = Field(default=None, alias="podIP")
    ports: Dict[str, int] = Field(default_factory=dict)
    node_port: Optional[int] = None


class CreatePodRequest(CamelModel):
    name: str = ""
    image: str = "ubuntu:22.04"
    jupyter_port: int = 8888


class FileInfo(CamelModel):
    name: str
    size: int = Field(default=0, ge=0)
    is_directory: bool = False
    modified_at: Optional[datetime] = None


class UploadResponse(CamelModel):
    success: bool
    file_path: Optional[str] = None
    error: Optional[str] = None


class LogEntry(CamelModel):
    timestamp: str
    message: str
