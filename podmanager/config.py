from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Logging level: DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_level: str = "INFO"

    # CORS Configuration
    # Comma-separated list of allowed origins (the Angular dev server by default)
    cors_origins: str = "http://localhost:4200"

    # ==========================================================================
    # Kubernetes Settings
    # ==========================================================================
    # All managed pods and their services live in a single namespace
    k8s_namespace: str = "default"

    # Name of the primary container in every managed pod (exec target)
    k8s_container_name: str = "main"

    # Label values used to select managed resources (app=<label>)
    pod_label: str = "user-pod"
    service_label: str = "user-pod-service"

    # Idempotent create: how long to wait for an existing pod to go away
    delete_poll_attempts: int = 20
    delete_poll_interval_seconds: float = 0.5

    # ==========================================================================
    # Exec / File Transfer Settings
    # ==========================================================================
    # Per-stream read deadline for exec calls that write to stdin
    exec_read_timeout_seconds: float = 2.0

    # Upload limit enforced by the HTTP layer (the core itself has no limit)
    max_upload_bytes: int = 10 * 1024 * 1024

    # ==========================================================================
    # Live State Settings
    # ==========================================================================
    monitor_interval_seconds: float = 2.0
    monitor_error_backoff_seconds: float = 5.0

    log_stream_tail_lines: int = 100
    log_stream_line_delay_seconds: float = 0.01
    log_stream_idle_seconds: float = 2.0

    @property
    def cors_origin_list(self) -> list[str]:
        """Parse the comma-separated CORS origins."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"  # Ignore extra fields from .env file
        case_sensitive = False  # Allow lowercase env vars to match uppercase field names


@lru_cache()
def get_settings():
    return Settings()
