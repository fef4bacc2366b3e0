"""
Error taxonomy for pod, exec and file operations.

The HTTP layer maps these onto status codes; background tasks log them.
"""


class PodManagerError(Exception):
    """Base class for all errors raised by this service."""


class InvalidPathError(PodManagerError, ValueError):
    """A user-supplied path failed validation."""


class RemoteCommandError(PodManagerError):
    """A command run inside a pod wrote to stderr."""

    def __init__(self, stderr: str):
        self.stderr = stderr
        super().__init__(stderr)


class NotFoundError(PodManagerError):
    """Kubernetes reported the requested resource as absent."""


class OrchestratorError(PodManagerError):
    """A Kubernetes API call failed."""

    def __init__(self, message: str, status: int = None):
        self.status = status
        super().__init__(message)


class ExecChannelError(OrchestratorError):
    """The exec websocket to a pod could not be opened or broke mid-call."""
