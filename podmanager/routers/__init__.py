from . import files, hub, pods, terminal

__all__ = ["files", "hub", "pods", "terminal"]
