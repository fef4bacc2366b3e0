"""Pod Manager backend: sandboxed pod lifecycle, file transfer and live pod state."""

__version__ = "0.1.0"
