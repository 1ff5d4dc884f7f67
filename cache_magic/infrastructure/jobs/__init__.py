from .in_process import InProcessJobTransport

__all__ = ["InProcessJobTransport"]
