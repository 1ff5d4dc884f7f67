from .constants import EntityEvent, GuestStrategy, HealthStatus, Stage

__all__ = ["EntityEvent", "GuestStrategy", "HealthStatus", "Stage"]
