"""API routes package"""

from . import meals, sync, health

__all__ = ["meals", "sync", "health"]
