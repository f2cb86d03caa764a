"""API routers package."""

from triforce.routers import analytics, fitness

__all__ = ["analytics", "fitness"]
