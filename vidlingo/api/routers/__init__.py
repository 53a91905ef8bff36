"""API routers for vidlingo."""

from vidlingo.api.routers import progress_router

__all__ = ["progress_router"]
