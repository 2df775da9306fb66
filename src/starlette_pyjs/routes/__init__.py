"""HTTP API routes."""

from .status import STATUS_PATH, status_routes

__all__ = [
    "STATUS_PATH",
    "status_routes",
]
