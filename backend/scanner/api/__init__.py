"""API endpoints."""

from scanner.api.routes import router

__all__ = ["router"]
