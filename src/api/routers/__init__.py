"""API routers."""

from api.routers import generation, providers

__all__ = ["generation", "providers"]
