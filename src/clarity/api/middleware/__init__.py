"""API middleware package."""

from src.clarity.api.middleware.logging import LoggingMiddleware

__all__ = ["LoggingMiddleware"]
