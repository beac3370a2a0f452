"""API package."""

from app.api.middleware import LoggingMiddleware, RateLimitMiddleware
from app.api.routes import router

__all__ = [
    "router",
    "LoggingMiddleware",
    "RateLimitMiddleware",
]
