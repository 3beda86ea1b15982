"""Middleware package."""
from .rate_limit import RateLimitConfig, RateLimitMiddleware

__all__ = ["RateLimitMiddleware", "RateLimitConfig"]
