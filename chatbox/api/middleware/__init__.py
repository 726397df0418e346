"""API middleware."""

from .throttle import THROTTLED_PREFIX, ThrottleMiddleware

__all__ = ["THROTTLED_PREFIX", "ThrottleMiddleware"]
