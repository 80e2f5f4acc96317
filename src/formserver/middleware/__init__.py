"""
Middleware wrapped around the dispatcher.
"""

from .base import Middleware, MiddlewarePipeline, NextHandler
from .logging import LoggingMiddleware, RequestLog, ACCESS_LOGGER_NAME

__all__ = [
    "Middleware",
    "MiddlewarePipeline",
    "NextHandler",
    "LoggingMiddleware",
    "RequestLog",
    "ACCESS_LOGGER_NAME",
]
