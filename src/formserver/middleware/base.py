"""
=============================================================================
BASE MIDDLEWARE INTERFACE
=============================================================================

Middleware wraps the dispatcher like layers of an onion (Chain of
Responsibility). Each layer sees the request on the way in and the
response on the way out:

    pipeline.add(LoggingMiddleware())    # First added = outermost

        ┌──────────────────────────────────────────────┐
        │  LoggingMiddleware                           │
        │  ┌────────────────────────────────────────┐  │
        │  │          Dispatcher.dispatch           │  │
        │  └────────────────────────────────────────┘  │
        └──────────────────────────────────────────────┘

The response may be None: the dispatcher's way of saying "close the
connection without answering". Middleware must pass None through.

=============================================================================
"""

from abc import ABC, abstractmethod
from typing import Callable, List, Optional
import logging

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


# The next middleware or the final handler.
NextHandler = Callable[[HTTPRequest], Optional[HTTPResponse]]


class Middleware(ABC):
    """
    Abstract base class for middleware.

        class MyMiddleware(Middleware):
            def __call__(self, request, next):
                # before
                response = next(request)
                # after (response may be None)
                return response
    """

    @abstractmethod
    def __call__(self, request: HTTPRequest, next: NextHandler) -> Optional[HTTPResponse]:
        """
        Process the request.

        Args:
            request: The incoming request.
            next: The next handler in the chain; call it to continue.

        Returns:
            The response, or None to close without one.
        """

    @property
    def name(self) -> str:
        return self.__class__.__name__


class MiddlewarePipeline:
    """
    Chains middleware around a final handler.

        pipeline = MiddlewarePipeline(logger)
        pipeline.add(LoggingMiddleware())
        handler = pipeline.wrap(dispatcher.dispatch)
        response = handler(request)
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self._middleware: List[Middleware] = []
        self.logger = logger or logging.getLogger(__name__)

    def add(self, middleware: Middleware) -> "MiddlewarePipeline":
        """Add middleware; first added runs outermost. Returns self."""
        self._middleware.append(middleware)
        self.logger.debug(f"Added middleware: {middleware.name}")
        return self

    def use(self, *middleware: Middleware) -> "MiddlewarePipeline":
        for mw in middleware:
            self.add(mw)
        return self

    def wrap(self, handler: NextHandler) -> NextHandler:
        """
        Wrap a handler with all middleware in the pipeline.

        Given [MW1, MW2] the result is MW1 → MW2 → handler, so wrapping
        happens in reverse order.
        """
        current = handler
        for middleware in reversed(self._middleware):
            current = self._create_wrapped_handler(middleware, current)
        return current

    def _create_wrapped_handler(
        self,
        middleware: Middleware,
        next_handler: NextHandler,
    ) -> NextHandler:
        def wrapped(request: HTTPRequest) -> Optional[HTTPResponse]:
            return middleware(request, next_handler)

        return wrapped

    def __len__(self) -> int:
        return len(self._middleware)
