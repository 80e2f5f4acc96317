"""
=============================================================================
ACCESS LOGGING MIDDLEWARE
=============================================================================

One line per request on the "formserver.access" logger, in either format:

    TEXT (default):
        127.0.0.1 - - [18/Oct/2026:10:55:36 +0000] "POST /submit" 200 28 1.20ms
        client      timestamp                      method/target status size duration

    JSON:
        {"method": "POST", "target": "/submit", "client_ip": "127.0.0.1",
         "status_code": 200, "content_length": 28, "duration_ms": 1.2, ...}

A request the dispatcher drops without answering (legacy mode, unknown
method) is logged with status "-" and size 0.

Route the access log somewhere else without touching the code:

    logging.getLogger("formserver.access").addHandler(file_handler)

=============================================================================
"""

import time
import json
import logging
from typing import Optional, Union
from dataclasses import dataclass

from .base import Middleware, NextHandler
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


ACCESS_LOGGER_NAME = "formserver.access"


@dataclass
class RequestLog:
    """
    Structured log entry for a request.

    status_code is "-" when no response was sent.
    """

    method: str
    target: str
    client_ip: str
    user_agent: str
    status_code: Union[int, str]
    content_length: int
    duration_ms: float
    timestamp: str

    def to_dict(self) -> dict:
        return {
            "method": self.method,
            "target": self.target,
            "client_ip": self.client_ip,
            "user_agent": self.user_agent,
            "status_code": self.status_code,
            "content_length": self.content_length,
            "duration_ms": round(self.duration_ms, 2),
            "timestamp": self.timestamp,
        }

    def to_text(self) -> str:
        """Apache-style access log line."""
        return (
            f'{self.client_ip} - - [{self.timestamp}] '
            f'"{self.method} {self.target}" {self.status_code} '
            f'{self.content_length} {self.duration_ms:.2f}ms'
        )


class LoggingMiddleware(Middleware):
    """
    Request logging middleware. Add it first so it times everything.

        pipeline.add(LoggingMiddleware(log_format="json"))
    """

    def __init__(
        self,
        log_format: str = "text",
        log_level: int = logging.INFO,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Args:
            log_format: "text" (Apache-like) or "json".
            log_level: Level access lines are logged at.
            logger: Access logger; defaults to "formserver.access".
        """
        self.log_format = log_format
        self.log_level = log_level
        self.logger = logger or logging.getLogger(ACCESS_LOGGER_NAME)

    def __call__(self, request: HTTPRequest, next: NextHandler) -> Optional[HTTPResponse]:
        start_time = time.time()

        try:
            response = next(request)
        except Exception as e:
            # Still log failed requests, then let the server map it to a 500
            duration_ms = (time.time() - start_time) * 1000
            self.logger.error(
                f"Request failed: {request.method_token} {request.target} "
                f"- {type(e).__name__}: {e} ({duration_ms:.2f}ms)"
            )
            raise

        duration_ms = (time.time() - start_time) * 1000

        log_entry = RequestLog(
            method=request.method_token or "-",
            target=request.target or "-",
            client_ip=request.client_ip or "-",
            user_agent=request.get_header("user-agent") or "-",
            status_code=int(response.status) if response is not None else "-",
            content_length=len(response.body) if response is not None else 0,
            duration_ms=duration_ms,
            timestamp=time.strftime("%d/%b/%Y:%H:%M:%S %z"),
        )

        if self.log_format == "json":
            self.logger.log(self.log_level, json.dumps(log_entry.to_dict()))
        else:
            self.logger.log(self.log_level, log_entry.to_text())

        return response
