"""
ASGI middleware for request metrics and correlation ID tracking.
"""

import logging
import time

from .context import RequestContext, generate_request_id
from .metrics import active_requests, api_requests, request_duration

logger = logging.getLogger(__name__)


class RequestMetricsMiddleware:
    """
    Track request duration, request count and in-flight requests.
    """

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        active_requests.inc()
        api_requests.inc()
        start_time = time.perf_counter()

        async def send_with_timing(message):
            if message["type"] == "http.response.start":
                request_duration.observe(time.perf_counter() - start_time)
            await send(message)

        try:
            await self.app(scope, receive, send_with_timing)
        finally:
            active_requests.dec()


class CorrelationIdMiddleware:
    """
    Bind X-Request-ID (or a generated one) into the request context and echo
    it on the response.

    Usage in server.py:
        app.add_middleware(CorrelationIdMiddleware)
    """

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request_id = None
        for key, value in scope.get("headers", []):
            if key.lower() == b"x-request-id":
                try:
                    request_id = value.decode("utf-8")
                except UnicodeDecodeError as e:
                    logger.warning("Could not decode X-Request-ID header: %s", e)
                break

        if not request_id:
            request_id = generate_request_id()

        async def send_with_request_id(message):
            if message["type"] == "http.response.start":
                headers_list = list(message.get("headers", []))
                headers_list.append((b"x-request-id", request_id.encode("utf-8")))
                message["headers"] = headers_list
            await send(message)

        with RequestContext(request_id=request_id):
            await self.app(scope, receive, send_with_request_id)
