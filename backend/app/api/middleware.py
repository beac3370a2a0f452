"""API middleware for request processing."""

import logging
import time
from collections import defaultdict
from typing import Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from app.utils.helpers import generate_uuid

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
_STALE_CLIENT_THRESHOLD = 300  # seconds before a silent client's entry is evicted


class LoggingMiddleware(BaseHTTPMiddleware):
    """Logs each request and response and tags both with a request id.

    The id is taken from the ``X-Request-ID`` header when the client sends
    one and echoed back on the response.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or generate_uuid()
        request.state.request_id = request_id
        start_time = time.monotonic()

        logger.info(
            "Request: %s %s",
            request.method,
            request.url.path,
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "client": request.client.host if request.client else "unknown",
            },
        )

        try:
            response = await call_next(request)
        except Exception as e:
            process_time = time.monotonic() - start_time
            logger.error(
                "Request failed after %.3fs: %s",
                process_time,
                e,
                extra={"request_id": request_id, "process_time_s": round(process_time, 3)},
            )
            raise

        process_time = time.monotonic() - start_time
        logger.info(
            "Response: %s in %.3fs",
            response.status_code,
            process_time,
            extra={
                "request_id": request_id,
                "status_code": response.status_code,
                "process_time_s": round(process_time, 3),
            },
        )

        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers["X-Process-Time"] = f"{process_time:.3f}"
        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Sliding-window rate limiting middleware.

    Requests are counted per client and bucket. Paths starting with one of
    ``strict_prefixes`` (checkout and payments) share a tighter bucket than
    the rest of the API. Stale client entries are evicted periodically.
    """

    def __init__(
        self,
        app,
        requests_per_minute: int = 100,
        strict_requests_per_minute: int = 10,
        strict_prefixes: Optional[tuple[str, ...]] = None,
        window_seconds: int = 60,
    ) -> None:
        super().__init__(app)
        self.requests_per_minute = requests_per_minute
        self.strict_requests_per_minute = strict_requests_per_minute
        self.strict_prefixes = strict_prefixes or ()
        self.window_seconds = window_seconds
        self._request_counts: dict[tuple[str, str], list[float]] = defaultdict(list)
        self._last_cleanup = time.monotonic()

    def _cleanup_stale_clients(self, now: float) -> None:
        """Remove entries for clients that have not sent requests recently."""
        if now - self._last_cleanup < _STALE_CLIENT_THRESHOLD:
            return
        cutoff = now - _STALE_CLIENT_THRESHOLD
        stale = [key for key, ts in self._request_counts.items() if not ts or ts[-1] < cutoff]
        for key in stale:
            del self._request_counts[key]
        self._last_cleanup = now

    def _bucket(self, path: str) -> tuple[str, int]:
        if path.startswith(self.strict_prefixes):
            return "payment", self.strict_requests_per_minute
        return "general", self.requests_per_minute

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Check rate limits and process request."""
        client_id = request.client.host if request.client else "unknown"
        bucket, limit = self._bucket(request.url.path)
        key = (client_id, bucket)
        now = time.monotonic()
        window_start = now - self.window_seconds

        # Evict expired timestamps for this client
        timestamps = self._request_counts[key]
        self._request_counts[key] = [t for t in timestamps if t > window_start]

        # Periodically evict idle clients
        self._cleanup_stale_clients(now)

        if len(self._request_counts[key]) >= limit:
            logger.warning("Rate limit exceeded for %s on %s requests", client_id, bucket)
            return JSONResponse(
                status_code=429,
                content={
                    "success": False,
                    "message": "Too many payment requests" if bucket == "payment" else "Too many requests",
                    "retry_after": self.window_seconds,
                },
                headers={"Retry-After": str(self.window_seconds)},
            )

        self._request_counts[key].append(now)
        return await call_next(request)
