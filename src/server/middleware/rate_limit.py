"""Rate limiting middleware."""
import time
from collections import defaultdict
from typing import Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Sliding one-minute request limit per agent (per client IP when anonymous).

    The event stream is exempt: it is a single long-lived request.
    """

    def __init__(self, app: ASGIApp, requests_per_minute: int = 600) -> None:
        super().__init__(app)
        self._requests_per_minute = requests_per_minute
        self._request_times: dict[str, list[float]] = defaultdict(list)

    async def dispatch(self, request: Request, call_next: Callable[[Request], Response]) -> Response:
        if request.url.path.endswith("/events"):
            return await call_next(request)
        key = request.headers.get("X-Agent-ID") or (request.client.host if request.client else "unknown")
        now = time.time()
        minute_ago = now - 60

        self._request_times[key] = [t for t in self._request_times[key] if t > minute_ago]
        if len(self._request_times[key]) >= self._requests_per_minute:
            retry_after = max(1, int(min(self._request_times[key]) + 60 - now))
            return JSONResponse(
                status_code=429,
                content={"success": False, "data": {"retry_after": retry_after},
                         "message": "Rate limit exceeded", "error_code": "RATE_LIMITED"},
                headers={"Retry-After": str(retry_after)},
            )

        self._request_times[key].append(now)
        response = await call_next(request)

        remaining = self._requests_per_minute - len(self._request_times[key])
        response.headers["X-RateLimit-Limit"] = str(self._requests_per_minute)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        return response
