"""HTTP transport layer with retry logic and connection pooling."""

import asyncio
import logging
import random
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import httpx

from ._constants import CLIENT_VERSION
from .auth import AgentIdentity
from .exceptions import NetworkError, RateLimitError, RequestTimeoutError

logger = logging.getLogger(__name__)


class Transport:
    def __init__(self, base_url: str, identity: AgentIdentity, timeout: float = 10.0, max_retries: int = 3,
                 transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._base_url = base_url.rstrip("/")
        self._identity = identity
        self._timeout = timeout
        self._max_retries = max_retries
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def identity(self) -> AgentIdentity:
        return self._identity

    @property
    def base_url(self) -> str:
        return self._base_url

    async def __aenter__(self) -> "Transport":
        await self.open()
        return self

    async def __aexit__(self, exc_type: type | None, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def open(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self._base_url, transport=self._transport,
                http2=self._transport is None, timeout=httpx.Timeout(self._timeout),
                limits=httpx.Limits(max_connections=100, max_keepalive_connections=20))

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    def _headers(self) -> dict[str, str]:
        h = {"Content-Type": "application/json", "Accept": "application/json",
             "X-Agent-ID": self._identity.agent_id, "X-Inbox-Client": CLIENT_VERSION}
        if self._identity.token:
            h["Authorization"] = f"Bearer {self._identity.token}"
        if self._identity.organization_id:
            h["X-Organization-ID"] = self._identity.organization_id
        return h

    def _backoff(self, attempt: int) -> float:
        delay = min(1.0 * (2 ** attempt), 30.0)
        return max(0.1, delay + delay * 0.25 * (2 * random.random() - 1))

    def _retryable(self, code: int) -> bool:
        return code in (408, 429, 500, 502, 503, 504)

    async def get(self, path: str, params: dict | None = None, retry: bool = True) -> tuple[int, dict | None]:
        return await self.request("GET", path, params=params, retry=retry)

    async def post(self, path: str, data: dict | None = None, retry: bool = False) -> tuple[int, dict | None]:
        return await self.request("POST", path, data=data, retry=retry)

    async def patch(self, path: str, data: dict | None = None, retry: bool = False) -> tuple[int, dict | None]:
        return await self.request("PATCH", path, data=data, retry=retry)

    async def request(self, method: str, path: str, data: dict | None = None, params: dict | None = None,
                      retry: bool = True) -> tuple[int, dict | None]:
        if not self._client:
            raise NetworkError("Transport not initialized")
        last_err: Exception | None = None
        attempts = self._max_retries if retry else 1
        for i in range(attempts):
            try:
                resp = await self._client.request(method, path, json=data, params=_clean(params), headers=self._headers())
                if resp.status_code == 429:
                    raise self._rate_limit_error(resp)
                if self._retryable(resp.status_code) and i < attempts - 1:
                    logger.warning("%s %s returned %d, retrying (%d/%d)", method, path, resp.status_code, i + 1, attempts)
                    await asyncio.sleep(self._backoff(i))
                    continue
                try:
                    return resp.status_code, resp.json() if resp.content else None
                except ValueError:
                    return resp.status_code, None
            except RateLimitError:
                raise
            except (httpx.TimeoutException, httpx.RequestError) as e:
                last_err = e
                if i < attempts - 1:
                    await asyncio.sleep(self._backoff(i))
        if isinstance(last_err, httpx.TimeoutException):
            raise RequestTimeoutError(f"{method} {path} timed out after {attempts} attempts") from last_err
        raise NetworkError(f"Request failed after {attempts} attempts: {last_err}") from last_err

    @asynccontextmanager
    async def stream(self, path: str, params: dict | None = None) -> AsyncIterator[httpx.Response]:
        """Open a long-lived streaming GET (no read timeout)."""
        if not self._client:
            raise NetworkError("Transport not initialized")
        headers = {**self._headers(), "Accept": "text/event-stream", "Cache-Control": "no-cache"}
        timeout = httpx.Timeout(self._timeout, read=None)
        async with self._client.stream("GET", path, params=_clean(params), headers=headers, timeout=timeout) as resp:
            yield resp

    def _rate_limit_error(self, resp: httpx.Response) -> RateLimitError:
        h = resp.headers
        return RateLimitError("Rate limited", int(h["Retry-After"]) if "Retry-After" in h else None)


def _clean(params: dict | None) -> dict | None:
    if params is None:
        return None
    return {k: v for k, v in params.items() if v is not None and v != ""}
