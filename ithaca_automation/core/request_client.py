"""
Resilient Request Client

HTTP client used for the route-quote service and other JSON endpoints:
- Random proxy per attempt, carried in the operation's RetryState
- Fixed per-call timeout
- Backoff retry on retryable statuses and network errors
- Failures returned as a RequestResult instead of raised
"""

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional

import aiohttp
import structlog

from .proxy_pool import ProxyPool
from .retry_policy import RetryPolicy, RetryState, run_with_retry
from .types import ShutdownRequested
from ..utils.metrics import HTTP_REQUESTS

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT = 30.0


@dataclass(frozen=True)
class HttpResponse:
    """Fully read HTTP response"""
    status: int
    body: str
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def json(self) -> Any:
        return json.loads(self.body)


@dataclass
class RequestResult:
    """Outcome of :meth:`ResilientRequestClient.execute`

    ``success`` is True whenever a definitive response was received, which
    includes non-retryable error statuses; callers inspect ``response.status``.
    """
    success: bool
    response: Optional[HttpResponse]
    state: RetryState

    @property
    def attempts(self) -> int:
        return self.state.attempts


class ResilientRequestClient:
    """HTTP client with proxy rotation and exponential backoff"""

    def __init__(
        self,
        proxy_pool: Optional[ProxyPool] = None,
        policy: Optional[RetryPolicy] = None,
        max_retries: int = 5,
        timeout: float = DEFAULT_TIMEOUT,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.proxy_pool = proxy_pool or ProxyPool()
        self.policy = policy or RetryPolicy()
        self.max_retries = max_retries
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self._sleep = sleep
        self._session = session

    async def get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session"""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def execute(self, method: str, url: str, **options: Any) -> RequestResult:
        """Send a request, retrying transient failures

        Args:
            method: HTTP method
            url: Target URL
            **options: Passed through to ``aiohttp.ClientSession.request``
                (``json``, ``headers``, ``params``, ...)

        Returns:
            RequestResult; ``response`` is None when no definitive answer
            was received.
        """
        async def _attempt(state: RetryState) -> HttpResponse:
            state.proxy = self.proxy_pool.pick_random()
            session = await self.get_session()
            async with session.request(
                method, url, proxy=state.proxy, timeout=self.timeout, **options
            ) as resp:
                body = await resp.text()
                response = HttpResponse(status=resp.status, body=body, headers=dict(resp.headers))
            state.last_status = response.status
            if not response.ok:
                state.last_error = f"HTTP {response.status}"
            return response

        state = RetryState()
        try:
            outcome = await run_with_retry(
                _attempt,
                self.policy,
                self.max_retries,
                sleep=self._sleep,
                retry_on_result=lambda r: self.policy.is_retryable_status(r.status),
                label=f"{method.upper()} {url}",
                state=state,
            )
        except ShutdownRequested:
            raise
        except Exception as e:
            HTTP_REQUESTS.labels(outcome='error').inc()
            logger.error("Request failed", method=method, url=url, error=str(e))
            state.last_error = f"{type(e).__name__}: {e}"
            return RequestResult(success=False, response=None, state=state)

        if not outcome.success:
            HTTP_REQUESTS.labels(outcome='exhausted').inc()
            return RequestResult(success=False, response=None, state=outcome.state)

        HTTP_REQUESTS.labels(outcome='ok' if outcome.value.ok else 'rejected').inc()
        return RequestResult(success=True, response=outcome.value, state=outcome.state)
