"""Rate-limited call gate for upstream Notion calls.

Every upstream call goes through a single gate. The gate admits at most
``limit`` call starts per ``interval`` seconds and ``max_concurrency`` calls
in flight; everything else waits in FIFO order. Failures never propagate:
``call`` returns ``None`` and logs, so one failed lookup among many degrades
to a missing field instead of aborting the whole aggregation.
"""

import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

import httpx

from .client import http_error_detail

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Notion allows an average of three requests per second; bursts up to five
# per second are tolerated.
DEFAULT_LIMIT = 5
DEFAULT_INTERVAL = 1.0
DEFAULT_MAX_CONCURRENCY = 50


@dataclass
class Result(Generic[T]):
    """Outcome of a gated call: either a value or the error that replaced it."""
    value: Optional[T] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap_or_none(self) -> Optional[T]:
        return self.value if self.error is None else None


def describe_error(e: BaseException) -> str:
    """One-line description of an upstream failure for the log."""
    if isinstance(e, httpx.HTTPStatusError):
        status = e.response.status_code if e.response is not None else "?"
        return f"HTTP {status}: {http_error_detail(e, 200)}"
    return f"{type(e).__name__}: {e}"


class CallGate:
    """Global admission control for upstream calls."""

    def __init__(
        self,
        limit: int = DEFAULT_LIMIT,
        interval: float = DEFAULT_INTERVAL,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    ):
        if limit < 1:
            raise ValueError(f"limit must be positive: {limit}")
        self.limit = limit
        self.interval = interval
        self.max_concurrency = max_concurrency
        self.calls = 0
        self.failures = 0
        self._starts: deque[float] = deque()
        # Created lazily so the gate can be built outside a running loop
        self._admission: Optional[asyncio.Lock] = None
        self._slots: Optional[asyncio.Semaphore] = None

    def _primitives(self) -> tuple[asyncio.Lock, asyncio.Semaphore]:
        if self._admission is None:
            self._admission = asyncio.Lock()
        if self._slots is None:
            self._slots = asyncio.Semaphore(self.max_concurrency)
        return self._admission, self._slots

    async def _admit(self, admission: asyncio.Lock) -> None:
        """Wait until a new call may start within the sliding window.

        The lock hands itself out in FIFO order, so waiters are admitted in
        the order they arrived.
        """
        loop = asyncio.get_running_loop()
        async with admission:
            while True:
                now = loop.time()
                while self._starts and now - self._starts[0] >= self.interval:
                    self._starts.popleft()
                if len(self._starts) < self.limit:
                    self._starts.append(now)
                    return
                await asyncio.sleep(self._starts[0] + self.interval - now)

    async def attempt(self, thunk: Callable[[], Awaitable[T]]) -> Result[T]:
        """Run ``thunk`` through the gate and capture its outcome.

        Args:
            thunk: Zero-argument callable returning an awaitable upstream call.

        Returns:
            Result holding the value, or the exception raised by the call.
        """
        admission, slots = self._primitives()
        async with slots:
            await self._admit(admission)
            self.calls += 1
            try:
                return Result(value=await thunk())
            except Exception as e:
                self.failures += 1
                return Result(error=e)

    async def call(self, thunk: Callable[[], Awaitable[T]]) -> Optional[T]:
        """Run ``thunk`` through the gate, returning ``None`` on any failure."""
        result = await self.attempt(thunk)
        if not result.ok:
            logger.error(f"Upstream call failed: {describe_error(result.error)}")
        return result.unwrap_or_none()

    async def gather(self, *thunks: Callable[[], Awaitable[Any]]) -> list[Any]:
        """Run several thunks concurrently through the gate, preserving order."""
        return list(await asyncio.gather(*(self.call(t) for t in thunks)))
