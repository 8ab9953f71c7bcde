"""Shared fixtures for gateway tests.

The remote data service is replaced by an in-memory adapter whose query
builders record every chained call, so tests can assert on the exact
predicate chain without a network.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import pytest

from core.cache import QueryCache
from services.gateway.adapter import AdapterResult, RemoteError
from services.gateway.dispatcher import DataDispatcher
from services.gateway.metrics import MetricsAggregator
from services.gateway.retry import RetryExecutor, RetryPolicy


class FakeQuery:
    """Query builder stand-in: every method call is recorded and chains."""

    def __init__(self, target: str, schema: Optional[str] = None):
        self.target = target
        self.schema = schema
        self.calls: List[tuple] = []

    def __getattr__(self, name: str):
        if name.startswith("__"):
            raise AttributeError(name)

        def method(*args, **kwargs):
            self.calls.append((name, args, kwargs))
            return self

        return method

    def methods(self) -> List[str]:
        return [name for name, _, _ in self.calls]

    def call(self, name: str) -> tuple:
        """(args, kwargs) of the first call to ``name``."""
        for method, args, kwargs in self.calls:
            if method == name:
                return args, kwargs
        raise AssertionError(f"{name} was never called on {self.target}")


class FakeAdapter:
    """Scripted adapter.

    Each ``execute`` pops the next outcome: an AdapterResult is returned, an
    exception is raised, and an async callable is awaited with the request.
    When the script is empty ``default`` is returned.
    """

    def __init__(self, outcomes: Optional[List[Any]] = None,
                 default: Optional[AdapterResult] = None):
        self.outcomes = list(outcomes or [])
        self.default = default or AdapterResult(data=[])
        self.requests: List[FakeQuery] = []
        self.started = False
        self.closed = False

    def table(self, name: str, schema: Optional[str] = None) -> FakeQuery:
        return FakeQuery(name, schema)

    def rpc(self, function_name: str, params: Dict[str, Any]) -> FakeQuery:
        query = FakeQuery(f"rpc:{function_name}")
        query.calls.append(("rpc", (function_name, params), {}))
        return query

    async def execute(self, request: FakeQuery) -> AdapterResult:
        self.requests.append(request)
        if not self.outcomes:
            return self.default
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        if callable(outcome):
            return await outcome(request)
        return outcome

    @property
    def calls(self) -> int:
        return len(self.requests)

    async def startup(self) -> None:
        self.started = True

    async def shutdown(self) -> None:
        self.closed = True


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Async sleep replacement that records requested delays."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def remote_failure(message: str = "connection reset", code: Optional[str] = None,
                   status: Optional[int] = None) -> AdapterResult:
    return AdapterResult(error=RemoteError(message=message, code=code, status=status))


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def adapter() -> FakeAdapter:
    return FakeAdapter()


@pytest.fixture
def cache(clock: FakeClock) -> QueryCache:
    return QueryCache(default_ttl=300.0, clock=clock)


@pytest.fixture
def metrics(clock: FakeClock) -> MetricsAggregator:
    return MetricsAggregator(clock=clock)


@pytest.fixture
def retry(sleep: RecordingSleep) -> RetryExecutor:
    return RetryExecutor(RetryPolicy(max_attempts=3, base_delay=1.0), sleep=sleep)


@pytest.fixture
def dispatcher(adapter: FakeAdapter, cache: QueryCache, metrics: MetricsAggregator,
               retry: RetryExecutor) -> DataDispatcher:
    return DataDispatcher(
        adapter=adapter,
        cache=cache,
        metrics=metrics,
        retry=retry,
        default_page_size=10,
    )
