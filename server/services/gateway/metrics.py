"""Process-lifetime operation metrics.

Counters and an incrementally maintained running average of response time.
``record`` has no suspension points, so under the single-threaded event loop
updates from concurrent dispatches never interleave.
"""

import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional


class MetricsAggregator:
    """Counts remote operations and tracks mean latency (milliseconds).

    Invariant after every ``record``: total == successful + failed.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic,
                 now: Callable[[], datetime] = lambda: datetime.now(timezone.utc)):
        self._clock = clock
        self._now = now
        self.total_queries = 0
        self.successful_queries = 0
        self.failed_queries = 0
        self.average_response_time = 0.0
        self.cache_hits = 0
        self.last_query_time: Optional[datetime] = None

    def start(self) -> float:
        """Timestamp to pass back to ``record``."""
        return self._clock()

    def record(self, started_at: float, succeeded: bool) -> float:
        """Record one completed operation.

        Args:
            started_at: Value from ``start()``
            succeeded: Whether the operation succeeded

        Returns:
            Elapsed time in milliseconds
        """
        elapsed = (self._clock() - started_at) * 1000.0

        self.total_queries += 1
        if succeeded:
            self.successful_queries += 1
        else:
            self.failed_queries += 1

        # Running mean, updated incrementally
        self.average_response_time = (
            self.average_response_time * (self.total_queries - 1) + elapsed
        ) / self.total_queries
        self.last_query_time = self._now()
        return elapsed

    def record_cache_hit(self) -> None:
        """Cache hits are tracked apart from the query totals."""
        self.cache_hits += 1

    def snapshot(self) -> Dict[str, Any]:
        """Current metrics in wire shape."""
        data: Dict[str, Any] = {
            "totalQueries": self.total_queries,
            "successfulQueries": self.successful_queries,
            "failedQueries": self.failed_queries,
            "averageResponseTime": self.average_response_time,
            "cacheHits": self.cache_hits,
        }
        if self.last_query_time is not None:
            data["lastQueryTime"] = self.last_query_time.isoformat()
        return data
