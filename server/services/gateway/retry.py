"""Bounded retry with linear backoff for remote calls.

Delay before attempt k+1 is ``base_delay * k`` (attempts are 1-based). Only
failures classified as transient are retried; validation, auth and not-found
failures surface immediately. An optional Deadline bounds every attempt and
every backoff wait.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

from constants import DEFAULT_BASE_DELAY, DEFAULT_MAX_ATTEMPTS
from core.logging import get_logger, log_retry_attempt
from .adapter import KIND_NETWORK, KIND_TIMEOUT, KIND_UNCLASSIFIED, RemoteError
from .errors import (
    DeadlineExceeded,
    GatewayError,
    RemoteCallFailed,
    RequestValidationError,
    RetriesExhausted,
)

logger = get_logger(__name__)

T = TypeVar("T")

# SQLSTATE classes worth another attempt
RETRYABLE_SQLSTATE_CLASSES = frozenset(["08", "40", "53", "57", "58"])
# Data, integrity, auth, syntax/undefined-object and PL/pgSQL raise classes
PERMANENT_SQLSTATE_CLASSES = frozenset(["22", "23", "28", "42", "P0"])

RETRYABLE_STATUSES = frozenset([408, 429])
PERMANENT_STATUSES = frozenset([400, 401, 403, 404, 406, 409, 422])


def as_remote_failure(error: BaseException) -> RemoteCallFailed:
    """Wrap an exception raised by adapter code so it surfaces as a gateway error."""
    if isinstance(error, (asyncio.TimeoutError, TimeoutError)):
        kind = KIND_TIMEOUT
    elif isinstance(error, ConnectionError):
        kind = KIND_NETWORK
    else:
        kind = KIND_UNCLASSIFIED
    message = str(error) or type(error).__name__
    return RemoteCallFailed(RemoteError(message=message, kind=kind))


@dataclass
class RetryPolicy:
    """Retry configuration for remote calls.

    Implements linear backoff.
    Delay formula: base_delay * attempt (attempt is 1-based)
    """
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    base_delay: float = DEFAULT_BASE_DELAY  # seconds
    retry_on_timeout: bool = True
    retry_on_connection_error: bool = True
    retry_on_server_error: bool = True  # 5xx, 408, 429
    retry_unclassified: bool = True

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay < 0:
            raise ValueError("base_delay must be >= 0")

    def calculate_delay(self, attempt: int) -> float:
        """Calculate delay after a failed attempt.

        Args:
            attempt: Attempt that just failed (1-indexed)

        Returns:
            Delay in seconds before the next attempt
        """
        return self.base_delay * attempt

    def is_retryable(self, error: BaseException) -> bool:
        """Classify a failure as transient (retry) or permanent (surface now)."""
        if isinstance(error, (RequestValidationError, DeadlineExceeded)):
            return False

        if isinstance(error, (asyncio.TimeoutError, TimeoutError)):
            return self.retry_on_timeout
        if isinstance(error, ConnectionError):
            return self.retry_on_connection_error

        if not isinstance(error, RemoteCallFailed):
            return self.retry_unclassified

        remote = error.remote_error
        if remote.kind == KIND_TIMEOUT:
            return self.retry_on_timeout
        if remote.kind == KIND_NETWORK:
            return self.retry_on_connection_error

        if remote.status is not None:
            if remote.status in PERMANENT_STATUSES:
                return False
            if remote.status in RETRYABLE_STATUSES or remote.status >= 500:
                return self.retry_on_server_error

        code = (remote.code or "").upper()
        if code.startswith("PGRST"):
            return False
        if len(code) == 5:
            if code[:2] in PERMANENT_SQLSTATE_CLASSES:
                return False
            if code[:2] in RETRYABLE_SQLSTATE_CLASSES:
                return self.retry_on_connection_error

        return self.retry_unclassified

    def should_retry(self, error: BaseException, attempt: int) -> bool:
        """Determine if another attempt should be made.

        Args:
            error: Failure from the attempt that just ran
            attempt: Attempt that just failed (1-indexed)
        """
        if attempt >= self.max_attempts:
            return False
        return self.is_retryable(error)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "max_attempts": self.max_attempts,
            "base_delay": self.base_delay,
            "retry_on_timeout": self.retry_on_timeout,
            "retry_on_connection_error": self.retry_on_connection_error,
            "retry_on_server_error": self.retry_on_server_error,
            "retry_unclassified": self.retry_unclassified,
        }


class Deadline:
    """Absolute point in time after which a call must stop."""

    def __init__(self, timeout: float, clock: Callable[[], float] = time.monotonic):
        if timeout <= 0:
            raise ValueError("timeout must be > 0")
        self._clock = clock
        self.expires_at = clock() + timeout

    @classmethod
    def after(cls, timeout: Optional[float],
              clock: Callable[[], float] = time.monotonic) -> Optional["Deadline"]:
        """Deadline ``timeout`` seconds from now, or None for no deadline."""
        return cls(timeout, clock) if timeout is not None else None

    def remaining(self) -> float:
        return max(0.0, self.expires_at - self._clock())

    @property
    def expired(self) -> bool:
        return self.remaining() <= 0


class RetryExecutor:
    """Runs one remote operation with bounded attempts.

    Attempts are strictly sequential: attempt N+1 starts only after attempt N
    failed and its backoff elapsed.
    """

    def __init__(self, policy: Optional[RetryPolicy] = None,
                 sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep):
        self.policy = policy or RetryPolicy()
        self._sleep = sleep

    async def execute(self, operation: Callable[[], Awaitable[T]],
                      deadline: Optional[Deadline] = None,
                      label: str = "remote_call") -> T:
        """Run ``operation`` until it succeeds or the attempt budget is spent.

        Args:
            operation: Zero-argument coroutine factory; called once per attempt
            deadline: Optional deadline observed by attempts and backoff waits
            label: Name used in log events

        Returns:
            The operation's result

        Raises:
            RetriesExhausted: every attempt failed (wraps the final error)
            DeadlineExceeded: the deadline elapsed
            GatewayError: a non-retryable failure, raised as-is
        """
        policy = self.policy
        last_error: Optional[BaseException] = None

        for attempt in range(1, policy.max_attempts + 1):
            if deadline is not None and deadline.expired:
                raise DeadlineExceeded(attempt - 1, last_error)

            try:
                if deadline is not None:
                    return await asyncio.wait_for(operation(), timeout=deadline.remaining())
                return await operation()
            except asyncio.CancelledError:
                raise  # Propagate cancellation
            except asyncio.TimeoutError as e:
                if deadline is not None and deadline.expired:
                    raise DeadlineExceeded(attempt, last_error) from e
                last_error = e
            except Exception as e:
                last_error = e

            if not policy.is_retryable(last_error):
                logger.warning("Non-retryable failure",
                               operation=label,
                               attempt=attempt,
                               error=str(last_error)[:200])
                if isinstance(last_error, GatewayError):
                    raise last_error
                raise as_remote_failure(last_error) from last_error

            if not policy.should_retry(last_error, attempt):
                break

            delay = policy.calculate_delay(attempt)
            if deadline is not None and delay >= deadline.remaining():
                raise DeadlineExceeded(attempt, last_error) from last_error

            log_retry_attempt(logger, label, attempt, policy.max_attempts, delay, last_error)
            await self._sleep(delay)

        logger.warning("Retries exhausted",
                       operation=label,
                       attempts=policy.max_attempts,
                       error=str(last_error)[:200])
        raise RetriesExhausted(policy.max_attempts, last_error) from last_error
