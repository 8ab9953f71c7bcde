"""Tabular data gateway package.

Generic data-access layer between a protocol-facing command dispatcher and
the remote relational data service:
- Operation resolution and parameter validation
- Filter compilation onto PostgREST query builders
- TTL memoization of reads
- Bounded retry with linear backoff and a transient-error classifier
- Running operation metrics
"""

from .adapter import (
    AdapterResult,
    RemoteDataAdapterProtocol,
    RemoteError,
    SupabaseAdapter,
)
from .dispatcher import DataDispatcher
from .envelope import error_envelope, is_error, success_envelope, unwrap
from .errors import (
    AdapterConfigError,
    DeadlineExceeded,
    GatewayError,
    InvalidFilter,
    InvalidFilterValue,
    InvalidParameter,
    MissingParameter,
    RemoteCallFailed,
    RequestValidationError,
    RetriesExhausted,
    UnknownOperation,
    UnsupportedFilterOperator,
)
from .filters import (
    FILTER_APPLIERS,
    OPERATORS,
    compile_filters,
    get_available_operators,
    parse_filters,
    validate_filter,
)
from .metrics import MetricsAggregator
from .models import FilterCondition, OrderSpec, QuerySpec, fingerprint, hash_params
from .operations import (
    OPERATION_SPECS,
    OperationSpec,
    OperationType,
    get_operation_schemas,
    resolve_operation,
)
from .retry import Deadline, RetryExecutor, RetryPolicy

__all__ = [
    # Adapter
    "AdapterResult",
    "RemoteDataAdapterProtocol",
    "RemoteError",
    "SupabaseAdapter",
    # Dispatcher
    "DataDispatcher",
    # Envelopes
    "error_envelope",
    "is_error",
    "success_envelope",
    "unwrap",
    # Errors
    "AdapterConfigError",
    "DeadlineExceeded",
    "GatewayError",
    "InvalidFilter",
    "InvalidFilterValue",
    "InvalidParameter",
    "MissingParameter",
    "RemoteCallFailed",
    "RequestValidationError",
    "RetriesExhausted",
    "UnknownOperation",
    "UnsupportedFilterOperator",
    # Filters
    "FILTER_APPLIERS",
    "OPERATORS",
    "compile_filters",
    "get_available_operators",
    "parse_filters",
    "validate_filter",
    # Metrics
    "MetricsAggregator",
    # Models
    "FilterCondition",
    "OrderSpec",
    "QuerySpec",
    "fingerprint",
    "hash_params",
    # Operations
    "OPERATION_SPECS",
    "OperationSpec",
    "OperationType",
    "get_operation_schemas",
    "resolve_operation",
    # Retry
    "Deadline",
    "RetryExecutor",
    "RetryPolicy",
]
