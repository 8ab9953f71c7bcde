"""Centralized constants for gateway operations and filter operators.

This module provides a single source of truth for operation names, the
filter operator set and dispatch defaults, eliminating duplicate string
arrays across the codebase.
"""

from typing import Dict, FrozenSet

# =============================================================================
# OPERATION NAMES (as advertised to the protocol layer)
# =============================================================================

OP_QUERY = "query"
OP_INSERT = "insert"
OP_UPDATE = "update"
OP_DELETE = "delete"
OP_UPSERT = "upsert"
OP_RPC = "rpc"
OP_COUNT = "count"
OP_BATCH = "batch"
OP_SCHEMA = "schema"
OP_METRICS = "metrics"

# Read-only operations whose results may be memoized
CACHEABLE_OPERATIONS: FrozenSet[str] = frozenset([
    OP_QUERY,
])

# Operations that write to the remote side
MUTATING_OPERATIONS: FrozenSet[str] = frozenset([
    OP_INSERT,
    OP_UPDATE,
    OP_DELETE,
    OP_UPSERT,
])

# Operations answered locally, never touching the remote adapter
LOCAL_OPERATIONS: FrozenSet[str] = frozenset([
    OP_BATCH,   # sub-operations reach the adapter individually
    OP_METRICS,
])

# Batch item verbs -> dispatcher operation names
BATCH_OPERATIONS: Dict[str, str] = {
    "select": OP_QUERY,
    "insert": OP_INSERT,
    "update": OP_UPDATE,
    "delete": OP_DELETE,
    "upsert": OP_UPSERT,
}

# =============================================================================
# FILTER OPERATORS
# =============================================================================

COMPARISON_OPERATORS: FrozenSet[str] = frozenset([
    'eq', 'neq', 'gt', 'gte', 'lt', 'lte',
])

PATTERN_OPERATORS: FrozenSet[str] = frozenset([
    'like', 'ilike',
])

# Array / jsonb / range containment
CONTAINMENT_OPERATORS: FrozenSet[str] = frozenset([
    'contains', 'containedBy', 'overlaps',
])

FILTER_OPERATORS: FrozenSet[str] = (
    COMPARISON_OPERATORS |
    PATTERN_OPERATORS |
    CONTAINMENT_OPERATORS |
    frozenset(['is', 'in'])
)

# Literals accepted by the `is` operator besides None/True/False
IS_OPERATOR_LITERALS: FrozenSet[str] = frozenset([
    'null', 'true', 'false', 'unknown',
])

# =============================================================================
# DEFAULTS
# =============================================================================

DEFAULT_SELECT = "*"
DEFAULT_CACHE_TTL = 300.0       # seconds
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY = 1.0        # seconds
DEFAULT_PAGE_SIZE = 10

INFORMATION_SCHEMA = "information_schema"

RETURNING_REPRESENTATION = "representation"
RETURNING_MINIMAL = "minimal"
