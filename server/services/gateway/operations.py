"""Operation registry: names, parameter sets and catalog schemas."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Mapping, Tuple

from constants import (
    BATCH_OPERATIONS,
    CACHEABLE_OPERATIONS,
    FILTER_OPERATORS,
    LOCAL_OPERATIONS,
    MUTATING_OPERATIONS,
    OP_BATCH,
    OP_COUNT,
    OP_DELETE,
    OP_INSERT,
    OP_METRICS,
    OP_QUERY,
    OP_RPC,
    OP_SCHEMA,
    OP_UPDATE,
    OP_UPSERT,
)
from .errors import MissingParameter, UnknownOperation


class OperationType(str, Enum):
    """Known operations (wire names)."""
    QUERY = OP_QUERY
    INSERT = OP_INSERT
    UPDATE = OP_UPDATE
    DELETE = OP_DELETE
    UPSERT = OP_UPSERT
    RPC = OP_RPC
    COUNT = OP_COUNT
    BATCH = OP_BATCH
    SCHEMA = OP_SCHEMA
    METRICS = OP_METRICS


@dataclass(frozen=True)
class OperationSpec:
    """Parameter contract for one operation."""
    operation: OperationType
    description: str
    required: Tuple[str, ...] = ()
    optional: Tuple[str, ...] = ()
    # Required params that must also be non-empty
    non_empty: Tuple[str, ...] = ()
    operators: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def name(self) -> str:
        return self.operation.value

    @property
    def cacheable(self) -> bool:
        return self.name in CACHEABLE_OPERATIONS

    @property
    def mutating(self) -> bool:
        return self.name in MUTATING_OPERATIONS

    @property
    def remote(self) -> bool:
        return self.name not in LOCAL_OPERATIONS

    @property
    def accepts_filters(self) -> bool:
        return bool(self.operators)

    def validate(self, params: Mapping[str, Any]) -> None:
        """Check presence of every required parameter.

        A parameter set to None counts as missing.
        """
        for name in self.required:
            if params.get(name) is None:
                raise MissingParameter(self.name, name)
        for name in self.non_empty:
            value = params.get(name)
            if hasattr(value, "__len__") and len(value) == 0:
                raise MissingParameter(self.name, name)


OPERATION_SPECS: Dict[OperationType, OperationSpec] = {
    OperationType.QUERY: OperationSpec(
        OperationType.QUERY,
        "Query data from a table with filters and options",
        required=("table",),
        optional=("select", "filters", "order", "limit", "offset", "single"),
        operators=FILTER_OPERATORS,
    ),
    OperationType.INSERT: OperationSpec(
        OperationType.INSERT,
        "Insert one record or a list of records into a table",
        required=("table", "data"),
        optional=("returning",),
    ),
    OperationType.UPDATE: OperationSpec(
        OperationType.UPDATE,
        "Update rows matching the filters",
        required=("table", "data", "filters"),
        optional=("returning",),
        non_empty=("filters",),
        operators=FILTER_OPERATORS,
    ),
    OperationType.DELETE: OperationSpec(
        OperationType.DELETE,
        "Delete rows matching the filters",
        required=("table", "filters"),
        optional=("returning",),
        non_empty=("filters",),
        operators=FILTER_OPERATORS,
    ),
    OperationType.UPSERT: OperationSpec(
        OperationType.UPSERT,
        "Insert or update records, resolving conflicts on the given columns",
        required=("table", "data"),
        optional=("onConflict", "returning"),
    ),
    OperationType.RPC: OperationSpec(
        OperationType.RPC,
        "Call a remote procedure",
        required=("functionName",),
        optional=("params",),
    ),
    OperationType.COUNT: OperationSpec(
        OperationType.COUNT,
        "Count rows in a table",
        required=("table",),
        optional=("filters",),
        operators=FILTER_OPERATORS,
    ),
    OperationType.BATCH: OperationSpec(
        OperationType.BATCH,
        "Execute several table operations independently",
        required=("operations",),
        non_empty=("operations",),
    ),
    OperationType.SCHEMA: OperationSpec(
        OperationType.SCHEMA,
        "Get table and column information",
        optional=("table",),
    ),
    OperationType.METRICS: OperationSpec(
        OperationType.METRICS,
        "Get operation metrics",
    ),
}


def resolve_operation(name: Any) -> OperationSpec:
    """Look up an operation by wire name.

    Raises:
        UnknownOperation: name is not a known operation
    """
    try:
        return OPERATION_SPECS[OperationType(name)]
    except ValueError:
        raise UnknownOperation(str(name)) from None


# =============================================================================
# Catalog schemas (consumed by the protocol layer for pre-dispatch validation)
# =============================================================================

_FILTERS_SCHEMA = {
    "type": "array",
    "description": "Filter conditions, combined with AND in list order",
    "items": {
        "type": "object",
        "properties": {
            "column": {"type": "string"},
            "operator": {"type": "string", "enum": sorted(FILTER_OPERATORS)},
            "value": {},
        },
        "required": ["column", "operator", "value"],
    },
}

_RECORDS_SCHEMA = {
    "oneOf": [
        {"type": "object"},
        {"type": "array", "items": {"type": "object"}},
    ]
}

_RETURNING_SCHEMA = {"type": "boolean", "description": "Return affected rows", "default": True}

_PROPERTY_SCHEMAS: Dict[str, Dict[str, Any]] = {
    "table": {"type": "string", "description": "Table name"},
    "select": {"type": "string", "description": "Columns to select (default: *)"},
    "filters": _FILTERS_SCHEMA,
    "order": {
        "type": "object",
        "properties": {
            "column": {"type": "string"},
            "ascending": {"type": "boolean"},
        },
    },
    "limit": {"type": "integer", "minimum": 1},
    "offset": {"type": "integer", "minimum": 0},
    "single": {"type": "boolean", "description": "Return a single record"},
    "data": _RECORDS_SCHEMA,
    "returning": _RETURNING_SCHEMA,
    "onConflict": {"type": "string", "description": "Column(s) to check for conflicts"},
    "functionName": {"type": "string", "description": "Remote procedure name"},
    "params": {"type": "object", "description": "Procedure arguments"},
    "operations": {
        "type": "array",
        "items": {
            "type": "object",
            "properties": {
                "table": {"type": "string"},
                "operation": {"type": "string", "enum": sorted(BATCH_OPERATIONS)},
                "data": {},
                "options": {"type": "object"},
            },
            "required": ["table", "operation"],
        },
    },
}


def get_operation_schemas() -> Dict[str, Dict[str, Any]]:
    """Name, description and input schema for every operation."""
    catalog = {}
    for spec in OPERATION_SPECS.values():
        fields = spec.required + spec.optional
        schema: Dict[str, Any] = {
            "type": "object",
            "properties": {name: _PROPERTY_SCHEMAS[name] for name in fields},
        }
        if spec.required:
            schema["required"] = list(spec.required)
        if spec.operation == OperationType.UPDATE:
            # update takes a single patch object, not a list
            schema["properties"]["data"] = {"type": "object", "description": "Data to update"}
        if spec.operation == OperationType.SCHEMA:
            schema["properties"]["table"] = {
                "type": "string",
                "description": "Table name (all tables when omitted)",
            }
        catalog[spec.name] = {
            "name": spec.name,
            "description": spec.description,
            "inputSchema": schema,
        }
    return catalog
