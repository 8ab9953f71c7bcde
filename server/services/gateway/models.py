"""Gateway request models.

All models are plain dataclasses built from the loosely-typed parameter
mappings the protocol layer hands to the dispatcher.
"""

import hashlib
import json
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional

from constants import DEFAULT_SELECT
from .errors import InvalidFilter, InvalidParameter


@dataclass(frozen=True)
class FilterCondition:
    """(column, operator, value) triple applied to an outgoing query."""
    column: str
    operator: str
    value: Any

    @classmethod
    def from_dict(cls, data: Any, index: Optional[int] = None) -> "FilterCondition":
        """Create from a raw filter mapping.

        Only the envelope is checked here; operator support and value shape are
        checked by the filter compiler.
        """
        if not isinstance(data, Mapping):
            raise InvalidFilter("Filter condition must be an object", index)

        column = data.get("column")
        if not isinstance(column, str) or not column.strip():
            raise InvalidFilter("Filter column must be a non-empty string", index)

        if "operator" not in data:
            raise InvalidFilter("Filter condition is missing 'operator'", index, column)
        if "value" not in data:
            raise InvalidFilter("Filter condition is missing 'value'", index, column)

        return cls(column=column, operator=data["operator"], value=data["value"])


@dataclass(frozen=True)
class OrderSpec:
    column: str
    ascending: bool = True

    @classmethod
    def from_dict(cls, data: Any) -> "OrderSpec":
        if not isinstance(data, Mapping):
            raise InvalidParameter("order", "must be an object with a 'column'")
        column = data.get("column")
        if not isinstance(column, str) or not column:
            raise InvalidParameter("order", "'column' must be a non-empty string")
        ascending = data.get("ascending")
        if ascending is None:
            ascending = True
        if not isinstance(ascending, bool):
            raise InvalidParameter("order", "'ascending' must be a boolean")
        return cls(column=column, ascending=ascending)


@dataclass
class QuerySpec:
    """Everything needed to build a read against one table.

    An offset without a limit falls back to the dispatcher's default page size
    when the bounded range is computed.
    """
    table: str
    select: str = DEFAULT_SELECT
    filters: List[FilterCondition] = field(default_factory=list)
    order: Optional[OrderSpec] = None
    limit: Optional[int] = None
    offset: Optional[int] = None
    single: bool = False

    @classmethod
    def from_params(cls, params: Mapping[str, Any],
                    filters: List[FilterCondition]) -> "QuerySpec":
        select = params.get("select")
        if select is None:
            select = DEFAULT_SELECT
        if not isinstance(select, str) or not select.strip():
            raise InvalidParameter("select", "must be a non-empty projection string")

        order = params.get("order")
        limit = _optional_int(params, "limit", minimum=1)
        offset = _optional_int(params, "offset", minimum=0)

        single = params.get("single")
        if single is None:
            single = False
        if not isinstance(single, bool):
            raise InvalidParameter("single", "must be a boolean")

        return cls(
            table=require_table(params),
            select=select,
            filters=filters,
            order=OrderSpec.from_dict(order) if order is not None else None,
            limit=limit,
            offset=offset,
            single=single,
        )

    def range_bounds(self, default_page_size: int) -> Optional[tuple]:
        """Inclusive (start, end) row range, or None when no offset applies."""
        if not self.offset:
            return None
        page = self.limit or default_page_size
        return self.offset, self.offset + page - 1


def require_table(params: Mapping[str, Any]) -> str:
    table = params.get("table")
    if not isinstance(table, str) or not table.strip():
        raise InvalidParameter("table", "must be a non-empty string")
    return table


def _optional_int(params: Mapping[str, Any], name: str, minimum: int) -> Optional[int]:
    value = params.get(name)
    if value is None:
        return None
    # JSON decoders may hand over 10.0 for 10
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidParameter(name, "must be an integer")
    if value < minimum:
        raise InvalidParameter(name, f"must be >= {minimum}")
    return value


def canonical_json(data: Any) -> str:
    """Canonical JSON (sorted keys at every depth, no extra whitespace).

    List order is preserved: filter order is significant.
    """
    return json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)


def hash_params(params: Mapping[str, Any]) -> str:
    """Deterministic hash of parameters for cache keys.

    Returns:
        SHA256 hex digest of the canonicalized parameters
    """
    return hashlib.sha256(canonical_json(dict(params)).encode()).hexdigest()


def fingerprint(operation: str, params: Mapping[str, Any]) -> str:
    """Cache key for an operation's result.

    Format: {operation}:{params_hash}

    Raises:
        InvalidParameter: params cannot be canonicalized (e.g. an object
            mixing string and non-string keys)
    """
    try:
        return f"{operation}:{hash_params(params)}"
    except (TypeError, ValueError) as e:
        raise InvalidParameter("parameters", f"cannot be encoded as canonical JSON: {e}") from e
