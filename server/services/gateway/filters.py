"""Filter compilation for outgoing table queries.

Turns an ordered list of filter conditions into chained predicate calls on a
remote query builder. Conditions are applied in list order and always
combined with AND; each later filter further restricts the result set.

Supported operators:
- eq, neq, gt, gte, lt, lte: Scalar comparison
- like, ilike: SQL pattern match (case-sensitive / case-insensitive)
- is: IS NULL / TRUE / FALSE / UNKNOWN
- in: Value is in list
- contains: Array/jsonb/range contains value
- containedBy: Array/jsonb/range is contained by value
- overlaps: Array/range shares an element with value
"""

from collections.abc import Mapping
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional

from constants import FILTER_OPERATORS, IS_OPERATOR_LITERALS
from core.logging import get_logger
from .errors import InvalidFilter, InvalidFilterValue, UnsupportedFilterOperator
from .models import FilterCondition

logger = get_logger(__name__)


# (builder, column, value) -> builder
FilterApplier = Callable[[Any, str, Any], Any]


FILTER_APPLIERS: Dict[str, FilterApplier] = {
    "eq": lambda q, column, value: q.eq(column, value),
    "neq": lambda q, column, value: q.neq(column, value),
    "gt": lambda q, column, value: q.gt(column, value),
    "gte": lambda q, column, value: q.gte(column, value),
    "lt": lambda q, column, value: q.lt(column, value),
    "lte": lambda q, column, value: q.lte(column, value),
    "like": lambda q, column, value: q.like(column, value),
    "ilike": lambda q, column, value: q.ilike(column, value),
    "is": lambda q, column, value: q.is_(column, value),
    "in": lambda q, column, value: q.in_(column, list(value)),
    "contains": lambda q, column, value: q.contains(column, value),
    "containedBy": lambda q, column, value: q.contained_by(column, value),
    "overlaps": lambda q, column, value: q.overlaps(column, list(value)),
}


def _is_sequence(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def _is_scalar(value: Any) -> bool:
    return value is None or isinstance(value, (str, int, float, bool))


def _check_value(operator: str, value: Any) -> Optional[str]:
    """Return the expected shape when value does not fit operator, else None."""
    if operator in ("eq", "neq", "gt", "gte", "lt", "lte"):
        # null only matches through IS
        if value is not None and _is_scalar(value):
            return None
        return "a non-null scalar (use 'is' to match null)"

    if operator in ("like", "ilike"):
        return None if isinstance(value, str) else "a pattern string"

    if operator == "is":
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, str) and value.lower() in IS_OPERATOR_LITERALS:
            return None
        return "null, a boolean, or one of 'null', 'true', 'false', 'unknown'"

    if operator == "in":
        if _is_sequence(value) and all(_is_scalar(v) for v in value):
            return None
        return "a list of scalars"

    if operator in ("contains", "containedBy"):
        if _is_sequence(value) or isinstance(value, (Mapping, str)):
            return None
        return "a list, an object, or a range literal"

    if operator == "overlaps":
        return None if _is_sequence(value) else "a list"

    return "a supported operator"


def validate_filter(condition: FilterCondition,
                    allowed: Iterable[str] = FILTER_OPERATORS,
                    index: Optional[int] = None) -> None:
    """Check operator support and value shape for a single condition.

    Raises:
        UnsupportedFilterOperator: operator not in the allowed set
        InvalidFilterValue: value's shape does not match the operator
    """
    operator = condition.operator
    if not isinstance(operator, str) or operator not in allowed:
        raise UnsupportedFilterOperator(operator, index, condition.column)

    expected = _check_value(operator, condition.value)
    if expected is not None:
        raise InvalidFilterValue(operator, expected, index, condition.column)


def parse_filters(raw: Any,
                  allowed: FrozenSet[str] = FILTER_OPERATORS) -> List[FilterCondition]:
    """Parse and validate a raw filter list from request parameters.

    Args:
        raw: Value of the ``filters`` parameter (None means no filters)
        allowed: Operators supported by the target operation

    Returns:
        Validated conditions in request order
    """
    if raw is None:
        return []
    if not _is_sequence(raw):
        raise InvalidFilter("'filters' must be a list of filter conditions")

    conditions = []
    for index, item in enumerate(raw):
        condition = FilterCondition.from_dict(item, index)
        validate_filter(condition, allowed, index)
        conditions.append(condition)
    return conditions


def compile_filters(query: Any, filters: Iterable[FilterCondition]) -> Any:
    """Apply filters to a query builder, in order.

    Builds the predicate only; the query is not executed.

    Args:
        query: Remote query builder
        filters: Validated conditions

    Returns:
        The builder with every predicate applied
    """
    applied = 0
    for condition in filters:
        applier = FILTER_APPLIERS.get(condition.operator)
        if applier is None:
            raise UnsupportedFilterOperator(condition.operator, column=condition.column)
        query = applier(query, condition.column, condition.value)
        applied += 1

    if applied:
        logger.debug("Filters compiled", count=applied)
    return query


# Operator metadata for the tool catalog
OPERATORS = {
    "eq": {"label": "Equals", "description": "Column equals value", "value": "non-null scalar"},
    "neq": {"label": "Not Equals", "description": "Column does not equal value", "value": "non-null scalar"},
    "gt": {"label": "Greater Than", "description": "Column is greater than value", "value": "non-null scalar"},
    "gte": {"label": "Greater or Equal", "description": "Column is greater than or equal to value", "value": "non-null scalar"},
    "lt": {"label": "Less Than", "description": "Column is less than value", "value": "non-null scalar"},
    "lte": {"label": "Less or Equal", "description": "Column is less than or equal to value", "value": "non-null scalar"},
    "like": {"label": "Like", "description": "Case-sensitive pattern match", "value": "string"},
    "ilike": {"label": "ILike", "description": "Case-insensitive pattern match", "value": "string"},
    "is": {"label": "Is", "description": "IS NULL / TRUE / FALSE", "value": "null|boolean"},
    "in": {"label": "In List", "description": "Column is one of the values", "value": "list"},
    "contains": {"label": "Contains", "description": "Array/jsonb contains value", "value": "list|object"},
    "containedBy": {"label": "Contained By", "description": "Array/jsonb is contained by value", "value": "list|object"},
    "overlaps": {"label": "Overlaps", "description": "Array/range shares an element with value", "value": "list"},
}


def get_available_operators() -> Dict[str, Dict[str, Any]]:
    """Get operator metadata for the tool catalog."""
    return OPERATORS.copy()
