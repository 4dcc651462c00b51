"""
Routing condition interpreter.

Conditions are data ({field, operator, value}), evaluated against a fixed
field-resolution table and a fixed operator table. Evaluation is
fail-closed: an unresolvable field, an unknown operator or incomparable
operands make the condition false. It never raises.
"""
import operator as op
from typing import Any, Callable, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.core.logging import get_logger
from app.models.domain import Caller, Condition, QueryClassification, RoutingRule

logger = get_logger(__name__)


class RoutingContext(BaseModel):
    """Everything a condition can look at for one query."""

    model_config = ConfigDict(frozen=True)

    query: str
    classification: QueryClassification
    caller: Optional[Caller] = None
    extra: Dict[str, Any] = Field(default_factory=dict)


def _current_load(ctx: RoutingContext) -> Any:
    load = ctx.extra.get("current_load", ctx.extra.get("currentLoad"))
    return load or 0


FIELD_RESOLVERS: Dict[str, Callable[[RoutingContext], Any]] = {
    "query_length": lambda ctx: len(ctx.query),
    "query_type": lambda ctx: ctx.classification.category,
    "category": lambda ctx: ctx.classification.category,
    "complexity": lambda ctx: ctx.classification.complexity,
    "sensitivity": lambda ctx: ctx.classification.sensitivity,
    "estimated_tokens": lambda ctx: ctx.classification.estimated_tokens,
    "requires_code": lambda ctx: ctx.classification.requires_code,
    "requires_creativity": lambda ctx: ctx.classification.requires_creativity,
    "requires_factuality": lambda ctx: ctx.classification.requires_factuality,
    "user_role": lambda ctx: ctx.caller.role if ctx.caller else None,
    "department_id": lambda ctx: ctx.caller.department_id if ctx.caller else None,
    "current_load": _current_load,
}


def resolve_field(field: str, ctx: RoutingContext) -> Any:
    """
    Resolve a condition field to its actual value.

    Unknown field names are looked up in the extra context. None means
    the value is undefined.
    """
    resolver = FIELD_RESOLVERS.get(field)
    if resolver is None:
        return ctx.extra.get(field)
    return resolver(ctx)


def _as_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _contains(actual: Any, expected: Any) -> bool:
    return _as_text(expected) in _as_text(actual)


def _not_contains(actual: Any, expected: Any) -> bool:
    return _as_text(expected) not in _as_text(actual)


def _is_in(actual: Any, expected: Any) -> bool:
    return isinstance(expected, (list, tuple)) and actual in expected


def _is_not_in(actual: Any, expected: Any) -> bool:
    return isinstance(expected, (list, tuple)) and actual not in expected


OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "=": op.eq,
    "eq": op.eq,
    "!=": op.ne,
    "ne": op.ne,
    ">": op.gt,
    "gt": op.gt,
    ">=": op.ge,
    "gte": op.ge,
    "<": op.lt,
    "lt": op.lt,
    "<=": op.le,
    "lte": op.le,
    "contains": _contains,
    "not_contains": _not_contains,
    "in": _is_in,
    "not_in": _is_not_in,
}


ORDERED_OPERATORS = {">", "gt", ">=", "gte", "<", "lt", "<=", "lte"}


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _coerce_expected(operator: str, actual: Any, expected: Any) -> Any:
    """Numeric strings from admin forms ("5") compare as numbers."""
    if operator in ORDERED_OPERATORS and _is_number(actual) and isinstance(expected, str):
        return float(expected)
    return expected


def evaluate_condition(condition: Condition, ctx: RoutingContext) -> bool:
    compare = OPERATORS.get(condition.operator)
    if compare is None:
        logger.debug(
            "routing_condition_unknown_operator",
            field=condition.field,
            operator=condition.operator,
        )
        return False

    actual = resolve_field(condition.field, ctx)
    if actual is None:
        return False

    try:
        expected = _coerce_expected(condition.operator, actual, condition.value)
        return bool(compare(actual, expected))
    except (TypeError, ValueError) as e:
        # e.g. "technical" > 5, or 7.0 > "high"
        logger.debug(
            "routing_condition_incomparable",
            field=condition.field,
            operator=condition.operator,
            error=str(e),
            error_type=type(e).__name__,
        )
        return False


def matches_rule(rule: RoutingRule, ctx: RoutingContext) -> bool:
    """All conditions must hold; stops at the first false one."""
    for condition in rule.conditions:
        if not evaluate_condition(condition, ctx):
            return False
    return True
