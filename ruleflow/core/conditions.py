"""Evaluation of rule condition trees against ticket snapshots."""

import re
from collections.abc import Mapping
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..models.core import Condition, ConditionOperator, RuleConditions
from .logging import get_logger

logger = get_logger(__name__)


class _Missing:
    """Marker for a path that does not resolve in the ticket."""

    def __repr__(self):
        return "<missing>"


MISSING = _Missing()
PREVIOUS_PREFIX = "previous_"


def resolve_path(ticket: Mapping, path: str) -> Any:
    """
    Look up a dotted path such as ``custom_fields.region`` in a ticket.

    Mapping segments are keys; a numeric segment indexes into a list.
    Returns ``MISSING`` when any segment fails to resolve.
    """
    current: Any = ticket
    for segment in path.split("."):
        if isinstance(current, Mapping):
            if segment not in current:
                return MISSING
            current = current[segment]
        elif isinstance(current, (list, tuple)) and segment.isdigit():
            index = int(segment)
            if index >= len(current):
                return MISSING
            current = current[index]
        else:
            return MISSING
    return current


def _strict_equals(left: Any, right: Any) -> bool:
    # True == 1 in Python; keep booleans and numbers apart
    if isinstance(left, bool) != isinstance(right, bool):
        return False
    return left == right


def _naive_utc(value: datetime) -> datetime:
    # Naive timestamps are taken to be UTC already
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _as_comparable(value: Any) -> Optional[Any]:
    """Coerce to a float or datetime for ordering; None when not comparable."""
    if isinstance(value, bool) or value is None or value is MISSING:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, datetime):
        return _naive_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        text = value.strip()
        try:
            return float(text)
        except ValueError:
            pass
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return None
        return _naive_utc(parsed)
    return None


def _compare(left: Any, right: Any) -> Optional[Tuple[Any, Any]]:
    a, b = _as_comparable(left), _as_comparable(right)
    if a is None or b is None or type(a) is not type(b):
        return None
    return a, b


def _is_empty(value: Any) -> bool:
    if value is MISSING or value is None:
        return True
    if isinstance(value, (str, list, tuple, dict)):
        return len(value) == 0
    return False


def _contains(actual: Any, expected: Any) -> bool:
    if isinstance(actual, (list, tuple)):
        return any(_strict_equals(item, expected) for item in actual)
    if isinstance(actual, str) and expected is not None:
        return str(expected).lower() in actual.lower()
    return False


def _text(value: Any) -> str:
    if value is MISSING or value is None:
        return ""
    return str(value)


class ConditionEvaluator:
    """
    Evaluates ``{all, any}`` condition trees.

    A rule matches when every ``all`` condition holds and at least one ``any``
    condition holds; an empty group never vetoes. Malformed conditions
    evaluate to False and are reported as errors instead of raising.
    """

    def __init__(self):
        self._operators: Dict[str, Callable[[Any, Any, List[str]], bool]] = {
            ConditionOperator.EQUALS.value: lambda a, v, e: _strict_equals(a, v),
            ConditionOperator.NOT_EQUALS.value: lambda a, v, e: not _strict_equals(a, v),
            ConditionOperator.CONTAINS.value: lambda a, v, e: _contains(a, v),
            ConditionOperator.NOT_CONTAINS.value: lambda a, v, e: not _contains(a, v),
            ConditionOperator.IN.value: self._in,
            ConditionOperator.NOT_IN.value: self._not_in,
            ConditionOperator.GT.value: self._gt,
            ConditionOperator.LT.value: self._lt,
            ConditionOperator.EXISTS.value: lambda a, v, e: a is not MISSING,
            ConditionOperator.STARTS_WITH.value: lambda a, v, e: _text(a).lower().startswith(_text(v).lower()),
            ConditionOperator.ENDS_WITH.value: lambda a, v, e: _text(a).lower().endswith(_text(v).lower()),
            ConditionOperator.IS_EMPTY.value: lambda a, v, e: _is_empty(a),
            ConditionOperator.IS_NOT_EMPTY.value: lambda a, v, e: not _is_empty(a),
            ConditionOperator.MATCHES.value: self._matches,
        }
        for alias, target in (
            (ConditionOperator.IS, ConditionOperator.EQUALS),
            (ConditionOperator.IS_NOT, ConditionOperator.NOT_EQUALS),
            (ConditionOperator.GREATER_THAN, ConditionOperator.GT),
            (ConditionOperator.LESS_THAN, ConditionOperator.LT),
        ):
            self._operators[alias.value] = self._operators[target.value]

        # Change operators compare the field with its ``previous_<field>`` value
        self._change_operators: Dict[str, Callable[[Any, Any, Any], bool]] = {
            ConditionOperator.CHANGED.value: lambda a, p, v: p is not MISSING and not _strict_equals(a, p),
            ConditionOperator.CHANGED_TO.value: lambda a, p, v: _strict_equals(a, v) and not _strict_equals(a, p),
        }

    def evaluate(self, conditions: RuleConditions, ticket: Mapping) -> bool:
        """Return whether ``ticket`` satisfies ``conditions``."""
        matched, _ = self.evaluate_with_errors(conditions, ticket)
        return matched

    def evaluate_with_errors(self, conditions: RuleConditions, ticket: Mapping) -> Tuple[bool, List[str]]:
        """Return ``(matched, errors)``; every condition is evaluated so all errors surface."""
        errors: List[str] = []
        all_results = [self.evaluate_condition(c, ticket, errors) for c in conditions.all]
        any_results = [self.evaluate_condition(c, ticket, errors) for c in conditions.any]

        matched = all(all_results) and (not any_results or any(any_results))
        return matched, errors

    def evaluate_condition(self, condition: Condition, ticket: Mapping, errors: List[str]) -> bool:
        actual = resolve_path(ticket, condition.field)

        change = self._change_operators.get(condition.operator)
        if change is not None:
            previous = resolve_path(ticket, f"{PREVIOUS_PREFIX}{condition.field}")
            return change(actual, previous, condition.value)

        operator = self._operators.get(condition.operator)
        if operator is None:
            errors.append(f"unknown condition operator: {condition.operator}")
            return False

        try:
            return bool(operator(actual, condition.value, errors))
        except Exception as e:
            logger.debug(f"Condition on '{condition.field}' failed: {str(e)}")
            errors.append(f"condition {condition.operator} on '{condition.field}' failed: {str(e)}")
            return False

    @staticmethod
    def _in(actual: Any, expected: Any, errors: List[str]) -> bool:
        if not isinstance(expected, (list, tuple)):
            errors.append(f"operator 'in' requires a list value, got {type(expected).__name__}")
            return False
        return any(_strict_equals(actual, item) for item in expected)

    @staticmethod
    def _not_in(actual: Any, expected: Any, errors: List[str]) -> bool:
        if not isinstance(expected, (list, tuple)):
            errors.append(f"operator 'not_in' requires a list value, got {type(expected).__name__}")
            return False
        return not any(_strict_equals(actual, item) for item in expected)

    @staticmethod
    def _gt(actual: Any, expected: Any, errors: List[str]) -> bool:
        pair = _compare(actual, expected)
        return pair is not None and pair[0] > pair[1]

    @staticmethod
    def _lt(actual: Any, expected: Any, errors: List[str]) -> bool:
        pair = _compare(actual, expected)
        return pair is not None and pair[0] < pair[1]

    @staticmethod
    def _matches(actual: Any, expected: Any, errors: List[str]) -> bool:
        try:
            pattern = re.compile(_text(expected), re.IGNORECASE)
        except re.error as e:
            errors.append(f"invalid regular expression '{expected}': {str(e)}")
            return False
        return pattern.search(_text(actual)) is not None
