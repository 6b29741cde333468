from typing import Any, Optional, Tuple

from flagship.models import (
    BoolValue,
    DoubleValue,
    EvaluationContext,
    IntegerValue,
    ListValue,
    Operator,
    SemverValue,
    StringValue,
    TypedValue,
)
from flagship.schemas import Constraint, Rule
from flagship.services.semver import parse_semver

_PLAIN_KINDS = (StringValue, BoolValue, IntegerValue, DoubleValue)
_ORDERED_KINDS = (IntegerValue, DoubleValue, SemverValue)


def _comparable(expected: TypedValue, actual: TypedValue) -> Optional[Tuple[Any, Any]]:
    """Return (expected, actual) as comparable Python values, or None when the kinds differ."""
    if isinstance(expected, SemverValue):
        if isinstance(actual, SemverValue):
            return expected.version, actual.version
        if isinstance(actual, StringValue):
            version = parse_semver(actual.value)
            if version is not None:
                return expected.version, version
        return None
    if isinstance(expected, _PLAIN_KINDS) and type(expected) is type(actual):
        return expected.value, actual.value
    return None


def _equals(expected: TypedValue, actual: TypedValue) -> bool:
    pair = _comparable(expected, actual)
    return pair is not None and pair[0] == pair[1]


def _ordered(op: Operator, expected: TypedValue, actual: TypedValue) -> bool:
    if not isinstance(expected, _ORDERED_KINDS):
        return False
    pair = _comparable(expected, actual)
    if pair is None:
        return False
    want, got = pair
    if op == Operator.GT:
        return got > want
    if op == Operator.GTE:
        return got >= want
    if op == Operator.LT:
        return got < want
    return got <= want


def evaluate_constraint(constraint: Constraint, context: EvaluationContext) -> bool:
    actual = context.get(constraint.context_field)
    # a missing field fails every operator, neq included
    if actual is None:
        return False
    expected = constraint.value
    op = constraint.operator

    if op == Operator.EQ:
        return _equals(expected, actual)
    if op == Operator.NEQ:
        pair = _comparable(expected, actual)
        return pair is not None and pair[0] != pair[1]
    if op in (Operator.GT, Operator.GTE, Operator.LT, Operator.LTE):
        return _ordered(op, expected, actual)
    if op == Operator.IN:
        if not isinstance(expected, ListValue) or isinstance(actual, ListValue):
            return False
        return any(_equals(item, actual) for item in expected.items)
    if op == Operator.CT:
        if not isinstance(actual, ListValue) or isinstance(expected, ListValue):
            return False
        return any(_equals(expected, item) for item in actual.items)
    return False


def rule_matches(rule: Rule, context: EvaluationContext) -> bool:
    return all(evaluate_constraint(c, context) for c in rule.constraints)
