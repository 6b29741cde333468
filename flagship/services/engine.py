"""Rule evaluation.

Every resolve_* function is pure: the outcome depends only on the feature,
the context and the targeting key. Failures inside a single call surface as
Reason.ERROR together with the caller's default, never as an exception.
"""
import copy
import logging
from typing import Any, Callable, Dict, Optional, Sequence

from flagship.errors import EvaluationError
from flagship.models import EvaluationContext, EvaluationResult, FlagType, Reason
from flagship.schemas import AllocationElement, Feature, VariantElement
from flagship.services.constraints import rule_matches
from flagship.services.hashing import in_rollout, percentile

logger = logging.getLogger(__name__)


def select_allocation(flag_key: str, rule_name: str, targeting_key: str, allocations: Sequence[AllocationElement]) -> AllocationElement:
    if not allocations:
        raise EvaluationError(f"rule {rule_name!r} has no allocations")
    total = sum(a.percentage for a in allocations)
    if total != 100:
        raise EvaluationError(f"rule {rule_name!r} allocations sum to {total}, expected 100")
    bucket = percentile(flag_key, targeting_key, rule_name)
    running = 0
    for allocation in allocations:
        running += allocation.percentage
        if bucket < running:
            return allocation
    # unreachable while the total is 100
    raise EvaluationError(f"bucket {bucket} outside allocations of rule {rule_name!r}")


def _variant_for(feature: Feature, rule_name: str, targeting_key: str, allocations: Sequence[AllocationElement]) -> VariantElement:
    allocation = select_allocation(feature.key, rule_name, targeting_key, allocations)
    variant = feature.variant(allocation.variant_key)
    if variant is None:
        raise EvaluationError(f"variant {allocation.variant_key!r} not defined on {feature.key!r}")
    return variant


def _evaluate(
    feature: Optional[Feature],
    context: EvaluationContext,
    targeting_key: Optional[str],
    default: Any,
    requested: FlagType,
    unwrap: Callable[[Any], Any],
) -> EvaluationResult:
    if feature is None:
        return EvaluationResult(default, Reason.ERROR, error_message="flag not found")
    if not feature.enabled:
        return EvaluationResult(default, Reason.DISABLED)

    key = targeting_key or context.targeting_key
    if not in_rollout(feature.key, key, feature.rollout_percentage):
        return EvaluationResult(default, Reason.DEFAULT)

    try:
        for rule in feature.rules:
            if rule_matches(rule, context):
                variant = _variant_for(feature, rule.rule_name, key, rule.allocations)
                reason = Reason.TARGETING_MATCH
                break
        else:
            if feature.default_rule is None:
                return EvaluationResult(default, Reason.DEFAULT)
            rule = feature.default_rule
            variant = _variant_for(feature, rule.rule_name, key, rule.allocation)
            reason = Reason.DEFAULT_TARGETING_MATCH

        if feature.type != requested:
            raise EvaluationError(f"flag {feature.key!r} is {feature.type.value}, requested {requested.value}")
        return EvaluationResult(unwrap(variant.value), reason, variant_key=variant.key)
    except EvaluationError as e:
        return EvaluationResult(default, Reason.ERROR, error_message=str(e))
    except Exception as e:
        logger.exception("Unexpected error evaluating flag", extra={"flag_key": feature.key})
        return EvaluationResult(default, Reason.ERROR, error_message=str(e))


def resolve_boolean(feature: Optional[Feature], context: EvaluationContext, targeting_key: Optional[str], default: bool) -> EvaluationResult:
    return _evaluate(feature, context, targeting_key, default, FlagType.BOOLEAN, lambda v: v.value)


def resolve_string(feature: Optional[Feature], context: EvaluationContext, targeting_key: Optional[str], default: str) -> EvaluationResult:
    return _evaluate(feature, context, targeting_key, default, FlagType.STRING, lambda v: v.value)


def resolve_integer(feature: Optional[Feature], context: EvaluationContext, targeting_key: Optional[str], default: int) -> EvaluationResult:
    return _evaluate(feature, context, targeting_key, default, FlagType.INTEGER, lambda v: v.value)


def resolve_double(feature: Optional[Feature], context: EvaluationContext, targeting_key: Optional[str], default: float) -> EvaluationResult:
    return _evaluate(feature, context, targeting_key, default, FlagType.DOUBLE, lambda v: v.value)


def resolve_object(
    feature: Optional[Feature], context: EvaluationContext, targeting_key: Optional[str], default: Dict[str, Any]
) -> EvaluationResult:
    return _evaluate(feature, context, targeting_key, default, FlagType.OBJECT, lambda v: copy.deepcopy(dict(v.value)))


def resolve_semver(feature: Optional[Feature], context: EvaluationContext, targeting_key: Optional[str], default: str) -> EvaluationResult:
    return _evaluate(feature, context, targeting_key, default, FlagType.SEMVER, lambda v: v.raw)
