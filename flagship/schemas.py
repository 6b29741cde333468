import json
import logging
from types import MappingProxyType
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, ValidationError, conint, model_validator, field_validator

from flagship.errors import SchemaError
from flagship.models import (
    SCALAR_TYPES,
    BoolValue,
    DoubleValue,
    FlagType,
    IntegerValue,
    ListValue,
    ObjectValue,
    Operator,
    SemverValue,
    StringValue,
    TypedValue,
)

logger = logging.getLogger(__name__)

_TYPED_CLASSES = SCALAR_TYPES + (ObjectValue, ListValue)


def _decode_scalar(raw: Any):
    if isinstance(raw, SCALAR_TYPES):
        return raw
    if isinstance(raw, dict) and "type" in raw:
        return _decode_tagged(raw["type"], raw.get("value"), allow_list=False)
    if isinstance(raw, bool):
        return BoolValue(raw)
    if isinstance(raw, int):
        return IntegerValue(raw)
    if isinstance(raw, float):
        return DoubleValue(raw)
    if isinstance(raw, str):
        return StringValue(raw)
    raise ValueError(f"unsupported scalar constraint value: {raw!r}")


def _decode_tagged(kind: Any, value: Any, allow_list: bool = True):
    kind = str(kind).lower()
    if kind == "string" and isinstance(value, str):
        return StringValue(value)
    if kind in ("bool", "boolean") and isinstance(value, bool):
        return BoolValue(value)
    if kind in ("integer", "int") and isinstance(value, int) and not isinstance(value, bool):
        return IntegerValue(value)
    if kind == "double" and isinstance(value, (int, float)) and not isinstance(value, bool):
        return DoubleValue(float(value))
    if kind == "semver" and isinstance(value, str):
        return SemverValue.parse(value)
    if kind in ("array", "list") and allow_list and isinstance(value, list):
        return ListValue(tuple(_decode_scalar(item) for item in value))
    raise ValueError(f"value {value!r} is not a valid {kind}")


def decode_constraint_value(raw: Any) -> TypedValue:
    """Resolve a wire constraint value into its typed form.

    Plain JSON values take their kind from the JSON type; ``{"type", "value"}``
    objects carry an explicit kind (the only way to express a semver).
    """
    if isinstance(raw, _TYPED_CLASSES):
        return raw
    if isinstance(raw, list):
        return ListValue(tuple(_decode_scalar(item) for item in raw))
    if isinstance(raw, dict) and "type" in raw:
        return _decode_tagged(raw["type"], raw.get("value"))
    return _decode_scalar(raw)


def decode_variant_value(flag_type: FlagType, raw: Any) -> TypedValue:
    if isinstance(raw, _TYPED_CLASSES):
        return raw
    if flag_type == FlagType.BOOLEAN and isinstance(raw, bool):
        return BoolValue(raw)
    if flag_type == FlagType.STRING and isinstance(raw, str):
        return StringValue(raw)
    if flag_type == FlagType.INTEGER and isinstance(raw, int) and not isinstance(raw, bool):
        return IntegerValue(raw)
    if flag_type == FlagType.DOUBLE and isinstance(raw, (int, float)) and not isinstance(raw, bool):
        return DoubleValue(float(raw))
    if flag_type == FlagType.OBJECT and isinstance(raw, dict):
        return ObjectValue(MappingProxyType(dict(raw)))
    if flag_type == FlagType.SEMVER and isinstance(raw, str):
        return SemverValue.parse(raw)
    raise ValueError(f"variant value {raw!r} does not match feature type {flag_type.value}")


class AllocationElement(BaseModel):
    model_config = ConfigDict(frozen=True)

    variant_key: str
    percentage: conint(ge=0, le=100)


class Constraint(BaseModel):
    model_config = ConfigDict(frozen=True)

    context_field: str
    operator: Operator
    value: Any

    @field_validator("value", mode="before")
    @classmethod
    def _typed_value(cls, raw):
        return decode_constraint_value(raw)


class Rule(BaseModel):
    model_config = ConfigDict(frozen=True)

    rule_name: str
    constraints: Tuple[Constraint, ...] = ()
    allocations: Tuple[AllocationElement, ...] = ()


class DefaultRule(BaseModel):
    model_config = ConfigDict(frozen=True)

    rule_name: str = "default"
    allocation: Tuple[AllocationElement, ...] = ()


class VariantElement(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str
    value: Any


# absent or null on the wire -> default applies
_NULLABLE_DEFAULTS = ("enabled", "rollout_percentage", "rules", "variants")


class Feature(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str
    enabled: bool = False
    rollout_percentage: conint(ge=0, le=100) = 100
    type: FlagType
    updated_at: Optional[float] = None
    rules: Tuple[Rule, ...] = ()
    default_rule: Optional[DefaultRule] = None
    variants: Tuple[VariantElement, ...] = ()

    @model_validator(mode="before")
    @classmethod
    def _decode_variants(cls, data):
        if not isinstance(data, dict):
            return data
        data = {k: v for k, v in data.items() if not (k in _NULLABLE_DEFAULTS and v is None)}
        flag_type = FlagType(data.get("type"))
        raw_variants = data.get("variants", [])
        if not isinstance(raw_variants, (list, tuple)):
            raise ValueError("variants must be a list")
        variants = []
        for variant in raw_variants:
            if isinstance(variant, dict):
                variant = {**variant, "value": decode_variant_value(flag_type, variant.get("value"))}
            variants.append(variant)
        data["type"] = flag_type
        data["variants"] = variants
        return data

    def variant(self, key: str) -> Optional[VariantElement]:
        for variant in self.variants:
            if variant.key == key:
                return variant
        return None


class FeatureFlagsSchema(BaseModel):
    model_config = ConfigDict(frozen=True)

    features: Tuple[Feature, ...] = ()
    updated_at: float = Field(...)

    _index: Dict[str, Feature] = PrivateAttr(default_factory=dict)

    def model_post_init(self, __context: Any) -> None:
        index = {}
        for feature in self.features:
            index.setdefault(feature.key, feature)
        self._index = index

    def get(self, key: str) -> Optional[Feature]:
        return self._index.get(key)

    def __len__(self) -> int:
        return len(self._index)


def parse_schema(payload: Union[str, bytes, dict]) -> Tuple[FeatureFlagsSchema, List[SchemaError]]:
    """Parse a wire payload, dropping features that fail validation.

    Returns the schema and the per-feature errors that were contained.
    Raises SchemaError when the payload as a whole is unusable.
    """
    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except ValueError as e:
            raise SchemaError(f"payload is not valid JSON: {e}", cause=e) from e
    if not isinstance(payload, dict):
        raise SchemaError("payload must be a JSON object")
    raw_features = payload.get("features")
    if not isinstance(raw_features, list):
        raise SchemaError("payload.features must be a list")
    updated_at = payload.get("updated_at")
    if isinstance(updated_at, bool) or not isinstance(updated_at, (int, float)):
        raise SchemaError("payload.updated_at must be a number")

    features = []
    seen = set()
    errors = []
    for raw in raw_features:
        key = raw.get("key") if isinstance(raw, dict) else None
        try:
            feature = Feature.model_validate(raw)
        except (ValidationError, ValueError, TypeError) as e:
            errors.append(SchemaError(f"feature {key!r} dropped: {e}", feature_key=key, cause=e))
            logger.warning("Dropping malformed feature", extra={"feature_key": key, "error": str(e)})
            continue
        if feature.key in seen:
            errors.append(SchemaError(f"duplicate feature key {feature.key!r} dropped", feature_key=feature.key))
            logger.warning("Dropping duplicate feature", extra={"feature_key": feature.key})
            continue
        seen.add(feature.key)
        features.append(feature)

    return FeatureFlagsSchema(features=tuple(features), updated_at=float(updated_at)), errors
