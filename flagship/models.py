from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from semver import Version

from flagship.services.semver import parse_semver


class Reason(str, Enum):
    TARGETING_MATCH = "TARGETING_MATCH"
    DEFAULT_TARGETING_MATCH = "DEFAULT_TARGETING_MATCH"
    DEFAULT = "DEFAULT"
    DISABLED = "DISABLED"
    ERROR = "ERROR"


class FlagType(str, Enum):
    BOOLEAN = "boolean"
    STRING = "string"
    INTEGER = "integer"
    DOUBLE = "double"
    OBJECT = "object"
    SEMVER = "semver"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            for member in cls:
                if member.value == value.lower():
                    return member
        return None


class Operator(str, Enum):
    EQ = "eq"
    NEQ = "neq"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    IN = "in"
    CT = "ct"


@dataclass(frozen=True)
class StringValue:
    value: str


@dataclass(frozen=True)
class BoolValue:
    value: bool


@dataclass(frozen=True)
class IntegerValue:
    value: int


@dataclass(frozen=True)
class DoubleValue:
    value: float


@dataclass(frozen=True)
class SemverValue:
    raw: str
    version: Version

    @classmethod
    def parse(cls, raw: str) -> "SemverValue":
        version = parse_semver(raw)
        if version is None:
            raise ValueError(f"invalid semantic version: {raw!r}")
        return cls(raw=raw, version=version)


@dataclass(frozen=True)
class ObjectValue:
    value: Mapping[str, Any]


ScalarValue = Union[StringValue, BoolValue, IntegerValue, DoubleValue, SemverValue]


@dataclass(frozen=True)
class ListValue:
    items: Tuple["TypedValue", ...]


TypedValue = Union[StringValue, BoolValue, IntegerValue, DoubleValue, SemverValue, ObjectValue, ListValue]

SCALAR_TYPES = (StringValue, BoolValue, IntegerValue, DoubleValue, SemverValue)


def to_typed_value(value: Any) -> TypedValue:
    """Convert a plain Python attribute value into its typed form.

    bool is checked before int since bool is an int subclass.
    """
    if isinstance(value, bool):
        return BoolValue(value)
    if isinstance(value, int):
        return IntegerValue(value)
    if isinstance(value, float):
        return DoubleValue(value)
    if isinstance(value, str):
        return StringValue(value)
    if isinstance(value, (list, tuple, set, frozenset)):
        return ListValue(tuple(to_typed_value(v) for v in value if v is not None))
    if isinstance(value, dict):
        return ObjectValue(MappingProxyType(dict(value)))
    raise TypeError(f"unsupported attribute value type: {type(value).__name__}")


@dataclass(frozen=True)
class EvaluationContext:
    targeting_key: str = ""
    attributes: Mapping[str, TypedValue] = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def build(cls, targeting_key: str, attributes: Optional[Dict[str, Any]] = None) -> "EvaluationContext":
        typed = {}
        for name, value in (attributes or {}).items():
            if value is None:
                continue
            typed[name] = to_typed_value(value)
        return cls(targeting_key=targeting_key or "", attributes=MappingProxyType(typed))

    def get(self, name: str) -> Optional[TypedValue]:
        return self.attributes.get(name)


@dataclass(frozen=True)
class EvaluationResult:
    value: Any
    reason: Reason
    variant_key: Optional[str] = None
    error_message: Optional[str] = None
