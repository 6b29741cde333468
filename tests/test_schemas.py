import json

import pytest

from conftest import make_constraint, make_feature, make_payload, make_rule
from flagship.errors import SchemaError
from flagship.models import FlagType, IntegerValue, ListValue, ObjectValue, Operator, SemverValue, StringValue
from flagship.schemas import Feature, parse_schema


def test_parse_valid_payload():
    schema, errors = parse_schema(json.dumps(make_payload(make_feature("a"), make_feature("b"), updated_at=42.5)))
    assert errors == []
    assert schema.updated_at == 42.5
    assert [f.key for f in schema.features] == ["a", "b"]
    assert schema.get("a").type == FlagType.INTEGER
    assert schema.get("missing") is None


def test_field_defaults_when_absent():
    raw = make_feature("defaults")
    for name in ("enabled", "rollout_percentage", "rules"):
        del raw[name]
    feature = Feature.model_validate(raw)
    assert feature.enabled is False
    assert feature.rollout_percentage == 100
    assert feature.rules == ()


def test_null_fields_take_defaults():
    feature = Feature.model_validate(make_feature("nulls", enabled=None, rollout_percentage=None, rules=None))
    assert feature.enabled is False
    assert feature.rollout_percentage == 100
    assert feature.rules == ()


def test_rule_and_constraint_order_preserved():
    rules = [make_rule(f"rule-{i}", [make_constraint("c", "eq", str(j)) for j in range(3)], [("default", 100)]) for i in range(4)]
    feature = Feature.model_validate(make_feature("ordered", rules=rules))
    assert [r.rule_name for r in feature.rules] == ["rule-0", "rule-1", "rule-2", "rule-3"]
    assert [c.value for c in feature.rules[0].constraints] == [StringValue("0"), StringValue("1"), StringValue("2")]


def test_constraint_values_resolved_at_parse_time():
    rule = make_rule(
        "r",
        [
            make_constraint("a", "in", [1, {"type": "semver", "value": "1.2.3"}, "x"]),
            make_constraint("b", "eq", {"type": "integer", "value": 7}),
        ],
    )
    feature = Feature.model_validate(make_feature("typed", rules=[rule]))
    first, second = feature.rules[0].constraints
    assert first.operator == Operator.IN
    assert isinstance(first.value, ListValue)
    assert first.value.items[0] == IntegerValue(1)
    assert isinstance(first.value.items[1], SemverValue)
    assert first.value.items[1].raw == "1.2.3"
    assert second.value == IntegerValue(7)


def test_variant_values_follow_feature_type():
    feature = Feature.model_validate(
        make_feature("obj", type="object", variants={"on": {"color": "red"}, "default": {"color": "blue"}})
    )
    assert isinstance(feature.variant("on").value, ObjectValue)
    assert feature.variant("on").value.value["color"] == "red"


def test_feature_type_is_case_insensitive():
    assert Feature.model_validate(make_feature("t", type="Integer")).type == FlagType.INTEGER


def test_malformed_feature_is_dropped_rest_applies():
    bad_variant = make_feature("bad-variant", variants={"default": "not-an-int"})
    bad_operator = make_feature("bad-op", rules=[make_rule("r", [make_constraint("a", "matches", "x")], [("default", 100)])])
    bad_type = make_feature("bad-type", type="color")
    schema, errors = parse_schema(make_payload(make_feature("good"), bad_variant, bad_operator, bad_type, "junk"))
    assert [f.key for f in schema.features] == ["good"]
    assert len(errors) == 4
    assert {e.feature_key for e in errors} == {"bad-variant", "bad-op", "bad-type", None}
    assert all(isinstance(e, SchemaError) for e in errors)


@pytest.mark.parametrize("variants", [5, True, "default", {"default": 1}])
def test_non_list_variants_drop_only_that_feature(variants):
    bad = make_feature("bad-shape")
    bad["variants"] = variants
    schema, errors = parse_schema(make_payload(make_feature("good"), bad))
    assert [f.key for f in schema.features] == ["good"]
    assert [e.feature_key for e in errors] == ["bad-shape"]


def test_semver_prerelease_variant_parses():
    feature = Feature.model_validate(make_feature("sdk", type="semver", variants={"default": "1.0.0-SNAPSHOT"}))
    value = feature.variants[0].value
    assert isinstance(value, SemverValue)
    assert value.raw == "1.0.0-SNAPSHOT"


def test_rollout_percentage_out_of_range_drops_feature():
    schema, errors = parse_schema(make_payload(make_feature("too-much", rollout_percentage=150)))
    assert len(schema) == 0
    assert errors[0].feature_key == "too-much"


def test_duplicate_keys_keep_first():
    schema, errors = parse_schema(make_payload(make_feature("dup", enabled=True), make_feature("dup", enabled=False)))
    assert len(schema) == 1
    assert schema.get("dup").enabled is True
    assert len(errors) == 1


@pytest.mark.parametrize(
    "payload",
    [
        "{not json",
        "[]",
        json.dumps({"updated_at": 1}),
        json.dumps({"features": [], "updated_at": "yesterday"}),
        json.dumps({"features": {}, "updated_at": 1}),
    ],
)
def test_unusable_payload_raises(payload):
    with pytest.raises(SchemaError):
        parse_schema(payload)


def test_schema_is_immutable():
    schema, _ = parse_schema(make_payload(make_feature("a")))
    with pytest.raises(Exception):
        schema.updated_at = 0
    with pytest.raises(Exception):
        schema.get("a").enabled = False
