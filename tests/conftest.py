import json
import threading
from typing import Any, Dict, List, Optional

import pytest

from flagship.errors import TransportError
from flagship.models import EvaluationContext
from flagship.transport import FetchResponse

DEFAULT_CONTEXT = {
    "user_tier": "premium",
    "country": "US",
    "is_logged_in": True,
    "session_count": 150.0,
    "userId": 3456,
    "app_version": "2.5.0",
    "cohort": ["early-adopter", "beta-tester", "premium"],
}


def make_constraint(field: str, operator: str, value: Any) -> dict:
    return {"context_field": field, "operator": operator, "value": value}


def make_rule(name: str, constraints: Optional[List[dict]] = None, allocations: Optional[List[tuple]] = None) -> dict:
    return {
        "rule_name": name,
        "constraints": constraints or [],
        "allocations": [{"variant_key": k, "percentage": p} for k, p in (allocations or [])],
    }


def make_feature(
    key: str = "feature",
    type: str = "integer",
    variants: Optional[Dict[str, Any]] = None,
    rules: Optional[List[dict]] = None,
    default_variant: Optional[str] = "default",
    **fields: Any,
) -> dict:
    variants = variants if variants is not None else {"variant-a": 100, "variant-b": 200, "default": 300}
    feature = {
        "key": key,
        "enabled": True,
        "rollout_percentage": 100,
        "type": type,
        "updated_at": 1700000000,
        "rules": rules or [],
        "default_rule": None,
        "variants": [{"key": k, "value": v} for k, v in variants.items()],
    }
    if default_variant is not None:
        feature["default_rule"] = {"rule_name": "default", "allocation": [{"variant_key": default_variant, "percentage": 100}]}
    feature.update(fields)
    return feature


def make_payload(*features: dict, updated_at: float = 1700000000.0) -> dict:
    return {"features": list(features), "updated_at": updated_at}


def make_context(targeting_key: str = "test-key", **overrides: Any) -> EvaluationContext:
    attributes = dict(DEFAULT_CONTEXT)
    attributes.update(overrides)
    return EvaluationContext.build(targeting_key, attributes)


class FakeFetcher:
    """Serves queued payloads; a queued exception is raised instead."""

    def __init__(self, *responses: Any):
        self.responses = list(responses)
        self.calls = 0

    def push(self, response: Any) -> None:
        self.responses.append(response)

    def fetch(self) -> FetchResponse:
        self.calls += 1
        if not self.responses:
            raise TransportError("no response queued")
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        if isinstance(response, FetchResponse):
            return response
        return FetchResponse(body=json.dumps(response))


class BlockingFetcher(FakeFetcher):
    """Blocks inside fetch() until released, so a cycle stays in flight."""

    def __init__(self, *responses: Any):
        super().__init__(*responses)
        self.entered = threading.Event()
        self.release = threading.Event()

    def fetch(self) -> FetchResponse:
        self.entered.set()
        self.release.wait(5)
        return super().fetch()


@pytest.fixture
def context() -> EvaluationContext:
    return make_context()
