"""Tests for batch validation.

Tests cover:
- Structural checks (method, self/unknown/cyclic dependencies)
- Cardinality (empty, over max)
- Allow/deny policy with deny precedence
"""

import pytest

from batchgate.config import PolicyConfig
from batchgate.errors import ForbiddenRequest, InvalidRequestBody, MaxRequestsExceeded
from batchgate.schemas import BatchDocument
from batchgate.validator import Validator, find_cycle, validate, validate_body


def _doc(body) -> BatchDocument:
    return BatchDocument.parse(body)


class TestStructure:
    def test_valid_batch(self, policy):
        doc = _doc({
            "a": {"method": "m.x", "dependencies": []},
            "b": {"method": "m.y", "dependencies": ["a"]},
        })
        assert validate(doc, policy) is None

    def test_self_dependency(self, policy):
        error = validate(_doc({"a": {"method": "m.x", "dependencies": ["a"]}}), policy)
        assert isinstance(error, InvalidRequestBody)
        assert error.status_code == 422

    @pytest.mark.parametrize("entry", [{}, {"method": ""}, {"method": None}, {"method": 5}])
    def test_missing_method(self, policy, entry):
        error = validate(_doc({"a": entry}), policy)
        assert isinstance(error, InvalidRequestBody)

    def test_unknown_dependency(self, policy):
        error = validate(_doc({"a": {"method": "m.x", "dependencies": ["ghost"]}}), policy)
        assert isinstance(error, InvalidRequestBody)
        assert "ghost" in error.message

    def test_cycle(self, policy):
        error = validate(_doc({
            "a": {"method": "m.x", "dependencies": ["c"]},
            "b": {"method": "m.x", "dependencies": ["a"]},
            "c": {"method": "m.x", "dependencies": ["b"]},
        }), policy)
        assert isinstance(error, InvalidRequestBody)
        assert "cycle" in error.message

    def test_structure_checked_before_cardinality(self):
        doc = _doc({
            "a": {"method": "m.x"},
            "b": {"method": "m.x"},
            "c": {"method": "", "dependencies": ["c"]},
        })
        error = validate(doc, PolicyConfig(max_requests=1))
        assert isinstance(error, InvalidRequestBody)

    def test_sequence_dependencies_by_index(self, policy):
        doc = _doc([{"method": "m.x"}, {"method": "m.y", "dependencies": [0]}])
        assert validate(doc, policy) is None


class TestFindCycle:
    def test_no_cycle(self):
        doc = _doc({
            "a": {"method": "m"},
            "b": {"method": "m", "dependencies": ["a"]},
            "c": {"method": "m", "dependencies": ["a", "b"]},
        })
        assert find_cycle(doc) is None

    def test_reports_cycle_path(self):
        doc = _doc({
            "a": {"method": "m", "dependencies": ["b"]},
            "b": {"method": "m", "dependencies": ["a"]},
        })
        assert find_cycle(doc) == ["a", "b", "a"]

    def test_long_chain_does_not_recurse(self):
        body = {"n0": {"method": "m"}}
        for i in range(1, 5000):
            body[f"n{i}"] = {"method": "m", "dependencies": [f"n{i - 1}"]}
        assert find_cycle(_doc(body)) is None


class TestCardinality:
    def test_empty_mapping(self, policy):
        error = validate(_doc({}), policy)
        assert isinstance(error, InvalidRequestBody)

    def test_empty_list(self, policy):
        assert isinstance(validate(_doc([]), policy), InvalidRequestBody)

    def test_over_max(self):
        doc = _doc({
            "a": {"method": "m.x"},
            "b": {"method": "m.y"},
            "c": {"method": "m.z"},
        })
        error = validate(doc, PolicyConfig(max_requests=2))
        assert isinstance(error, MaxRequestsExceeded)
        assert error.status_code == 406

    def test_exactly_max(self):
        doc = _doc({"a": {"method": "m.x"}, "b": {"method": "m.y"}})
        assert validate(doc, PolicyConfig(max_requests=2)) is None

    def test_repeated_method_counts_once(self):
        """The limit applies to distinct methods, not to sub-calls."""
        doc = _doc({
            "a": {"method": "m.x"},
            "b": {"method": "m.x"},
            "c": {"method": "m.x"},
        })
        assert validate(doc, PolicyConfig(max_requests=2)) is None
        assert validate(doc, PolicyConfig(max_requests=1)) is None


class TestPolicy:
    def test_deny_without_allow_list(self):
        doc = _doc({"a": {"method": "internal.secret"}})
        error = validate(doc, PolicyConfig(forbidden_apis=("internal.*",)))
        assert isinstance(error, ForbiddenRequest)
        assert error.status_code == 403

    def test_deny_wins_over_allow(self):
        doc = _doc({"a": {"method": "internal.secret"}})
        policy = PolicyConfig(allowed_apis=("internal.*",), forbidden_apis=("internal.secret",))
        assert isinstance(validate(doc, policy), ForbiddenRequest)

    def test_outside_allow_list(self):
        doc = _doc({"a": {"method": "articles.index"}, "b": {"method": "users.index"}})
        error = validate(doc, PolicyConfig(allowed_apis=("articles.*",)))
        assert isinstance(error, ForbiddenRequest)
        assert "users.index" in error.message

    def test_inside_allow_list(self):
        doc = _doc({"a": {"method": "articles.index"}, "b": {"method": "articles.create"}})
        assert validate(doc, PolicyConfig(allowed_apis=("articles.*",))) is None

    def test_empty_lists_allow_everything(self):
        doc = _doc({"a": {"method": "anything.at.all"}})
        assert validate(doc, PolicyConfig()) is None

    def test_cardinality_checked_before_policy(self):
        doc = _doc({"a": {"method": "internal.secret"}, "b": {"method": "m.x"}})
        policy = PolicyConfig(max_requests=1, forbidden_apis=("internal.*",))
        assert isinstance(validate(doc, policy), MaxRequestsExceeded)


class TestValidateBody:
    def test_malformed_body(self, policy):
        assert isinstance(validate_body("nope", policy), InvalidRequestBody)

    def test_valid_body(self, policy):
        assert validate_body({"a": {"method": "m.x"}}, policy) is None

    def test_validator_is_side_effect_free(self, policy):
        body = {"a": {"method": "m.x", "dependencies": "b"}, "b": {"method": "m.y"}}
        validator = Validator(policy)
        doc = _doc(body)
        assert validator(doc) is None
        assert validator(doc) is None
        assert body["a"]["dependencies"] == "b"
        assert validator.policy is policy
