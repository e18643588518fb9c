"""Tests for validation/predicates.py: coverage judgments and rule dispatch."""

from __future__ import annotations

import json

import pytest

from docflow.errors import RuleExecutionError
from docflow.validation.bundle import ArtifactBundle
from docflow.validation.models import RuleType, Severity, ValidationRule
from docflow.validation.predicates import (
    PREDICATES,
    check_cross_artifact,
    check_requirement_api,
    check_requirement_data,
    check_requirement_task,
    check_stack_dependency,
    evaluate,
    parse_definition,
)

WORDS = [
    "alpha", "bravo", "charlie", "delta", "echo",
    "foxtrot", "golf", "hotel", "india", "juliet",
]


def _prd(words: list[str]) -> str:
    return "\n".join(f"REQ-FEAT-{i:03d}: Feature {w}" for i, w in enumerate(words, 1))


def _tasks(words: list[str]) -> str:
    return "\n".join(f"- [ ] Implement feature {w}" for w in words)


def _rule(rule: str = "", rule_type: RuleType = RuleType.REQUIREMENT_TASK) -> ValidationRule:
    return ValidationRule(
        id="TEST-001", name="Test rule", type=rule_type, severity=Severity.WARNING, rule=rule
    )


class TestRequirementTask:
    def test_ten_requirements_nine_matched_passes(self):
        bundle = ArtifactBundle({"PRD.md": _prd(WORDS), "tasks.md": _tasks(WORDS[:9])})
        outcome = check_requirement_task(bundle, {"max_missing_ratio": 0.2})
        assert outcome.passed
        assert outcome.details["covered"] == 9
        assert outcome.details["coverage"] == 90

    def test_ten_requirements_seven_matched_fails(self):
        bundle = ArtifactBundle({"PRD.md": _prd(WORDS), "tasks.md": _tasks(WORDS[:7])})
        outcome = check_requirement_task(bundle, {"max_missing_ratio": 0.2})
        assert not outcome.passed
        assert [m["id"] for m in outcome.details["missing"]] == [
            "REQ-FEAT-008",
            "REQ-FEAT-009",
            "REQ-FEAT-010",
        ]

    def test_exactly_at_threshold_passes(self):
        bundle = ArtifactBundle({"PRD.md": _prd(WORDS), "tasks.md": _tasks(WORDS[:8])})
        assert check_requirement_task(bundle, {}).passed

    def test_no_requirements_is_full_coverage(self):
        bundle = ArtifactBundle({"PRD.md": "# Empty", "tasks.md": _tasks(WORDS)})
        outcome = check_requirement_task(bundle, {})
        assert outcome.passed
        assert outcome.details["coverage"] == 100


class TestRequirementApi:
    def test_all_matched(self, artifacts):
        outcome = check_requirement_api(ArtifactBundle(artifacts), {})
        assert outcome.passed
        assert outcome.details["matched"] == 3

    def test_zero_tolerance(self):
        spec = json.dumps({"paths": {"/api/auth/login": {"post": {"summary": "User login"}}}})
        prd = "REQ-AUTH-001: User login\nREQ-RPT-001: Export monthly reports"
        outcome = check_requirement_api(ArtifactBundle({"PRD.md": prd, "api-spec.json": spec}), {})
        assert not outcome.passed
        assert outcome.details["unmatched"][0]["id"] == "REQ-RPT-001"

    def test_shared_crud_keyword_matches(self):
        spec = json.dumps({"paths": {"/api/items/delete": {"post": {"summary": "Remove"}}}})
        prd = "REQ-INV-001: Delete inventory items"
        bundle = ArtifactBundle({"PRD.md": prd, "api-spec.json": spec})
        assert check_requirement_api(bundle, {}).passed

    def test_malformed_spec_fails_without_raising(self):
        bundle = ArtifactBundle({"PRD.md": "REQ-AUTH-001: User login", "api-spec.json": "{oops"})
        assert not check_requirement_api(bundle, {}).passed


class TestRequirementData:
    def test_one_entity_per_three_data_requirements(self):
        prd = "\n".join(f"REQ-DATA-{i:03d}: Store record {i}" for i in range(1, 5))
        one = "## Records Table\n- id: uuid\n"
        two = one + "## Archives Table\n- id: uuid\n"
        assert not check_requirement_data(
            ArtifactBundle({"PRD.md": prd, "data-model.md": one}), {}
        ).passed
        outcome = check_requirement_data(ArtifactBundle({"PRD.md": prd, "data-model.md": two}), {})
        assert outcome.passed
        assert outcome.details["data_related_requirements"] == 4
        assert outcome.details["coverage"] == "sufficient"

    def test_invalid_parameter_raises(self):
        with pytest.raises(ValueError):
            check_requirement_data(ArtifactBundle({}), {"requirements_per_entity": 0})


class TestStackDependency:
    def test_core_dependencies_present(self, artifacts):
        outcome = check_stack_dependency(ArtifactBundle(artifacts), {})
        assert outcome.passed
        assert outcome.details["analysis"] == "All core dependencies present"

    def test_missing_core_dependency(self):
        deps = '"dependencies": { "next": "14.0.0", "react": "18.2.0" }'
        outcome = check_stack_dependency(ArtifactBundle({"DEPENDENCIES.md": deps}), {})
        assert not outcome.passed
        assert [m["name"] for m in outcome.details["missing"]] == ["typescript", "tailwind"]


class TestCrossArtifact:
    def test_consistent_terms(self):
        bundle = ArtifactBundle({"a.md": "user data", "b.md": "User DATA model"})
        assert check_cross_artifact(bundle, {}).passed

    def test_inconsistent_terms(self):
        bundle = ArtifactBundle({"a.md": "user login", "b.md": "nothing relevant"})
        outcome = check_cross_artifact(bundle, {})
        assert not outcome.passed
        issue = outcome.details["consistency_issues"][0]
        assert issue == {"term": "user", "mentioned_in": ["a.md"], "missing_in": ["b.md"]}

    def test_custom_terms(self):
        bundle = ArtifactBundle({"a.md": "user", "b.md": "other"})
        assert check_cross_artifact(bundle, {"terms": ["billing"]}).passed


class TestDispatch:
    def test_registry_covers_every_rule_type(self):
        assert set(PREDICATES) == {t.value for t in RuleType}

    def test_empty_definition_uses_type_default(self):
        predicate, params = parse_definition(_rule(""))
        assert predicate is check_requirement_task
        assert params == {}

    def test_definition_params(self):
        predicate, params = parse_definition(
            _rule(json.dumps({"check": "requirement_api", "max_missing_ratio": 0.5}))
        )
        assert predicate is check_requirement_api
        assert params == {"max_missing_ratio": 0.5}

    @pytest.mark.parametrize(
        "definition",
        [
            "{not json",
            "[1]",
            '{"check": "os.system"}',
            '{"check": ["requirement_api"]}',
            '{"check": {"name": "requirement_api"}}',
        ],
    )
    def test_bad_definitions_raise_rule_error(self, definition):
        with pytest.raises(RuleExecutionError) as exc_info:
            parse_definition(_rule(definition))
        assert exc_info.value.rule_id == "TEST-001"

    def test_predicate_exception_is_wrapped(self):
        rule = _rule(
            json.dumps({"check": "requirement_data", "requirements_per_entity": 0}),
            RuleType.REQUIREMENT_DATA,
        )
        with pytest.raises(RuleExecutionError) as exc_info:
            evaluate(rule, ArtifactBundle({}))
        assert isinstance(exc_info.value.cause, ValueError)
