"""Statically compiled rule predicates.

A rule's serialized definition is a JSON object naming one of the checks in
PREDICATES plus its parameters, e.g. {"check": "requirement_task", "max_missing_ratio": 0.2}.
Nothing outside this registry can be executed.
"""

from __future__ import annotations

import json
import math
from collections.abc import Callable
from typing import Any

from docflow.errors import RuleExecutionError
from docflow.validation import bundle as names
from docflow.validation.bundle import ArtifactBundle
from docflow.validation.models import PredicateOutcome, RuleType, ValidationRule
from docflow.validation.parsers import (
    Endpoint,
    Requirement,
    Task,
    extract_api_endpoints,
    extract_data_entities,
    extract_dependencies,
    extract_requirements,
    extract_stack,
    extract_tasks,
)

Predicate = Callable[[ArtifactBundle, dict[str, Any]], PredicateOutcome]

ENDPOINT_MATCH_KEYWORDS = (
    "user", "auth", "login", "register", "data",
    "create", "read", "update", "delete", "list", "get",
)
DATA_KEYWORDS = (
    "data", "entity", "store", "database", "information", "user", "profile", "account",
)
CORE_DEPENDENCIES: list[dict[str, str]] = [
    {"name": "next", "category": "framework"},
    {"name": "react", "category": "ui"},
    {"name": "typescript", "category": "language"},
    {"name": "tailwind", "category": "styling"},
]
CONSISTENCY_TERMS = ("user", "authentication", "data", "api", "database")


def _percent(matched: int, total: int) -> int:
    if total == 0:
        return 100
    return int(matched / total * 100 + 0.5)


def requirement_matches_endpoint(req: Requirement, endpoint: Endpoint) -> bool:
    title = req.title.lower()
    path = endpoint.path.lower()
    if title in path or title in endpoint.description.lower():
        return True
    return any(k in title and k in path for k in ENDPOINT_MATCH_KEYWORDS)


def requirement_matches_task(req: Requirement, task: Task) -> bool:
    title = req.title.lower()
    desc = task.description.lower()
    return title in desc or desc in title or title in task.title.lower()


def check_requirement_api(artifacts: ArtifactBundle, params: dict[str, Any]) -> PredicateOutcome:
    max_missing = float(params.get("max_missing_ratio", 0.0))
    requirements = extract_requirements(artifacts.get(names.PRD))
    endpoints = extract_api_endpoints(artifacts.get(names.API_SPEC))

    unmatched = [
        r for r in requirements if not any(requirement_matches_endpoint(r, e) for e in endpoints)
    ]
    total = len(requirements)
    return PredicateOutcome(
        passed=len(unmatched) <= total * max_missing,
        details={
            "total": total,
            "matched": total - len(unmatched),
            "unmatched": [r.model_dump(mode="json") for r in unmatched],
            "coverage": _percent(total - len(unmatched), total),
        },
    )


def check_requirement_data(artifacts: ArtifactBundle, params: dict[str, Any]) -> PredicateOutcome:
    per_entity = int(params.get("requirements_per_entity", 3))
    if per_entity < 1:
        raise ValueError("requirements_per_entity must be >= 1")
    requirements = extract_requirements(artifacts.get(names.PRD))
    entities = extract_data_entities(artifacts.get(names.DATA_MODEL))

    data_related = [
        r for r in requirements if any(k in r.description.lower() for k in DATA_KEYWORDS)
    ]
    sufficient = len(entities) >= math.ceil(len(data_related) / per_entity)
    return PredicateOutcome(
        passed=sufficient,
        details={
            "data_related_requirements": len(data_related),
            "entities": len(entities),
            "entities_list": [e.model_dump(mode="json") for e in entities],
            "coverage": "sufficient" if sufficient else "insufficient",
        },
    )


def check_requirement_task(artifacts: ArtifactBundle, params: dict[str, Any]) -> PredicateOutcome:
    max_missing = float(params.get("max_missing_ratio", 0.2))
    requirements = extract_requirements(artifacts.get(names.PRD))
    tasks = extract_tasks(artifacts.get(names.TASKS))

    unmatched = [r for r in requirements if not any(requirement_matches_task(r, t) for t in tasks)]
    total = len(requirements)
    return PredicateOutcome(
        passed=len(unmatched) <= total * max_missing,
        details={
            "total": total,
            "covered": total - len(unmatched),
            "missing": [r.model_dump(mode="json") for r in unmatched],
            "coverage": _percent(total - len(unmatched), total),
        },
    )


def check_stack_dependency(artifacts: ArtifactBundle, params: dict[str, Any]) -> PredicateOutcome:
    required = params.get("required", CORE_DEPENDENCIES)
    if not isinstance(required, list):
        raise ValueError("required must be a list of {name, category} objects")
    stack = extract_stack(artifacts.get(names.STACK_PROPOSAL))
    dependencies = extract_dependencies(artifacts.get(names.DEPENDENCIES))

    missing = [
        req
        for req in required
        if not any(str(req["name"]).lower() in d.name.lower() for d in dependencies)
    ]
    return PredicateOutcome(
        passed=not missing,
        details={
            "stack": stack,
            "dependencies": len(dependencies),
            "missing": missing,
            "analysis": (
                "Missing core dependencies" if missing else "All core dependencies present"
            ),
        },
    )


def check_cross_artifact(artifacts: ArtifactBundle, params: dict[str, Any]) -> PredicateOutcome:
    terms = params.get("terms", CONSISTENCY_TERMS)
    items = artifacts.items()
    all_names = [name for name, _ in items]
    inconsistent: list[dict[str, Any]] = []
    for term in terms:
        mentioned = [name for name, content in items if str(term) in content.lower()]
        if mentioned and len(mentioned) < len(all_names):
            inconsistent.append(
                {
                    "term": term,
                    "mentioned_in": mentioned,
                    "missing_in": [n for n in all_names if n not in mentioned],
                }
            )
    return PredicateOutcome(
        passed=not inconsistent,
        details={
            "total_artifacts": len(all_names),
            "consistency_issues": inconsistent,
            "summary": (
                "Inconsistent terminology across artifacts"
                if inconsistent
                else "All artifacts are consistent"
            ),
        },
    )


PREDICATES: dict[str, Predicate] = {
    "requirement_api": check_requirement_api,
    "requirement_data": check_requirement_data,
    "requirement_task": check_requirement_task,
    "stack_dependency": check_stack_dependency,
    "cross_artifact": check_cross_artifact,
}

DEFAULT_CHECK: dict[RuleType, str] = {t: t.value for t in RuleType}


def parse_definition(rule: ValidationRule) -> tuple[Predicate, dict[str, Any]]:
    """Resolve a rule's serialized definition to a compiled predicate and its params."""
    if not rule.rule.strip():
        return PREDICATES[DEFAULT_CHECK[rule.type]], {}
    try:
        definition = json.loads(rule.rule)
    except json.JSONDecodeError as e:
        raise RuleExecutionError(rule.id, f"invalid rule definition: {e}") from e
    if not isinstance(definition, dict):
        raise RuleExecutionError(rule.id, "rule definition must be a JSON object")
    check = definition.get("check", DEFAULT_CHECK[rule.type])
    if not isinstance(check, str):
        raise RuleExecutionError(rule.id, f"check must be a string, got {type(check).__name__}")
    predicate = PREDICATES.get(check)
    if predicate is None:
        raise RuleExecutionError(rule.id, f"unknown check {check!r}")
    params = {k: v for k, v in definition.items() if k != "check"}
    return predicate, params


def evaluate(rule: ValidationRule, artifacts: ArtifactBundle) -> PredicateOutcome:
    """Run a rule; any failure inside the predicate surfaces as RuleExecutionError."""
    predicate, params = parse_definition(rule)
    try:
        return predicate(artifacts, params)
    except RuleExecutionError:
        raise
    except Exception as e:
        raise RuleExecutionError(rule.id, e) from e
