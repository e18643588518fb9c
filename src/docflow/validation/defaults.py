"""Built-in rule set used when the rule store is empty or unreachable."""

from __future__ import annotations

import json

from docflow.validation.models import RuleType, Severity, ValidationRule

DEFAULT_RULES: list[ValidationRule] = [
    ValidationRule(
        id="REQ-API-001",
        name="API endpoints match requirements",
        description="Each functional requirement should have corresponding API endpoints",
        type=RuleType.REQUIREMENT_API,
        severity=Severity.ERROR,
        rule=json.dumps({"check": "requirement_api", "max_missing_ratio": 0.0}),
    ),
    ValidationRule(
        id="REQ-DATA-001",
        name="Data model covers all requirements",
        description="Data entities should cover all functional requirements",
        type=RuleType.REQUIREMENT_DATA,
        severity=Severity.ERROR,
        rule=json.dumps({"check": "requirement_data", "requirements_per_entity": 3}),
    ),
    ValidationRule(
        id="REQ-TASK-001",
        name="Tasks cover all requirements",
        description="Each requirement should have corresponding development tasks",
        type=RuleType.REQUIREMENT_TASK,
        severity=Severity.WARNING,
        rule=json.dumps({"check": "requirement_task", "max_missing_ratio": 0.2}),
    ),
    ValidationRule(
        id="STACK-DEP-001",
        name="Dependencies match stack requirements",
        description="All dependencies should be justified by the chosen stack",
        type=RuleType.STACK_DEPENDENCY,
        severity=Severity.WARNING,
        rule=json.dumps({"check": "stack_dependency"}),
    ),
    ValidationRule(
        id="CROSS-ARTIFACT-001",
        name="Artifact consistency check",
        description="Verify consistency across all generated artifacts",
        type=RuleType.CROSS_ARTIFACT,
        severity=Severity.ERROR,
        rule=json.dumps({"check": "cross_artifact"}),
    ),
]


def default_rules() -> list[ValidationRule]:
    """Fresh copies, so callers may toggle enabled flags freely."""
    return [r.model_copy(deep=True) for r in DEFAULT_RULES]
