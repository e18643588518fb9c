"""Pydantic models and enums for the validation rule engine."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field

ENGINE_VERSION = "Cross-Artifact Validation v1.0"


class RuleType(StrEnum):
    REQUIREMENT_API = "requirement_api"
    REQUIREMENT_DATA = "requirement_data"
    REQUIREMENT_TASK = "requirement_task"
    STACK_DEPENDENCY = "stack_dependency"
    CROSS_ARTIFACT = "cross_artifact"


class Severity(StrEnum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class ReportStatus(StrEnum):
    PASS = "pass"
    WARN = "warn"
    FAIL = "fail"


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class ValidationRule(BaseModel):
    id: str
    name: str
    description: str = ""
    type: RuleType
    severity: Severity
    enabled: bool = True
    rule: str = ""  # JSON predicate definition; "" selects the type's default check


class PredicateOutcome(BaseModel):
    passed: bool
    details: dict[str, Any] = Field(default_factory=dict)


class ValidationResult(BaseModel):
    rule_id: str
    rule_name: str
    passed: bool
    severity: Severity
    message: str
    details: dict[str, Any] = Field(default_factory=dict)
    affected_artifacts: list[str] = Field(default_factory=list)
    affected_requirements: list[str] = Field(default_factory=list)


class ReportMetadata(BaseModel):
    validated_at: str = Field(default_factory=_now_iso)
    artifacts_validated: int = 0
    validation_engine: str = ENGINE_VERSION


class ValidationReport(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    project_id: str
    phase: str
    report_name: str
    overall_status: ReportStatus
    total_rules: int
    passed_rules: int
    failed_rules: int
    warning_rules: int
    validation_results: list[ValidationResult] = Field(default_factory=list)
    report_metadata: ReportMetadata = Field(default_factory=ReportMetadata)
    created_at: str = Field(default_factory=_now_iso)
