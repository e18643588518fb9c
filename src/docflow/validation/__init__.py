"""Validation: artifact parsers, rule predicates, rule engine, and reports."""

from docflow.validation.models import (
    ReportStatus,
    RuleType,
    Severity,
    ValidationReport,
    ValidationResult,
    ValidationRule,
)

__all__ = [
    "ReportStatus",
    "RuleType",
    "Severity",
    "ValidationReport",
    "ValidationResult",
    "ValidationRule",
]
