"""Reduce rule results into a ValidationReport and summarise report history."""

from __future__ import annotations

from typing import Any

from docflow.validation.models import (
    ReportMetadata,
    ReportStatus,
    RuleType,
    Severity,
    ValidationReport,
    ValidationResult,
    ValidationRule,
)


def overall_status(results: list[ValidationResult]) -> ReportStatus:
    """Failing error rule -> fail, else failing warning rule -> warn, else pass."""
    if any(not r.passed and r.severity == Severity.ERROR for r in results):
        return ReportStatus.FAIL
    if any(not r.passed and r.severity == Severity.WARNING for r in results):
        return ReportStatus.WARN
    return ReportStatus.PASS


def build_report(
    project_id: str,
    phase: str,
    results: list[ValidationResult],
    artifacts_validated: int,
) -> ValidationReport:
    return ValidationReport(
        project_id=project_id,
        phase=phase,
        report_name=f"Validation Report - {phase}",
        overall_status=overall_status(results),
        total_rules=len(results),
        passed_rules=sum(1 for r in results if r.passed),
        failed_rules=sum(1 for r in results if not r.passed and r.severity == Severity.ERROR),
        warning_rules=sum(1 for r in results if not r.passed and r.severity == Severity.WARNING),
        validation_results=results,
        report_metadata=ReportMetadata(artifacts_validated=artifacts_validated),
    )


def _pass_rate(report: ValidationReport) -> float:
    if report.total_rules == 0:
        return 1.0
    return report.passed_rules / report.total_rules


def trend(reports: list[ValidationReport]) -> str:
    """Compare the two most recent reports (list is most-recent-first)."""
    if len(reports) < 2:
        return "stable"
    latest, previous = _pass_rate(reports[0]), _pass_rate(reports[1])
    if latest > previous:
        return "improving"
    if latest < previous:
        return "declining"
    return "stable"


def summarize_history(reports: list[ValidationReport]) -> dict[str, Any]:
    return {
        "total_validations": len(reports),
        "passed_validations": sum(1 for r in reports if r.overall_status == ReportStatus.PASS),
        "failed_validations": sum(1 for r in reports if r.overall_status == ReportStatus.FAIL),
        "warning_validations": sum(1 for r in reports if r.overall_status == ReportStatus.WARN),
        "last_validation": reports[0].created_at if reports else None,
        "trend": trend(reports),
    }


def rule_statistics(rules: list[ValidationRule]) -> dict[str, Any]:
    return {
        "total": len(rules),
        "enabled": sum(1 for r in rules if r.enabled),
        "by_type": {t.value: sum(1 for r in rules if r.type == t) for t in RuleType},
        "by_severity": {s.value: sum(1 for r in rules if r.severity == s) for s in Severity},
    }
