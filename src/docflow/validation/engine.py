"""ValidationEngine: run enabled rules against a project's artifact bundle."""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Mapping
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from docflow.storage.database import WorkflowDatabase

from docflow.errors import PersistenceError, RuleExecutionError
from docflow.validation import bundle as names
from docflow.validation.bundle import ArtifactBundle
from docflow.validation.defaults import default_rules
from docflow.validation.models import (
    RuleType,
    Severity,
    ValidationReport,
    ValidationResult,
    ValidationRule,
)
from docflow.validation.parsers import extract_requirements
from docflow.validation.predicates import evaluate
from docflow.validation.report import build_report

logger = logging.getLogger(__name__)

MIN_ARTIFACTS = 2

RULE_ARTIFACTS: dict[RuleType, list[str]] = {
    RuleType.REQUIREMENT_API: [names.PRD, names.API_SPEC],
    RuleType.REQUIREMENT_DATA: [names.PRD, names.DATA_MODEL],
    RuleType.REQUIREMENT_TASK: [names.PRD, names.TASKS],
    RuleType.STACK_DEPENDENCY: [names.STACK_PROPOSAL, names.DEPENDENCIES],
}


class ValidationEngine:
    """Holds an ordered rule set; construct once and share by reference."""

    def __init__(
        self,
        db: WorkflowDatabase | None = None,
        *,
        rules: list[ValidationRule] | None = None,
        disabled_rules: list[str] | None = None,
    ) -> None:
        self._db = db
        self._disabled = set(disabled_rules or [])
        self._rules: list[ValidationRule] = rules if rules is not None else self.load_rules()

    def load_rules(self) -> list[ValidationRule]:
        """Load enabled rules from the store, falling back to the built-in set."""
        rules: list[ValidationRule] = []
        if self._db is not None:
            try:
                rules = self._db.list_validation_rules(enabled_only=True)
            except (sqlite3.Error, ValueError) as e:
                logger.warning(f"Failed to load validation rules from store, using defaults: {e}")
                rules = []
        if not rules:
            rules = default_rules()
        for rule in rules:
            if rule.id in self._disabled:
                rule.enabled = False
        self._rules = rules
        return rules

    def get_rules(self) -> list[ValidationRule]:
        return [r.model_copy() for r in self._rules]

    def add_rule(self, rule: ValidationRule) -> None:
        if any(r.id == rule.id for r in self._rules):
            raise ValueError(f"Rule {rule.id} already exists")
        self._rules.append(rule)

    def set_rule_enabled(self, rule_id: str, enabled: bool) -> bool:
        for rule in self._rules:
            if rule.id == rule_id:
                rule.enabled = enabled
                return True
        return False

    def save_rules(self) -> None:
        """Replace the stored rule set with the engine's current rules."""
        if self._db is None:
            raise PersistenceError("No rule store configured")
        self._db.replace_validation_rules(self._rules)

    def run_rules(self, artifacts: ArtifactBundle) -> list[ValidationResult]:
        requirement_ids = [r.id for r in extract_requirements(artifacts.get(names.PRD))]
        results: list[ValidationResult] = []
        for rule in self._rules:
            if not rule.enabled:
                continue
            results.append(self._run_rule(rule, artifacts, requirement_ids))
        return results

    def _run_rule(
        self,
        rule: ValidationRule,
        artifacts: ArtifactBundle,
        requirement_ids: list[str],
    ) -> ValidationResult:
        try:
            outcome = evaluate(rule, artifacts)
        except RuleExecutionError as e:
            logger.warning(str(e))
            return ValidationResult(
                rule_id=rule.id,
                rule_name=rule.name,
                passed=False,
                severity=Severity.ERROR,
                message=f"Rule {rule.name} failed to execute: {e.cause}",
            )
        status = "passed" if outcome.passed else "failed"
        return ValidationResult(
            rule_id=rule.id,
            rule_name=rule.name,
            passed=outcome.passed,
            severity=rule.severity,
            message=f"{rule.name} {status}",
            details=outcome.details,
            affected_artifacts=_affected_artifacts(rule.type, artifacts),
            affected_requirements=list(requirement_ids),
        )

    def validate_artifacts(
        self,
        project_id: str,
        phase: str,
        artifacts: Mapping[str, str] | ArtifactBundle,
        *,
        persist: bool = True,
    ) -> ValidationReport | None:
        """Validate a bundle of artifact contents; None when fewer than two artifacts."""
        bundle = artifacts if isinstance(artifacts, ArtifactBundle) else ArtifactBundle(artifacts)
        if len(bundle) < MIN_ARTIFACTS:
            logger.debug(f"Skipping validation for {project_id}: {len(bundle)} artifact(s)")
            return None

        report = build_report(project_id, phase, self.run_rules(bundle), len(bundle))
        if persist and self._db is not None:
            self._db.save_validation_report(report)
        logger.info(
            f"Validation for project {project_id} ({phase}): {report.overall_status} "
            f"({report.passed_rules}/{report.total_rules} passed)"
        )
        return report

    def get_validation_history(self, project_id: str, limit: int = 10) -> list[ValidationReport]:
        if self._db is None:
            return []
        return self._db.list_validation_reports(project_id, limit=limit)

    def get_validation_report(self, report_id: str) -> ValidationReport | None:
        if self._db is None:
            return None
        return self._db.get_validation_report(report_id)


def _affected_artifacts(rule_type: RuleType, artifacts: ArtifactBundle) -> list[str]:
    if rule_type == RuleType.CROSS_ARTIFACT:
        return [name for name, content in artifacts.items() if content]
    return [name for name in RULE_ARTIFACTS.get(rule_type, []) if artifacts.has(name)]
