"""WorkflowDatabase: CRUD for projects, artifacts, transitions, rules, and reports."""

from __future__ import annotations

import json
import sqlite3
from datetime import UTC, datetime

from docflow.errors import ConcurrentTransitionError, PersistenceError
from docflow.storage.schema import _run_migrations
from docflow.validation.models import (
    ReportMetadata,
    ValidationReport,
    ValidationResult,
    ValidationRule,
)
from docflow.workflow.models import (
    Artifact,
    Gate,
    PhaseTransition,
    Project,
    ProjectPhase,
)

_GATE_COLUMNS: dict[Gate, str] = {
    Gate.STACK_APPROVED: "stack_approved",
    Gate.DEPENDENCIES_APPROVED: "dependencies_approved",
}

_ARTIFACT_INSERT = """INSERT INTO artifacts
   (id, project_id, phase, name, content, content_hash, frontmatter,
    validation_status, quality_score, validation_errors, created_at)
   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)"""

_TRANSITION_INSERT = """INSERT INTO phase_transitions
   (id, project_id, from_phase, to_phase, artifacts_generated,
    validation_passed, tokens_used, transitioned_at)
   VALUES (?, ?, ?, ?, ?, ?, ?, ?)"""


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class WorkflowDatabase:
    def __init__(self, path: str = ":memory:") -> None:
        self._conn = sqlite3.connect(path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        _run_migrations(self._conn)

    def close(self) -> None:
        self._conn.close()

    # -- projects ----------------------------------------------------------

    def create_project(self, project: Project) -> Project:
        try:
            self._conn.execute(
                """INSERT INTO projects
                   (id, name, description, current_phase, phases_completed,
                    stack_approved, dependencies_approved, created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    project.id,
                    project.name,
                    project.description,
                    project.current_phase.value,
                    json.dumps([p.value for p in project.phases_completed]),
                    int(project.stack_approved),
                    int(project.dependencies_approved),
                    project.created_at,
                    project.updated_at,
                ),
            )
            self._conn.commit()
        except sqlite3.Error as e:
            self._conn.rollback()
            raise PersistenceError(f"Failed to create project {project.id}: {e}") from e
        return project

    def get_project(self, project_id: str) -> Project | None:
        row = self._conn.execute("SELECT * FROM projects WHERE id = ?", (project_id,)).fetchone()
        return self._row_to_project(row) if row else None

    def list_projects(self, *, limit: int = 50) -> list[Project]:
        rows = self._conn.execute(
            "SELECT * FROM projects ORDER BY created_at DESC LIMIT ?", (limit,)
        ).fetchall()
        return [self._row_to_project(r) for r in rows]

    def approve_gate(self, project_id: str, gate: Gate, approved: bool = True) -> Project | None:
        column = _GATE_COLUMNS[gate]
        try:
            cur = self._conn.execute(
                f"UPDATE projects SET {column} = ?, updated_at = ? WHERE id = ?",
                (int(approved), _now_iso(), project_id),
            )
            self._conn.commit()
        except sqlite3.Error as e:
            self._conn.rollback()
            raise PersistenceError(f"Failed to update gate {gate} on {project_id}: {e}") from e
        if cur.rowcount == 0:
            return None
        return self.get_project(project_id)

    def update_project_phase(
        self,
        project_id: str,
        current_phase: ProjectPhase,
        phases_completed: list[ProjectPhase],
    ) -> None:
        try:
            self._conn.execute(
                """UPDATE projects SET current_phase = ?, phases_completed = ?, updated_at = ?
                   WHERE id = ?""",
                (
                    current_phase.value,
                    json.dumps([p.value for p in phases_completed]),
                    _now_iso(),
                    project_id,
                ),
            )
            self._conn.commit()
        except sqlite3.Error as e:
            self._conn.rollback()
            raise PersistenceError(f"Failed to update project {project_id}: {e}") from e

    # -- artifacts ---------------------------------------------------------

    def insert_artifact(self, artifact: Artifact) -> str:
        try:
            self._conn.execute(_ARTIFACT_INSERT, self._artifact_params(artifact))
            self._conn.commit()
        except sqlite3.Error as e:
            self._conn.rollback()
            raise PersistenceError(f"Failed to insert artifact {artifact.name}: {e}") from e
        return artifact.id

    def list_artifacts(self, project_id: str, phase: ProjectPhase | None = None) -> list[Artifact]:
        if phase is not None:
            rows = self._conn.execute(
                "SELECT * FROM artifacts WHERE project_id = ? AND phase = ? ORDER BY rowid",
                (project_id, phase.value),
            ).fetchall()
        else:
            rows = self._conn.execute(
                "SELECT * FROM artifacts WHERE project_id = ? ORDER BY rowid", (project_id,)
            ).fetchall()
        return [self._row_to_artifact(r) for r in rows]

    def count_artifacts(self, project_id: str) -> int:
        row = self._conn.execute(
            "SELECT COUNT(*) FROM artifacts WHERE project_id = ?", (project_id,)
        ).fetchone()
        return row[0]

    # -- transitions -------------------------------------------------------

    def insert_phase_transition(self, transition: PhaseTransition) -> str:
        try:
            self._conn.execute(_TRANSITION_INSERT, self._transition_params(transition))
            self._conn.commit()
        except sqlite3.Error as e:
            self._conn.rollback()
            raise PersistenceError(f"Failed to record transition {transition.id}: {e}") from e
        return transition.id

    def list_phase_transitions(self, project_id: str) -> list[PhaseTransition]:
        rows = self._conn.execute(
            "SELECT * FROM phase_transitions WHERE project_id = ? ORDER BY rowid",
            (project_id,),
        ).fetchall()
        return [self._row_to_transition(r) for r in rows]

    def commit_transition(
        self,
        project: Project,
        next_phase: ProjectPhase,
        artifacts: list[Artifact],
        transition: PhaseTransition,
    ) -> Project:
        """Persist artifacts, advance the project, and record the transition atomically.

        The project update is conditional on the phase read by the caller; if
        another writer moved the project first, nothing is written.
        """
        completed = [*project.phases_completed, project.current_phase]
        now = _now_iso()
        try:
            with self._conn:
                for artifact in artifacts:
                    self._conn.execute(_ARTIFACT_INSERT, self._artifact_params(artifact))
                cur = self._conn.execute(
                    """UPDATE projects SET current_phase = ?, phases_completed = ?, updated_at = ?
                       WHERE id = ? AND current_phase = ?""",
                    (
                        next_phase.value,
                        json.dumps([p.value for p in completed]),
                        now,
                        project.id,
                        project.current_phase.value,
                    ),
                )
                if cur.rowcount != 1:
                    raise ConcurrentTransitionError(project.id, project.current_phase.value)
                self._conn.execute(_TRANSITION_INSERT, self._transition_params(transition))
        except sqlite3.Error as e:
            raise PersistenceError(
                f"Failed to commit transition for project {project.id}: {e}"
            ) from e
        return project.model_copy(
            update={"current_phase": next_phase, "phases_completed": completed, "updated_at": now}
        )

    # -- validation rules --------------------------------------------------

    def list_validation_rules(self, *, enabled_only: bool = True) -> list[ValidationRule]:
        sql = "SELECT * FROM validation_rules"
        if enabled_only:
            sql += " WHERE enabled = 1"
        rows = self._conn.execute(sql + " ORDER BY rowid").fetchall()
        return [self._row_to_rule(r) for r in rows]

    def save_validation_rule(self, rule: ValidationRule) -> str:
        try:
            self._conn.execute(
                """INSERT INTO validation_rules
                   (id, name, description, type, severity, enabled, rule, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                   ON CONFLICT(id) DO UPDATE SET
                    name=excluded.name, description=excluded.description,
                    type=excluded.type, severity=excluded.severity,
                    enabled=excluded.enabled, rule=excluded.rule,
                    updated_at=excluded.updated_at""",
                self._rule_params(rule),
            )
            self._conn.commit()
        except sqlite3.Error as e:
            self._conn.rollback()
            raise PersistenceError(f"Failed to save rule {rule.id}: {e}") from e
        return rule.id

    def replace_validation_rules(self, rules: list[ValidationRule]) -> None:
        try:
            with self._conn:
                self._conn.execute("DELETE FROM validation_rules")
                for rule in rules:
                    self._conn.execute(
                        """INSERT INTO validation_rules
                           (id, name, description, type, severity, enabled, rule, updated_at)
                           VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                        self._rule_params(rule),
                    )
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to replace validation rules: {e}") from e

    def set_rule_enabled(self, rule_id: str, enabled: bool) -> bool:
        try:
            cur = self._conn.execute(
                "UPDATE validation_rules SET enabled = ?, updated_at = ? WHERE id = ?",
                (int(enabled), _now_iso(), rule_id),
            )
            self._conn.commit()
        except sqlite3.Error as e:
            self._conn.rollback()
            raise PersistenceError(f"Failed to update rule {rule_id}: {e}") from e
        return cur.rowcount > 0

    def delete_validation_rule(self, rule_id: str) -> bool:
        try:
            cur = self._conn.execute("DELETE FROM validation_rules WHERE id = ?", (rule_id,))
            self._conn.commit()
        except sqlite3.Error as e:
            self._conn.rollback()
            raise PersistenceError(f"Failed to delete rule {rule_id}: {e}") from e
        return cur.rowcount > 0

    # -- validation reports ------------------------------------------------

    def save_validation_report(self, report: ValidationReport) -> str:
        results_json = json.dumps([r.model_dump(mode="json") for r in report.validation_results])
        try:
            self._conn.execute(
                """INSERT INTO validation_reports
                   (id, project_id, phase, report_name, overall_status, total_rules,
                    passed_rules, failed_rules, warning_rules, validation_results,
                    report_metadata, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    report.id,
                    report.project_id,
                    report.phase,
                    report.report_name,
                    report.overall_status.value,
                    report.total_rules,
                    report.passed_rules,
                    report.failed_rules,
                    report.warning_rules,
                    results_json,
                    report.report_metadata.model_dump_json(),
                    report.created_at,
                ),
            )
            self._conn.commit()
        except sqlite3.Error as e:
            self._conn.rollback()
            raise PersistenceError(f"Failed to save validation report {report.id}: {e}") from e
        return report.id

    def get_validation_report(self, report_id: str) -> ValidationReport | None:
        row = self._conn.execute(
            "SELECT * FROM validation_reports WHERE id = ?", (report_id,)
        ).fetchone()
        return self._row_to_report(row) if row else None

    def list_validation_reports(
        self, project_id: str, *, limit: int = 10
    ) -> list[ValidationReport]:
        """Most recent first."""
        rows = self._conn.execute(
            """SELECT * FROM validation_reports WHERE project_id = ?
               ORDER BY created_at DESC, rowid DESC LIMIT ?""",
            (project_id, limit),
        ).fetchall()
        return [self._row_to_report(r) for r in rows]

    def stats(self) -> dict:
        counts = {}
        for table in ("projects", "artifacts", "phase_transitions", "validation_reports"):
            counts[table] = self._conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
        return counts

    # -- row mapping -------------------------------------------------------

    @staticmethod
    def _artifact_params(a: Artifact) -> tuple:
        return (
            a.id,
            a.project_id,
            a.phase.value,
            a.name,
            a.content,
            a.content_hash,
            json.dumps(a.frontmatter) if a.frontmatter is not None else None,
            a.validation_status.value,
            a.quality_score,
            json.dumps(a.validation_errors),
            a.created_at,
        )

    @staticmethod
    def _transition_params(t: PhaseTransition) -> tuple:
        return (
            t.id,
            t.project_id,
            t.from_phase.value,
            t.to_phase.value,
            json.dumps(t.artifacts_generated),
            int(t.validation_passed),
            t.tokens_used,
            t.transitioned_at,
        )

    @staticmethod
    def _rule_params(r: ValidationRule) -> tuple:
        return (
            r.id,
            r.name,
            r.description,
            r.type.value,
            r.severity.value,
            int(r.enabled),
            r.rule,
            _now_iso(),
        )

    @staticmethod
    def _row_to_project(row: sqlite3.Row) -> Project:
        return Project(
            id=row["id"],
            name=row["name"],
            description=row["description"],
            current_phase=row["current_phase"],
            phases_completed=json.loads(row["phases_completed"]),
            stack_approved=bool(row["stack_approved"]),
            dependencies_approved=bool(row["dependencies_approved"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    @staticmethod
    def _row_to_artifact(row: sqlite3.Row) -> Artifact:
        return Artifact(
            id=row["id"],
            project_id=row["project_id"],
            phase=row["phase"],
            name=row["name"],
            content=row["content"],
            content_hash=row["content_hash"],
            frontmatter=json.loads(row["frontmatter"]) if row["frontmatter"] else None,
            validation_status=row["validation_status"],
            quality_score=row["quality_score"],
            validation_errors=json.loads(row["validation_errors"]),
            created_at=row["created_at"],
        )

    @staticmethod
    def _row_to_transition(row: sqlite3.Row) -> PhaseTransition:
        return PhaseTransition(
            id=row["id"],
            project_id=row["project_id"],
            from_phase=row["from_phase"],
            to_phase=row["to_phase"],
            artifacts_generated=json.loads(row["artifacts_generated"]),
            validation_passed=bool(row["validation_passed"]),
            tokens_used=row["tokens_used"],
            transitioned_at=row["transitioned_at"],
        )

    @staticmethod
    def _row_to_rule(row: sqlite3.Row) -> ValidationRule:
        return ValidationRule(
            id=row["id"],
            name=row["name"],
            description=row["description"],
            type=row["type"],
            severity=row["severity"],
            enabled=bool(row["enabled"]),
            rule=row["rule"],
        )

    @staticmethod
    def _row_to_report(row: sqlite3.Row) -> ValidationReport:
        return ValidationReport(
            id=row["id"],
            project_id=row["project_id"],
            phase=row["phase"],
            report_name=row["report_name"],
            overall_status=row["overall_status"],
            total_rules=row["total_rules"],
            passed_rules=row["passed_rules"],
            failed_rules=row["failed_rules"],
            warning_rules=row["warning_rules"],
            validation_results=[
                ValidationResult.model_validate(r) for r in json.loads(row["validation_results"])
            ],
            report_metadata=ReportMetadata.model_validate_json(row["report_metadata"]),
            created_at=row["created_at"],
        )
