"""SQLite DDL and migration runner for the workflow database."""

from __future__ import annotations

import sqlite3

SCHEMA_VERSIONS_DDL = """
CREATE TABLE IF NOT EXISTS schema_versions (
    version INTEGER PRIMARY KEY,
    applied_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
);
"""

PROJECTS_DDL = """
CREATE TABLE IF NOT EXISTS projects (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    current_phase TEXT NOT NULL DEFAULT 'analysis',
    phases_completed TEXT NOT NULL DEFAULT '[]',
    stack_approved INTEGER NOT NULL DEFAULT 0,
    dependencies_approved INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""

ARTIFACTS_DDL = """
CREATE TABLE IF NOT EXISTS artifacts (
    id TEXT PRIMARY KEY,
    project_id TEXT NOT NULL REFERENCES projects(id),
    phase TEXT NOT NULL,
    name TEXT NOT NULL,
    content TEXT NOT NULL DEFAULT '',
    content_hash TEXT NOT NULL DEFAULT '',
    frontmatter TEXT,
    validation_status TEXT NOT NULL DEFAULT 'pending',
    quality_score INTEGER,
    validation_errors TEXT NOT NULL DEFAULT '[]',
    created_at TEXT NOT NULL
);
"""

ARTIFACTS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_art_project ON artifacts(project_id);",
    "CREATE INDEX IF NOT EXISTS idx_art_project_phase ON artifacts(project_id, phase);",
]

PHASE_TRANSITIONS_DDL = """
CREATE TABLE IF NOT EXISTS phase_transitions (
    id TEXT PRIMARY KEY,
    project_id TEXT NOT NULL REFERENCES projects(id),
    from_phase TEXT NOT NULL,
    to_phase TEXT NOT NULL,
    artifacts_generated TEXT NOT NULL DEFAULT '[]',
    validation_passed INTEGER NOT NULL DEFAULT 1,
    tokens_used INTEGER,
    transitioned_at TEXT NOT NULL
);
"""

PHASE_TRANSITIONS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_pt_project ON phase_transitions(project_id);",
    # One transition out of a given phase per project.
    "CREATE UNIQUE INDEX IF NOT EXISTS idx_pt_project_from "
    "ON phase_transitions(project_id, from_phase);",
]

VALIDATION_RULES_DDL = """
CREATE TABLE IF NOT EXISTS validation_rules (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    type TEXT NOT NULL,
    severity TEXT NOT NULL,
    enabled INTEGER NOT NULL DEFAULT 1,
    rule TEXT NOT NULL DEFAULT '',
    created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
    updated_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
);
"""

VALIDATION_REPORTS_DDL = """
CREATE TABLE IF NOT EXISTS validation_reports (
    id TEXT PRIMARY KEY,
    project_id TEXT NOT NULL,
    phase TEXT NOT NULL,
    report_name TEXT NOT NULL,
    overall_status TEXT NOT NULL,
    total_rules INTEGER NOT NULL,
    passed_rules INTEGER NOT NULL DEFAULT 0,
    failed_rules INTEGER NOT NULL DEFAULT 0,
    warning_rules INTEGER NOT NULL DEFAULT 0,
    validation_results TEXT NOT NULL DEFAULT '[]',
    report_metadata TEXT NOT NULL DEFAULT '{}',
    created_at TEXT NOT NULL
);
"""

VALIDATION_REPORTS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_vr_project ON validation_reports(project_id);",
    "CREATE INDEX IF NOT EXISTS idx_vr_created ON validation_reports(created_at);",
]

MIGRATIONS: dict[int, list[str]] = {
    1: [
        PROJECTS_DDL,
        ARTIFACTS_DDL,
        *ARTIFACTS_INDEXES,
        PHASE_TRANSITIONS_DDL,
        *PHASE_TRANSITIONS_INDEXES,
    ],
    2: [
        VALIDATION_RULES_DDL,
        VALIDATION_REPORTS_DDL,
        *VALIDATION_REPORTS_INDEXES,
    ],
}


def _get_current_version(db: sqlite3.Connection) -> int:
    try:
        row = db.execute("SELECT MAX(version) FROM schema_versions").fetchone()
        return row[0] or 0
    except sqlite3.OperationalError:
        return 0


def _run_migrations(db: sqlite3.Connection) -> None:
    """Apply all pending migrations to the workflow database."""
    db.execute("PRAGMA journal_mode=WAL")
    db.execute("PRAGMA foreign_keys=ON")
    db.executescript(SCHEMA_VERSIONS_DDL)

    current = _get_current_version(db)
    for version in sorted(MIGRATIONS.keys()):
        if version <= current:
            continue
        for statement in MIGRATIONS[version]:
            db.executescript(statement)
        db.execute("INSERT INTO schema_versions (version) VALUES (?)", (version,))
    db.commit()
