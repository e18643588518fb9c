"""Storage: SQLite schema and the workflow database."""

from docflow.storage.database import WorkflowDatabase

__all__ = ["WorkflowDatabase"]
