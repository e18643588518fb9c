"""Error taxonomy for phase transitions, rule execution, and persistence."""

from __future__ import annotations


class DocflowError(Exception):
    """Base class for all docflow errors."""


class ProjectNotFound(DocflowError):
    def __init__(self, project_id: str) -> None:
        self.project_id = project_id
        super().__init__(f"Project not found: {project_id}")


class GateNotSatisfied(DocflowError):
    """Raised when the current phase is gated and the gate flag is false."""

    def __init__(self, gate: str) -> None:
        self.gate = gate
        super().__init__(f"Gate not satisfied: {gate}. Approve it before continuing.")


class MissingArtifacts(DocflowError):
    def __init__(self, phase: str, names: list[str]) -> None:
        self.phase = phase
        self.names = list(names)
        super().__init__(f"Missing artifacts for phase {phase}: {', '.join(self.names)}")


class PhaseValidationFailed(DocflowError):
    def __init__(self, phase: str, missing: list[str] | None = None) -> None:
        self.phase = phase
        self.missing = list(missing or [])
        detail = f" (missing {', '.join(self.missing)})" if self.missing else ""
        super().__init__(f"Phase validation failed: {phase}{detail}")


class RuleExecutionError(DocflowError):
    """Raised by a rule predicate; the engine turns it into a failing result."""

    def __init__(self, rule_id: str, cause: BaseException | str) -> None:
        self.rule_id = rule_id
        self.cause = cause
        super().__init__(f"Rule {rule_id} failed to execute: {cause}")


class PersistenceError(DocflowError):
    """Raised when a required storage write fails."""


class ConcurrentTransitionError(PersistenceError):
    """Raised when the project phase changed between read and conditional update."""

    def __init__(self, project_id: str, expected_phase: str) -> None:
        self.project_id = project_id
        self.expected_phase = expected_phase
        super().__init__(
            f"Project {project_id} is no longer in phase {expected_phase}; transition rejected"
        )


class AgentLoadError(DocflowError):
    """Raised when a configured agent binding cannot be resolved."""

    def __init__(self, binding: str, reason: str) -> None:
        self.binding = binding
        self.reason = reason
        super().__init__(f"Cannot load agent {binding!r}: {reason}")


class ServerAlreadyRunning(DocflowError):
    def __init__(self, port: int, pid: int, db_path: str) -> None:
        self.port = port
        self.pid = pid
        self.db_path = db_path
        super().__init__(
            f"A docflow server (pid {pid}) is already serving {db_path} on port {port}; "
            "stop it first"
        )
