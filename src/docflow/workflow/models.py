"""Pydantic models and enums for the phase workflow layer."""

from __future__ import annotations

import uuid
from collections.abc import Callable
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


class ProjectPhase(StrEnum):
    ANALYSIS = "analysis"
    STACK_SELECTION = "stack_selection"
    SPEC = "spec"
    DEPENDENCIES = "dependencies"
    SOLUTIONING = "solutioning"
    DONE = "done"


class Gate(StrEnum):
    STACK_APPROVED = "stack_approved"
    DEPENDENCIES_APPROVED = "dependencies_approved"


class ArtifactStatus(StrEnum):
    PENDING = "pending"
    PASS = "pass"
    WARN = "warn"
    FAIL = "fail"


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


def _new_id() -> str:
    return str(uuid.uuid4())


class Project(BaseModel):
    id: str = Field(default_factory=_new_id)
    name: str
    description: str = ""
    current_phase: ProjectPhase = ProjectPhase.ANALYSIS
    phases_completed: list[ProjectPhase] = Field(default_factory=list)
    stack_approved: bool = False
    dependencies_approved: bool = False
    created_at: str = Field(default_factory=_now_iso)
    updated_at: str = Field(default_factory=_now_iso)

    def is_gate_satisfied(self, gate: Gate) -> bool:
        return _GATE_ACCESSORS[gate](self)


_GATE_ACCESSORS: dict[Gate, Callable[[Project], bool]] = {
    Gate.STACK_APPROVED: lambda p: p.stack_approved,
    Gate.DEPENDENCIES_APPROVED: lambda p: p.dependencies_approved,
}


class GeneratedArtifact(BaseModel):
    """An artifact as returned by an agent, before persistence."""

    name: str
    content: str
    phase: ProjectPhase
    frontmatter: dict[str, Any] | None = None
    validation_errors: list[str] = Field(default_factory=list)


class Artifact(BaseModel):
    """A persisted artifact row."""

    id: str = Field(default_factory=_new_id)
    project_id: str
    phase: ProjectPhase
    name: str
    content: str = ""
    content_hash: str = ""
    frontmatter: dict[str, Any] | None = None
    validation_status: ArtifactStatus = ArtifactStatus.PENDING
    quality_score: int | None = Field(default=None, ge=0, le=100)
    validation_errors: list[str] = Field(default_factory=list)
    created_at: str = Field(default_factory=_now_iso)


class PriorArtifact(BaseModel):
    name: str
    content: str
    phase: ProjectPhase


class AgentInput(BaseModel):
    project_id: str
    phase_data: dict[str, Any] = Field(default_factory=dict)
    prior_artifacts: list[PriorArtifact] = Field(default_factory=list)


class AgentOutput(BaseModel):
    artifacts: list[GeneratedArtifact] = Field(default_factory=list)
    validation_passed: bool = True
    tokens_used: int | None = None
    quality_score: int | None = Field(default=None, ge=0, le=100)


class PhaseTransition(BaseModel):
    id: str = Field(default_factory=_new_id)
    project_id: str
    from_phase: ProjectPhase
    to_phase: ProjectPhase
    artifacts_generated: list[str] = Field(default_factory=list)
    validation_passed: bool = True
    tokens_used: int | None = None
    transitioned_at: str = Field(default_factory=_now_iso)


class PhaseConfig(BaseModel):
    name: str
    description: str
    required_artifacts: list[str] = Field(default_factory=list)
    gate: Gate | None = None
    agents: list[str] = Field(default_factory=list)


class TransitionOutcome(BaseModel):
    """Result of advance_phase: transitioned is False only for the terminal phase."""

    transitioned: bool
    project: Project
    transition: PhaseTransition | None = None
    report_id: str | None = None
