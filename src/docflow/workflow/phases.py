"""Fixed phase sequence, per-phase configuration, and structural checks."""

from __future__ import annotations

from docflow.workflow.models import Gate, GeneratedArtifact, PhaseConfig, ProjectPhase

PHASE_ORDER: list[ProjectPhase] = list(ProjectPhase)

PHASE_CONFIG: dict[ProjectPhase, PhaseConfig] = {
    ProjectPhase.ANALYSIS: PhaseConfig(
        name="Analysis",
        description="Understanding the project vision, users, and constraints",
        required_artifacts=["constitution.md", "project-brief.md", "personas.md"],
        agents=["analyst"],
    ),
    ProjectPhase.STACK_SELECTION: PhaseConfig(
        name="Stack Selection",
        description="Choose and approve the technology stack",
        required_artifacts=["plan.md", "README.md", "stack-proposal.md", "stack-scorecard.json"],
        gate=Gate.STACK_APPROVED,
        agents=["architect"],
    ),
    ProjectPhase.SPEC: PhaseConfig(
        name="Specification",
        description="Create detailed requirements, data model, and API specifications",
        required_artifacts=["PRD.md", "data-model.md", "api-spec.json", "traceability.json"],
        agents=["pm", "architect"],
    ),
    ProjectPhase.DEPENDENCIES: PhaseConfig(
        name="Dependencies",
        description="Define dependencies, security posture, and generate SBOM",
        required_artifacts=["DEPENDENCIES.md", "dependency-proposal.json", "sbom.json"],
        gate=Gate.DEPENDENCIES_APPROVED,
        agents=["devops"],
    ),
    ProjectPhase.SOLUTIONING: PhaseConfig(
        name="Solutioning",
        description="Break down into tasks and create implementation roadmap",
        required_artifacts=["architecture.md", "epics.md", "tasks.md", "traceability.json"],
        agents=["architect", "scrum"],
    ),
    ProjectPhase.DONE: PhaseConfig(
        name="Complete",
        description="Generate final handoff documentation and project artifacts",
        required_artifacts=["HANDOFF.md"],
        agents=["orchestrator"],
    ),
}

# Artifacts whose presence is the domain expectation of a phase, checked
# after the generic required-artifact list.
STRUCTURAL_CHECKS: dict[ProjectPhase, list[str]] = {
    ProjectPhase.SPEC: ["PRD.md", "api-spec.json", "data-model.md"],
    ProjectPhase.DEPENDENCIES: ["sbom.json", "DEPENDENCIES.md"],
    ProjectPhase.SOLUTIONING: ["tasks.md", "architecture.md"],
}


def get_next_phase(phase: ProjectPhase) -> ProjectPhase | None:
    """Return the phase after `phase`, or None when `phase` is terminal."""
    idx = PHASE_ORDER.index(phase)
    if idx >= len(PHASE_ORDER) - 1:
        return None
    return PHASE_ORDER[idx + 1]


def phase_progress(phase: ProjectPhase) -> int:
    """Percentage of the lifecycle reached once `phase` is current."""
    idx = PHASE_ORDER.index(phase)
    return int((idx + 1) / len(PHASE_ORDER) * 100 + 0.5)


def find_missing_artifacts(phase: ProjectPhase, artifacts: list[GeneratedArtifact]) -> list[str]:
    """Required artifact names for `phase` that are absent, in declared order."""
    produced = {a.name for a in artifacts}
    return [name for name in PHASE_CONFIG[phase].required_artifacts if name not in produced]


def check_phase_structure(phase: ProjectPhase, artifacts: list[GeneratedArtifact]) -> list[str]:
    """Return the structurally expected artifacts missing for `phase` ([] when satisfied)."""
    expected = STRUCTURAL_CHECKS.get(phase)
    if not expected:
        return []
    produced = {a.name for a in artifacts}
    return [name for name in expected if name not in produced]


def is_valid_history(current: ProjectPhase, completed: list[ProjectPhase]) -> bool:
    """True when `completed` is exactly the phases preceding `current`, in order."""
    return list(completed) == PHASE_ORDER[: PHASE_ORDER.index(current)]
