"""Tests for workflow/phases.py: phase table and ordering helpers."""

from __future__ import annotations

import pytest

from docflow.workflow.models import Gate, GeneratedArtifact, ProjectPhase
from docflow.workflow.phases import (
    PHASE_CONFIG,
    PHASE_ORDER,
    check_phase_structure,
    find_missing_artifacts,
    get_next_phase,
    is_valid_history,
    phase_progress,
)


def _artifacts(phase: ProjectPhase, *names: str) -> list[GeneratedArtifact]:
    return [GeneratedArtifact(name=n, content="x", phase=phase) for n in names]


class TestPhaseOrder:
    def test_fixed_order(self):
        assert PHASE_ORDER == [
            ProjectPhase.ANALYSIS,
            ProjectPhase.STACK_SELECTION,
            ProjectPhase.SPEC,
            ProjectPhase.DEPENDENCIES,
            ProjectPhase.SOLUTIONING,
            ProjectPhase.DONE,
        ]

    @pytest.mark.parametrize(
        "phase,expected",
        [
            (ProjectPhase.ANALYSIS, ProjectPhase.STACK_SELECTION),
            (ProjectPhase.STACK_SELECTION, ProjectPhase.SPEC),
            (ProjectPhase.SOLUTIONING, ProjectPhase.DONE),
        ],
    )
    def test_next_phase(self, phase, expected):
        assert get_next_phase(phase) == expected

    def test_done_is_terminal(self):
        assert get_next_phase(ProjectPhase.DONE) is None

    def test_progress(self):
        assert phase_progress(ProjectPhase.ANALYSIS) == 17
        assert phase_progress(ProjectPhase.SPEC) == 50
        assert phase_progress(ProjectPhase.DONE) == 100


class TestPhaseConfig:
    def test_every_phase_configured(self):
        assert set(PHASE_CONFIG) == set(ProjectPhase)

    def test_gates(self):
        assert PHASE_CONFIG[ProjectPhase.STACK_SELECTION].gate == Gate.STACK_APPROVED
        assert PHASE_CONFIG[ProjectPhase.DEPENDENCIES].gate == Gate.DEPENDENCIES_APPROVED
        gated = [p for p, c in PHASE_CONFIG.items() if c.gate is not None]
        assert len(gated) == 2

    def test_spec_agents_in_order(self):
        assert PHASE_CONFIG[ProjectPhase.SPEC].agents == ["pm", "architect"]


class TestArtifactChecks:
    def test_missing_artifacts_in_declared_order(self):
        produced = _artifacts(ProjectPhase.SPEC, "PRD.md", "traceability.json")
        assert find_missing_artifacts(ProjectPhase.SPEC, produced) == [
            "data-model.md",
            "api-spec.json",
        ]

    def test_no_missing_artifacts(self):
        produced = _artifacts(
            ProjectPhase.ANALYSIS, "constitution.md", "project-brief.md", "personas.md"
        )
        assert find_missing_artifacts(ProjectPhase.ANALYSIS, produced) == []

    def test_structure_only_checked_for_some_phases(self):
        assert check_phase_structure(ProjectPhase.ANALYSIS, []) == []
        assert check_phase_structure(ProjectPhase.DEPENDENCIES, []) == [
            "sbom.json",
            "DEPENDENCIES.md",
        ]

    def test_structure_satisfied(self):
        produced = _artifacts(ProjectPhase.SOLUTIONING, "tasks.md", "architecture.md")
        assert check_phase_structure(ProjectPhase.SOLUTIONING, produced) == []


class TestHistory:
    def test_valid_prefix(self):
        assert is_valid_history(
            ProjectPhase.SPEC, [ProjectPhase.ANALYSIS, ProjectPhase.STACK_SELECTION]
        )

    def test_duplicate_phase_invalid(self):
        assert not is_valid_history(
            ProjectPhase.STACK_SELECTION, [ProjectPhase.ANALYSIS, ProjectPhase.ANALYSIS]
        )

    def test_empty_history_at_start(self):
        assert is_valid_history(ProjectPhase.ANALYSIS, [])
