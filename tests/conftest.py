"""Shared fixtures for docflow tests."""

from __future__ import annotations

import json
from collections.abc import Iterable

import pytest

from docflow.storage.database import WorkflowDatabase
from docflow.validation.engine import ValidationEngine
from docflow.workflow.agents import AgentRegistry, FunctionAgent
from docflow.workflow.models import (
    AgentInput,
    AgentOutput,
    GeneratedArtifact,
    Project,
    ProjectPhase,
)
from docflow.workflow.phases import PHASE_CONFIG

PRD = """# Product Requirements

REQ-AUTH-001: User login
REQ-DATA-001: Store user profile
REQ-UI-001: Dashboard layout
"""

API_SPEC = json.dumps(
    {
        "paths": {
            "/api/auth/login": {"post": {"summary": "User login"}},
            "/api/users/profile": {"get": {"summary": "Fetch profile"}},
            "/api/dashboard": {"get": {"description": "Dashboard layout"}},
        }
    }
)

DATA_MODEL = """# Data Model

## Users Table
- id: uuid
- email: text
- name: text

## Profiles Table
- user_id: uuid
- bio: text
"""

TASKS = """# Tasks

- [ ] Implement user login
- [x] Store user profile
1. Build dashboard layout
"""

STACK_PROPOSAL = "We propose Next.js with React, TypeScript and Tailwind on Neon."

DEPENDENCIES = """# Dependencies

```json
{
  "dependencies": {
    "next": "14.0.0",
    "react": "18.2.0",
    "typescript": "5.3.0",
    "tailwindcss": "3.4.0"
  }
}
```
"""

# Artifact bodies used by the fake agents; anything not listed gets a stub.
PHASE_CONTENT: dict[str, str] = {
    "PRD.md": PRD,
    "api-spec.json": API_SPEC,
    "data-model.md": DATA_MODEL,
    "tasks.md": TASKS,
    "stack-proposal.md": STACK_PROPOSAL,
    "DEPENDENCIES.md": DEPENDENCIES,
}

# Which bound agent produces which of the phase's required artifacts.
AGENT_OUTPUTS: dict[ProjectPhase, dict[str, list[str]]] = {
    ProjectPhase.ANALYSIS: {
        "analyst": ["constitution.md", "project-brief.md", "personas.md"],
    },
    ProjectPhase.STACK_SELECTION: {
        "architect": ["plan.md", "README.md", "stack-proposal.md", "stack-scorecard.json"],
    },
    ProjectPhase.SPEC: {
        "pm": ["PRD.md", "data-model.md", "traceability.json"],
        "architect": ["api-spec.json"],
    },
    ProjectPhase.DEPENDENCIES: {
        "devops": ["DEPENDENCIES.md", "dependency-proposal.json", "sbom.json"],
    },
    ProjectPhase.SOLUTIONING: {
        "architect": ["architecture.md"],
        "scrum": ["epics.md", "tasks.md", "traceability.json"],
    },
}


def make_agent(
    name: str,
    phase: ProjectPhase,
    artifact_names: Iterable[str],
    *,
    tokens_used: int | None = 100,
    quality_score: int | None = 90,
    calls: list[AgentInput] | None = None,
) -> FunctionAgent:
    names = list(artifact_names)

    async def run(agent_input: AgentInput) -> AgentOutput:
        if calls is not None:
            calls.append(agent_input)
        return AgentOutput(
            artifacts=[
                GeneratedArtifact(
                    name=n,
                    content=PHASE_CONTENT.get(n, f"# {n}\n\nGenerated by {name}."),
                    phase=phase,
                )
                for n in names
            ],
            tokens_used=tokens_used,
            quality_score=quality_score,
        )

    return FunctionAgent(name, phase, run)


def make_agents(
    overrides: dict[tuple[ProjectPhase, str], FunctionAgent] | None = None,
) -> list[FunctionAgent]:
    """A well-behaved agent for every (phase, agent) binding, with overrides swapped in."""
    overrides = overrides or {}
    agents: list[FunctionAgent] = []
    for phase, outputs in AGENT_OUTPUTS.items():
        for name in PHASE_CONFIG[phase].agents:
            agent = overrides.get((phase, name)) or make_agent(name, phase, outputs.get(name, []))
            agents.append(agent)
    return agents


def make_registry(
    overrides: dict[tuple[ProjectPhase, str], FunctionAgent] | None = None,
) -> AgentRegistry:
    return AgentRegistry(make_agents(overrides))


@pytest.fixture
def db():
    database = WorkflowDatabase(":memory:")
    yield database
    database.close()


@pytest.fixture
def engine(db: WorkflowDatabase) -> ValidationEngine:
    return ValidationEngine(db)


@pytest.fixture
def project(db: WorkflowDatabase) -> Project:
    return db.create_project(Project(name="Acme Portal", description="Customer portal"))


@pytest.fixture
def artifacts() -> dict[str, str]:
    return dict(PHASE_CONTENT)
