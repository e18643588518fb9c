"""Orchestrator: gated, single-flight phase transitions for a project."""

from __future__ import annotations

import asyncio
import logging
from collections import Counter

from docflow.errors import (
    GateNotSatisfied,
    MissingArtifacts,
    PhaseValidationFailed,
    ProjectNotFound,
)
from docflow.storage.database import WorkflowDatabase
from docflow.validation.bundle import ArtifactBundle
from docflow.validation.engine import ValidationEngine
from docflow.validation.models import ValidationReport
from docflow.workflow.agents import AgentRegistry, PhaseAgent
from docflow.workflow.hashing import content_hash
from docflow.workflow.models import (
    AgentInput,
    AgentOutput,
    Artifact,
    ArtifactStatus,
    GeneratedArtifact,
    PhaseTransition,
    PriorArtifact,
    Project,
    ProjectPhase,
    TransitionOutcome,
)
from docflow.workflow.phases import (
    PHASE_CONFIG,
    check_phase_structure,
    find_missing_artifacts,
    get_next_phase,
)

logger = logging.getLogger(__name__)

DEFAULT_AGENT_TIMEOUT = 120.0


class Orchestrator:
    """Moves projects through the fixed phase sequence.

    Transitions for the same project are serialized by a per-project lock;
    different projects proceed independently.
    """

    def __init__(
        self,
        db: WorkflowDatabase,
        agents: AgentRegistry,
        engine: ValidationEngine | None = None,
        *,
        agent_timeout: float = DEFAULT_AGENT_TIMEOUT,
    ) -> None:
        self._db = db
        self._agents = agents
        self._engine = engine
        self._agent_timeout = agent_timeout
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: Counter[str] = Counter()

    def get_project(self, project_id: str) -> Project:
        project = self._db.get_project(project_id)
        if project is None:
            raise ProjectNotFound(project_id)
        return project

    async def advance_phase(self, project_id: str) -> TransitionOutcome:
        lock = self._locks.setdefault(project_id, asyncio.Lock())
        self._lock_users[project_id] += 1
        try:
            async with lock:
                return await self._advance(project_id)
        finally:
            # Drop the lock once no caller holds or awaits it.
            self._lock_users[project_id] -= 1
            if self._lock_users[project_id] <= 0:
                del self._lock_users[project_id]
                del self._locks[project_id]

    async def _advance(self, project_id: str) -> TransitionOutcome:
        # Read fresh inside the lock so a second caller sees the committed phase.
        project = self.get_project(project_id)
        current = project.current_phase
        next_phase = get_next_phase(current)
        if next_phase is None:
            return TransitionOutcome(transitioned=False, project=project)

        config = PHASE_CONFIG[current]
        if config.gate is not None and not project.is_gate_satisfied(config.gate):
            raise GateNotSatisfied(config.gate)

        prior = self._db.list_artifacts(project_id)
        agent_input = AgentInput(
            project_id=project_id,
            phase_data={
                "project": project.model_dump(mode="json"),
                "phase": current.value,
                "config": config.model_dump(mode="json"),
            },
            prior_artifacts=[
                PriorArtifact(name=a.name, content=a.content, phase=a.phase) for a in prior
            ],
        )
        outputs = await self._execute_agents(current, agent_input)
        generated = [a for _, output in outputs for a in output.artifacts]

        missing = find_missing_artifacts(current, generated)
        if missing:
            logger.warning(f"Missing artifacts for phase {current}: {missing}")
            raise MissingArtifacts(current.value, missing)

        structural = check_phase_structure(current, generated)
        if structural:
            raise PhaseValidationFailed(current.value, structural)

        artifacts = [
            self._to_record(project_id, current, artifact, output)
            for _, output in outputs
            for artifact in output.artifacts
        ]
        tokens = [o.tokens_used for _, o in outputs if o.tokens_used is not None]
        transition = PhaseTransition(
            project_id=project_id,
            from_phase=current,
            to_phase=next_phase,
            artifacts_generated=[a.name for a in generated],
            validation_passed=all(o.validation_passed for _, o in outputs),
            tokens_used=sum(tokens) if tokens else None,
        )
        updated = self._db.commit_transition(project, next_phase, artifacts, transition)
        logger.info(f"Project {project_id} advanced {current} -> {next_phase}")

        report = await self._run_cross_validation(project_id, current)
        return TransitionOutcome(
            transitioned=True,
            project=updated,
            transition=transition,
            report_id=report.id if report else None,
        )

    async def _execute_agents(
        self, phase: ProjectPhase, agent_input: AgentInput
    ) -> list[tuple[str, AgentOutput]]:
        """Run bound agents in declared order; each failure is isolated to its agent."""
        outputs: list[tuple[str, AgentOutput]] = []
        for name in PHASE_CONFIG[phase].agents:
            agent = self._agents.get(phase, name)
            if agent is None:
                logger.warning(f"No agent registered for {name!r} in phase {phase}; skipping")
                continue
            outputs.append((name, await self._run_agent(agent, phase, agent_input)))
            # Later agents in the phase see what earlier ones produced.
            agent_input = agent_input.model_copy(
                update={
                    "prior_artifacts": [
                        *agent_input.prior_artifacts,
                        *(
                            PriorArtifact(name=a.name, content=a.content, phase=a.phase)
                            for a in outputs[-1][1].artifacts
                        ),
                    ]
                }
            )
        return outputs

    async def _run_agent(
        self, agent: PhaseAgent, phase: ProjectPhase, agent_input: AgentInput
    ) -> AgentOutput:
        try:
            output = await asyncio.wait_for(agent.execute(agent_input), self._agent_timeout)
        except TimeoutError:
            logger.warning(f"Agent {agent.name} timed out after {self._agent_timeout}s")
            return _failure_output(agent.name, phase, f"timed out after {self._agent_timeout}s")
        except Exception as e:
            logger.warning(f"Agent {agent.name} failed: {e}")
            return _failure_output(agent.name, phase, str(e) or type(e).__name__)
        if not isinstance(output, AgentOutput):
            return _failure_output(agent.name, phase, "returned an invalid output")
        return output

    @staticmethod
    def _to_record(
        project_id: str,
        phase: ProjectPhase,
        artifact: GeneratedArtifact,
        output: AgentOutput,
    ) -> Artifact:
        return Artifact(
            project_id=project_id,
            phase=phase,
            name=artifact.name,
            content=artifact.content,
            content_hash=content_hash(artifact.content),
            frontmatter=artifact.frontmatter,
            validation_status=(
                ArtifactStatus.FAIL if artifact.validation_errors else ArtifactStatus.PASS
            ),
            quality_score=output.quality_score,
            validation_errors=list(artifact.validation_errors),
        )

    async def _run_cross_validation(
        self, project_id: str, phase: ProjectPhase
    ) -> ValidationReport | None:
        """Validate every artifact accumulated so far; never fails the transition."""
        if self._engine is None:
            return None
        try:
            return self.validate_project(project_id, phase)
        except Exception:
            logger.exception(f"Cross-artifact validation failed for project {project_id}")
            return None

    def validate_project(
        self, project_id: str, phase: ProjectPhase | None = None
    ) -> ValidationReport | None:
        """Run cross-artifact validation over the project's stored artifacts."""
        if self._engine is None:
            return None
        project = self.get_project(project_id)
        artifacts = self._db.list_artifacts(project_id)
        bundle = ArtifactBundle.from_pairs((a.name, a.content) for a in artifacts)
        return self._engine.validate_artifacts(
            project_id, (phase or project.current_phase).value, bundle
        )

    def get_history(self, project_id: str) -> list[PhaseTransition]:
        self.get_project(project_id)
        return self._db.list_phase_transitions(project_id)


def _failure_output(agent_name: str, phase: ProjectPhase, reason: str) -> AgentOutput:
    message = f"Agent {agent_name} failed: {reason}"
    return AgentOutput(
        artifacts=[
            GeneratedArtifact(
                name=f"{agent_name}-error.md",
                content=message,
                phase=phase,
                validation_errors=[message],
            )
        ],
        validation_passed=False,
    )
