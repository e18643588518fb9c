"""Requirement traceability matrix and coverage report.

Links each requirement in the PRD to the API endpoints, data entities and
tasks that mention its title keywords, then scores how completely it is
covered across those three dimensions.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, Field

from docflow.validation import bundle as names
from docflow.validation.bundle import ArtifactBundle
from docflow.validation.parsers import (
    DataEntity,
    Endpoint,
    Requirement,
    Task,
    extract_api_endpoints,
    extract_data_entities,
    extract_requirements,
    extract_tasks,
)

_API_WEIGHT = 30
_ENTITY_WEIGHT = 40
_TASK_WEIGHT = 30
_TASK_LABEL_LEN = 50


class TraceStatus(StrEnum):
    COVERED = "covered"
    PARTIAL = "partial"
    UNCOVERED = "uncovered"


class RiskLevel(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class RequirementTrace(BaseModel):
    requirement_id: str
    requirement_title: str
    category: str
    api_endpoints: list[str] = Field(default_factory=list)
    data_entities: list[str] = Field(default_factory=list)
    tasks: list[str] = Field(default_factory=list)
    coverage: int = 0
    status: TraceStatus = TraceStatus.UNCOVERED


class TraceabilityMatrix(BaseModel):
    project_id: str
    requirements: list[RequirementTrace] = Field(default_factory=list)
    total_requirements: int = 0
    total_covered: int = 0
    total_partial: int = 0
    total_uncovered: int = 0
    overall_coverage: int = 0
    generated_at: str = Field(default_factory=_now_iso)


class ImpactItem(BaseModel):
    requirement: str
    affected_artifacts: list[str]
    risk_level: RiskLevel
    impact: str


class CoverageReport(BaseModel):
    project_id: str
    phase: str
    overall_coverage: int
    requirement_coverage: int
    api_coverage: int
    data_coverage: int
    task_coverage: int
    impact_analysis: list[ImpactItem] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)


def _round(value: float) -> int:
    return int(value + 0.5)


def _keywords(title: str, min_len: int) -> list[str]:
    return [w for w in title.lower().split(" ") if len(w) >= min_len]


def match_endpoints(req: Requirement, endpoints: list[Endpoint]) -> list[str]:
    keywords = _keywords(req.title, 3)
    return [
        f"{e.method} {e.path}"
        for e in endpoints
        if any(k in f"{e.path} {e.description}".lower() for k in keywords)
    ]


def match_entities(req: Requirement, entities: list[DataEntity]) -> list[str]:
    keywords = _keywords(req.title, 3)
    return [
        e.name for e in entities if any(k in f"{e.name} {e.description}".lower() for k in keywords)
    ]


def match_tasks(req: Requirement, tasks: list[Task]) -> list[str]:
    keywords = _keywords(req.title, 4)
    return [t.title[:_TASK_LABEL_LEN] for t in tasks if any(k in t.title.lower() for k in keywords)]


def requirement_coverage(apis: list[str], entities: list[str], tasks: list[str]) -> int:
    """Average of the matched dimensions, each capped at 100."""
    scores = []
    if apis:
        scores.append(min(100, len(apis) * _API_WEIGHT))
    if entities:
        scores.append(min(100, len(entities) * _ENTITY_WEIGHT))
    if tasks:
        scores.append(min(100, len(tasks) * _TASK_WEIGHT))
    return _round(sum(scores) / len(scores)) if scores else 0


def _status(coverage: int) -> TraceStatus:
    if coverage == 100:
        return TraceStatus.COVERED
    if coverage >= 50:
        return TraceStatus.PARTIAL
    return TraceStatus.UNCOVERED


def build_traceability_matrix(project_id: str, artifacts: ArtifactBundle) -> TraceabilityMatrix:
    requirements = extract_requirements(artifacts.get(names.PRD))
    endpoints = extract_api_endpoints(artifacts.get(names.API_SPEC))
    entities = extract_data_entities(artifacts.get(names.DATA_MODEL))
    tasks = extract_tasks(artifacts.get(names.TASKS))

    traces: list[RequirementTrace] = []
    for req in requirements:
        apis = match_endpoints(req, endpoints)
        ents = match_entities(req, entities)
        tsks = match_tasks(req, tasks)
        coverage = requirement_coverage(apis, ents, tsks)
        traces.append(
            RequirementTrace(
                requirement_id=req.id,
                requirement_title=req.title,
                category=req.category,
                api_endpoints=apis,
                data_entities=ents,
                tasks=tsks,
                coverage=coverage,
                status=_status(coverage),
            )
        )

    return TraceabilityMatrix(
        project_id=project_id,
        requirements=traces,
        total_requirements=len(traces),
        total_covered=sum(1 for t in traces if t.status == TraceStatus.COVERED),
        total_partial=sum(1 for t in traces if t.status == TraceStatus.PARTIAL),
        total_uncovered=sum(1 for t in traces if t.status == TraceStatus.UNCOVERED),
        overall_coverage=_round(sum(t.coverage for t in traces) / len(traces)) if traces else 0,
    )


def _share(matrix: TraceabilityMatrix, attr: str) -> int:
    if matrix.total_requirements == 0:
        return 0
    hits = sum(1 for t in matrix.requirements if getattr(t, attr))
    return _round(hits / matrix.total_requirements * 100)


def analyze_impact(matrix: TraceabilityMatrix) -> list[ImpactItem]:
    items: list[ImpactItem] = []
    for trace in matrix.requirements:
        if trace.status == TraceStatus.COVERED:
            continue
        missing: list[str] = []
        if not trace.api_endpoints:
            missing.append("API Endpoints")
        if not trace.data_entities:
            missing.append("Data Model")
        if not trace.tasks:
            missing.append("Implementation Tasks")
        if trace.status == TraceStatus.UNCOVERED:
            risk = RiskLevel.HIGH
        elif len(missing) > 1:
            risk = RiskLevel.MEDIUM
        else:
            risk = RiskLevel.LOW
        items.append(
            ImpactItem(
                requirement=trace.requirement_title,
                affected_artifacts=missing,
                risk_level=risk,
                impact=f"Missing coverage in: {', '.join(missing)}",
            )
        )
    return items


def recommendations(matrix: TraceabilityMatrix) -> list[str]:
    recs: list[str] = []
    if matrix.total_uncovered:
        recs.append(
            f"{matrix.total_uncovered} requirements are uncovered. "
            "Review and add corresponding artifacts."
        )
    if matrix.total_partial:
        recs.append(
            f"{matrix.total_partial} requirements have partial coverage. "
            "Consider adding missing API endpoints or data entities."
        )
    if matrix.overall_coverage < 80:
        recs.append(
            "Overall coverage is below 80%. Consider conducting a requirements refinement session."
        )
    if matrix.overall_coverage < 60:
        recs.append(
            "Critical: Coverage is below 60%. "
            "Recommend immediate action to improve artifact alignment."
        )
    return recs


def build_coverage_report(
    project_id: str, phase: str, matrix: TraceabilityMatrix
) -> CoverageReport:
    requirement_cov = (
        _round(matrix.total_covered / matrix.total_requirements * 100)
        if matrix.total_requirements
        else 0
    )
    return CoverageReport(
        project_id=project_id,
        phase=phase,
        overall_coverage=matrix.overall_coverage,
        requirement_coverage=requirement_cov,
        api_coverage=_share(matrix, "api_endpoints"),
        data_coverage=_share(matrix, "data_entities"),
        task_coverage=_share(matrix, "tasks"),
        impact_analysis=analyze_impact(matrix),
        recommendations=recommendations(matrix),
    )
