"""Project routes: create, inspect, approve gates, advance phases."""

from __future__ import annotations

from pydantic import BaseModel, ValidationError
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from docflow.errors import (
    ConcurrentTransitionError,
    DocflowError,
    GateNotSatisfied,
    MissingArtifacts,
    PersistenceError,
    PhaseValidationFailed,
    ProjectNotFound,
)
from docflow.validation.bundle import ArtifactBundle
from docflow.validation.traceability import build_coverage_report, build_traceability_matrix
from docflow.workflow.models import Gate, Project, ProjectPhase
from docflow.workflow.phases import PHASE_CONFIG, phase_progress


class CreateProjectRequest(BaseModel):
    name: str
    description: str = ""


def error_response(error: DocflowError) -> JSONResponse:
    """Map the error taxonomy onto HTTP status codes."""
    body: dict = {"error": str(error), "type": type(error).__name__}
    if isinstance(error, ProjectNotFound):
        return JSONResponse(body, status_code=404)
    if isinstance(error, GateNotSatisfied):
        body["gate"] = error.gate
        return JSONResponse(body, status_code=409)
    if isinstance(error, ConcurrentTransitionError):
        return JSONResponse(body, status_code=409)
    if isinstance(error, MissingArtifacts):
        body["missing"] = error.names
        return JSONResponse(body, status_code=422)
    if isinstance(error, PhaseValidationFailed):
        body["missing"] = error.missing
        return JSONResponse(body, status_code=422)
    if isinstance(error, PersistenceError):
        return JSONResponse(body, status_code=500)
    return JSONResponse(body, status_code=400)


def _project_payload(project: Project) -> dict:
    config = PHASE_CONFIG[project.current_phase]
    return {
        **project.model_dump(mode="json"),
        "progress": phase_progress(project.current_phase),
        "phase_name": config.name,
        "phase_description": config.description,
        "required_artifacts": config.required_artifacts,
        "gate": config.gate,
    }


async def create_project(request: Request) -> JSONResponse:
    """POST /api/projects"""
    try:
        req = CreateProjectRequest.model_validate(await request.json())
    except (ValidationError, ValueError):
        return JSONResponse({"error": "name is required"}, status_code=422)
    if not req.name.strip():
        return JSONResponse({"error": "name is required"}, status_code=422)

    db = request.app.state.db
    try:
        project = db.create_project(Project(name=req.name, description=req.description))
    except PersistenceError as e:
        return error_response(e)
    return JSONResponse(_project_payload(project), status_code=201)


async def get_project(request: Request) -> JSONResponse:
    """GET /api/projects/{project_id}"""
    project = request.app.state.db.get_project(request.path_params["project_id"])
    if project is None:
        return error_response(ProjectNotFound(request.path_params["project_id"]))
    return JSONResponse(_project_payload(project))


async def approve_gate(request: Request) -> JSONResponse:
    """POST /api/projects/{project_id}/gates/{gate}/approve"""
    project_id = request.path_params["project_id"]
    try:
        gate = Gate(request.path_params["gate"])
    except ValueError:
        valid = ", ".join(g.value for g in Gate)
        return JSONResponse({"error": f"Unknown gate; expected one of: {valid}"}, status_code=422)

    try:
        project = request.app.state.db.approve_gate(project_id, gate)
    except PersistenceError as e:
        return error_response(e)
    if project is None:
        return error_response(ProjectNotFound(project_id))
    return JSONResponse(_project_payload(project))


async def advance_phase(request: Request) -> JSONResponse:
    """POST /api/projects/{project_id}/phases/advance"""
    orchestrator = request.app.state.orchestrator
    try:
        outcome = await orchestrator.advance_phase(request.path_params["project_id"])
    except DocflowError as e:
        return error_response(e)

    payload: dict = {
        "transitioned": outcome.transitioned,
        "project": _project_payload(outcome.project),
        "report_id": outcome.report_id,
    }
    if outcome.transition is not None:
        payload["transition"] = outcome.transition.model_dump(mode="json")
    else:
        payload["message"] = "Project is already complete"
    return JSONResponse(payload)


async def phase_history(request: Request) -> JSONResponse:
    """GET /api/projects/{project_id}/phases/history"""
    try:
        transitions = request.app.state.orchestrator.get_history(request.path_params["project_id"])
    except ProjectNotFound as e:
        return error_response(e)
    return JSONResponse({
        "transitions": [t.model_dump(mode="json") for t in transitions],
        "count": len(transitions),
    })


async def list_artifacts(request: Request) -> JSONResponse:
    """GET /api/projects/{project_id}/artifacts?phase="""
    db = request.app.state.db
    project_id = request.path_params["project_id"]
    if db.get_project(project_id) is None:
        return error_response(ProjectNotFound(project_id))

    phase = None
    if raw := request.query_params.get("phase"):
        try:
            phase = ProjectPhase(raw)
        except ValueError:
            return JSONResponse({"error": f"Unknown phase: {raw}"}, status_code=422)

    include_content = request.query_params.get("content", "false").lower() == "true"
    exclude = None if include_content else {"content"}
    artifacts = db.list_artifacts(project_id, phase)
    return JSONResponse({
        "artifacts": [a.model_dump(mode="json", exclude=exclude) for a in artifacts],
        "count": len(artifacts),
    })


async def traceability(request: Request) -> JSONResponse:
    """GET /api/projects/{project_id}/traceability"""
    db = request.app.state.db
    project_id = request.path_params["project_id"]
    project = db.get_project(project_id)
    if project is None:
        return error_response(ProjectNotFound(project_id))

    bundle = ArtifactBundle.from_pairs((a.name, a.content) for a in db.list_artifacts(project_id))
    matrix = build_traceability_matrix(project_id, bundle)
    coverage = build_coverage_report(project_id, project.current_phase.value, matrix)
    return JSONResponse({
        "matrix": matrix.model_dump(mode="json"),
        "coverage": coverage.model_dump(mode="json"),
    })


routes = [
    Route("/api/projects", create_project, methods=["POST"]),
    Route("/api/projects/{project_id}", get_project, methods=["GET"]),
    Route("/api/projects/{project_id}/gates/{gate}/approve", approve_gate, methods=["POST"]),
    Route("/api/projects/{project_id}/phases/advance", advance_phase, methods=["POST"]),
    Route("/api/projects/{project_id}/phases/history", phase_history, methods=["GET"]),
    Route("/api/projects/{project_id}/artifacts", list_artifacts, methods=["GET"]),
    Route("/api/projects/{project_id}/traceability", traceability, methods=["GET"]),
]
