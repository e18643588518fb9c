"""Validation routes: rules, on-demand runs, report history, dashboard."""

from __future__ import annotations

from pydantic import BaseModel, ValidationError
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from docflow.errors import PersistenceError, ProjectNotFound
from docflow.server.routes_projects import error_response
from docflow.validation.bundle import ArtifactBundle
from docflow.validation.engine import MIN_ARTIFACTS
from docflow.validation.report import rule_statistics, summarize_history


class RunValidationRequest(BaseModel):
    project_id: str
    phase: str | None = None
    artifacts: dict[str, str] | None = None


def _limit(request: Request, default: int) -> int:
    raw = request.query_params.get("limit")
    if raw is None:
        return default
    return min(max(int(raw), 1), 100)


async def list_rules(request: Request) -> JSONResponse:
    """GET /api/validation/rules"""
    rules = request.app.state.engine.get_rules()
    return JSONResponse({
        "rules": [r.model_dump(mode="json") for r in rules],
        "statistics": rule_statistics(rules),
    })


async def run_validation(request: Request) -> JSONResponse:
    """POST /api/validation/run: validate supplied or stored artifacts."""
    try:
        req = RunValidationRequest.model_validate(await request.json())
    except (ValidationError, ValueError):
        return JSONResponse({"error": "project_id is required"}, status_code=422)

    db = request.app.state.db
    engine = request.app.state.engine
    project = db.get_project(req.project_id)
    if project is None:
        return error_response(ProjectNotFound(req.project_id))

    if req.artifacts is not None:
        bundle = ArtifactBundle(req.artifacts)
    else:
        stored = db.list_artifacts(req.project_id)
        bundle = ArtifactBundle.from_pairs((a.name, a.content) for a in stored)
    phase = req.phase or project.current_phase.value

    try:
        report = engine.validate_artifacts(req.project_id, phase, bundle)
    except PersistenceError as e:
        return error_response(e)
    if report is None:
        return JSONResponse(
            {"error": f"At least {MIN_ARTIFACTS} artifacts are required for validation"},
            status_code=422,
        )
    return JSONResponse(report.model_dump(mode="json"))


async def list_reports(request: Request) -> JSONResponse:
    """GET /api/validation/reports/{project_id}?limit="""
    default = request.app.state.config.history_limit
    try:
        limit = _limit(request, default)
    except ValueError:
        return JSONResponse({"error": "limit must be an integer"}, status_code=400)

    reports = request.app.state.engine.get_validation_history(
        request.path_params["project_id"], limit=limit
    )
    return JSONResponse({
        "reports": [r.model_dump(mode="json") for r in reports],
        "count": len(reports),
    })


async def get_report(request: Request) -> JSONResponse:
    """GET /api/validation/report/{report_id}"""
    report = request.app.state.engine.get_validation_report(request.path_params["report_id"])
    if report is None:
        return JSONResponse({"error": "Report not found"}, status_code=404)
    return JSONResponse(report.model_dump(mode="json"))


async def dashboard(request: Request) -> JSONResponse:
    """GET /api/validation/dashboard/{project_id}"""
    engine = request.app.state.engine
    project_id = request.path_params["project_id"]
    reports = engine.get_validation_history(
        project_id, limit=request.app.state.config.history_limit
    )
    latest = reports[0] if reports else None
    return JSONResponse({
        "project_id": project_id,
        "latest_report": latest.model_dump(mode="json") if latest else None,
        "history": [
            {
                "id": r.id,
                "phase": r.phase,
                "overall_status": r.overall_status,
                "passed_rules": r.passed_rules,
                "total_rules": r.total_rules,
                "created_at": r.created_at,
            }
            for r in reports
        ],
        "summary": summarize_history(reports),
        "rule_statistics": rule_statistics(engine.get_rules()),
    })


routes = [
    Route("/api/validation/rules", list_rules, methods=["GET"]),
    Route("/api/validation/run", run_validation, methods=["POST"]),
    Route("/api/validation/reports/{project_id}", list_reports, methods=["GET"]),
    Route("/api/validation/report/{report_id}", get_report, methods=["GET"]),
    Route("/api/validation/dashboard/{project_id}", dashboard, methods=["GET"]),
]
