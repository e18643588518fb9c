"""Starlette app factory with lifespan for database and orchestrator wiring."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from starlette.applications import Starlette

from docflow.config import DocflowConfig
from docflow.server.routes_projects import routes as project_routes
from docflow.server.routes_validation import routes as validation_routes
from docflow.storage.database import WorkflowDatabase
from docflow.validation.engine import ValidationEngine
from docflow.workflow.agents import AgentRegistry, PhaseAgent, load_agents
from docflow.workflow.orchestrator import Orchestrator

logger = logging.getLogger(__name__)


def create_app(
    db_path: str = ":memory:",
    config: DocflowConfig | None = None,
    agents: list[PhaseAgent] | None = None,
) -> Starlette:
    """Create a Starlette app backed by the database at `db_path`.

    Agents default to the bindings in `config.agents`; bad bindings raise
    AgentLoadError here rather than on the first request.
    """
    if config is None:
        config = DocflowConfig()
    if agents is None:
        agents = load_agents(config.agents)
    if not agents:
        logger.warning("No agents configured; phase advances will report missing artifacts")
    registry = AgentRegistry(agents)

    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncGenerator[None, None]:
        app.state.config = config
        app.state.db = WorkflowDatabase(db_path)
        app.state.engine = ValidationEngine(app.state.db, disabled_rules=config.disabled_rules)
        app.state.agents = registry
        app.state.orchestrator = Orchestrator(
            app.state.db,
            app.state.agents,
            app.state.engine if config.validation_enabled else None,
            agent_timeout=config.agent_timeout_seconds,
        )

        yield

        app.state.db.close()

    return Starlette(routes=project_routes + validation_routes, lifespan=lifespan)
