"""FastAPI app factory.

Endpoints are thin wrappers over the orchestrator facade.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from triage_orchestrator import __version__
from triage_orchestrator.core.config import OrchestratorConfig
from triage_orchestrator.core.orchestrator import Orchestrator
from triage_orchestrator.engine.definition import load_definition
from triage_orchestrator.engine.results import RunStatus
from triage_orchestrator.server.config import ServerSettings
from triage_orchestrator.server.models import (
    ExecuteRequest,
    ExecuteResponse,
    ResultsResponse,
    RunSummary,
    StatusResponse,
)

logger = logging.getLogger(__name__)


def _load_orchestrator(settings: ServerSettings) -> Orchestrator | None:
    config = OrchestratorConfig()
    path = settings.definition_path or config.definition_path
    if path is None:
        logger.warning("No pipeline definition configured; execution endpoints are disabled")
        return None
    return Orchestrator(config, load_definition(path))


def create_app(orchestrator: Orchestrator | None = None) -> FastAPI:
    settings = ServerSettings()
    if orchestrator is None:
        orchestrator = _load_orchestrator(settings)

    app = FastAPI(
        title="Triage Orchestrator",
        version=__version__,
        description="REST API for running declared task pipelines in waves.",
        openapi_url="/api/openapi.json",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
    )

    app.state.settings = settings
    app.state.orchestrator = orchestrator

    origins = settings.parsed_cors_origins()
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["GET", "POST"],
            allow_headers=["*"],
        )

    @app.exception_handler(RequestValidationError)
    async def bad_request(_request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})

    def _require() -> Orchestrator:
        if orchestrator is None:
            raise HTTPException(status_code=503, detail="No pipeline definition configured")
        return orchestrator

    @app.get("/api/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "version": __version__}

    @app.post("/api/tasks/execute", response_model=ExecuteResponse)
    async def execute(req: ExecuteRequest) -> ExecuteResponse:
        engine = _require()
        existing = engine.get_session(req.session_id)
        if existing is not None and existing.status == RunStatus.RUNNING:
            raise HTTPException(status_code=409, detail="Session is already running")

        session = await engine.execute(req.session_id, req.input_context, req.metadata)
        return ExecuteResponse(
            success=session.status == RunStatus.COMPLETED,
            session=session,
            summary=RunSummary(**session.summary()),
        )

    @app.get("/api/tasks/status/{session_id}", response_model=StatusResponse)
    def status(session_id: str) -> StatusResponse:
        engine = _require()
        session = engine.get_session(session_id)
        progress = engine.get_progress(session_id)
        if session is None or progress is None:
            raise HTTPException(status_code=404, detail="Session not found")
        return StatusResponse(
            session_id=session_id,
            status=session.status.value,
            progress=progress,
            error=session.error,
        )

    @app.get("/api/tasks/results/{session_id}", response_model=ResultsResponse)
    def results(session_id: str) -> ResultsResponse:
        engine = _require()
        session = engine.get_session(session_id)
        if session is None:
            raise HTTPException(status_code=404, detail="Session not found")
        return ResultsResponse(
            session_id=session_id,
            status=session.status.value,
            outputs=session.outputs,
            task_results=session.task_results,
            plan=session.plan,
            plan_source=session.plan_source,
        )

    return app
