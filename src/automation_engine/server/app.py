"""FastAPI app factory.

Endpoints are thin wrappers over :class:`AutomationService`; the service is
started and shut down with the app lifespan. Handlers are ``async def`` so they
run on the engine's event loop thread.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from automation_engine import __version__
from automation_engine.engine.errors import (
    NoStepsError,
    WorkflowNotFoundError,
    WorkflowValidationError,
)
from automation_engine.engine.models import ExecutionSummary, WorkflowSummary
from automation_engine.engine.service import AutomationService, StatusFilter
from automation_engine.server.config import ServerSettings
from automation_engine.server.models import (
    CreateFromTextRequest,
    CreateWorkflowRequest,
    ExecuteRequest,
    MessageResponse,
    UpdateWorkflowRequest,
)

logger = logging.getLogger(__name__)

JsonDict = dict[str, Any]


def create_app(service: AutomationService | None = None) -> FastAPI:
    settings = ServerSettings()
    service = service or AutomationService()

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        await service.start()
        try:
            yield
        finally:
            await service.shutdown()

    app = FastAPI(
        title="Automation Engine",
        version=__version__,
        description="REST API over the local workflow automation engine.",
        openapi_url="/api/openapi.json",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.parsed_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(WorkflowNotFoundError)
    async def _not_found(_request: Request, exc: WorkflowNotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(WorkflowValidationError)
    async def _invalid(_request: Request, exc: WorkflowValidationError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"detail": str(exc), "errors": exc.errors})

    @app.exception_handler(NoStepsError)
    async def _no_steps(_request: Request, exc: NoStepsError) -> JSONResponse:
        return JSONResponse(status_code=409, content={"detail": str(exc)})

    @app.get("/api/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/api/workflows")
    async def list_workflows(status: StatusFilter = "all", summary: bool = False) -> list[JsonDict]:
        workflows = service.list_workflows(status)
        if summary:
            return [WorkflowSummary.from_workflow(w).to_json() for w in workflows]
        return [w.to_json() for w in workflows]

    @app.post("/api/workflows", status_code=201)
    async def create_workflow(req: CreateWorkflowRequest) -> JsonDict:
        workflow = await service.create_workflow(
            name=req.name,
            description=req.description,
            triggers=req.triggers,
            steps=req.steps,
        )
        return workflow.to_json()

    @app.post("/api/workflows/from-text", status_code=201)
    async def create_workflow_from_text(req: CreateFromTextRequest) -> JsonDict:
        workflow = await service.create_workflow_from_text(req.request)
        return workflow.to_json()

    @app.get("/api/workflows/{workflow_id}")
    async def get_workflow(workflow_id: str) -> JsonDict:
        return service.get_workflow(workflow_id).to_json()

    @app.patch("/api/workflows/{workflow_id}")
    async def update_workflow(workflow_id: str, req: UpdateWorkflowRequest) -> JsonDict:
        workflow = await service.update_workflow(
            workflow_id,
            name=req.name,
            description=req.description,
            triggers=req.triggers,
            steps=req.steps,
        )
        return workflow.to_json()

    @app.delete("/api/workflows/{workflow_id}", response_model=MessageResponse)
    async def delete_workflow(workflow_id: str) -> MessageResponse:
        workflow = await service.delete_workflow(workflow_id)
        return MessageResponse(
            message=f'Workflow "{workflow.name}" deleted', workflow_id=workflow.id
        )

    @app.post("/api/workflows/{workflow_id}/enable")
    async def enable_workflow(workflow_id: str) -> JsonDict:
        return (await service.enable_workflow(workflow_id)).to_json()

    @app.post("/api/workflows/{workflow_id}/disable")
    async def disable_workflow(workflow_id: str) -> JsonDict:
        return (await service.disable_workflow(workflow_id)).to_json()

    @app.post(
        "/api/workflows/{workflow_id}/execute", status_code=202, response_model=MessageResponse
    )
    async def execute_workflow(
        workflow_id: str, req: ExecuteRequest | None = None
    ) -> MessageResponse:
        context = req.context if req is not None else {}
        workflow = service.execute_workflow(workflow_id, context)
        return MessageResponse(
            message=f'Workflow "{workflow.name}" queued for execution', workflow_id=workflow.id
        )

    @app.get("/api/executions")
    async def list_executions(
        workflow_id: str | None = Query(default=None, alias="workflowId"),
        limit: int = Query(default=50, ge=1, le=1000),
    ) -> list[JsonDict]:
        return [
            ExecutionSummary.from_execution(e).to_json()
            for e in service.get_execution_history(workflow_id, limit)
        ]

    @app.get("/api/executions/{execution_id}")
    async def get_execution(execution_id: str) -> JsonDict:
        execution = service.history.get(execution_id)
        if execution is None:
            raise HTTPException(status_code=404, detail="Execution not found")
        return execution.to_json()

    @app.get("/api/triggers")
    async def list_triggers(
        workflow_id: str | None = Query(default=None, alias="workflowId"),
    ) -> list[str]:
        return service.triggers.handle_keys(workflow_id)

    return app
