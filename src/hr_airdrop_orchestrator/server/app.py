"""FastAPI app factory.

Endpoints are thin wrappers over `AirdropOrchestrator.dispatch`; the REST surface
and the MCP surface share one orchestrator and therefore one workflow state.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from hr_airdrop_orchestrator import __version__
from hr_airdrop_orchestrator.orchestrator.config import AirdropSettings
from hr_airdrop_orchestrator.orchestrator.errors import UnknownOperationError
from hr_airdrop_orchestrator.orchestrator.workflow.orchestrator import AirdropOrchestrator
from hr_airdrop_orchestrator.server.models import ApiTool, ApiToolResult, ToolCallRequest

logger = logging.getLogger(__name__)

# HTTP status per error kind; successful calls are 200.
_STATUS_BY_ERROR_KIND: dict[str, int] = {
    "validation_error": 422,
    "precondition_error": 409,
    "execution_error": 502,
    "internal_error": 500,
}


def create_app(
    settings: AirdropSettings | None = None,
    orchestrator: AirdropOrchestrator | None = None,
) -> FastAPI:
    settings = settings or AirdropSettings()
    orchestrator = orchestrator or AirdropOrchestrator(settings)

    app = FastAPI(
        title="HR Airdrop Orchestrator",
        version=__version__,
        description="REST API over the HR airdrop workflow tools.",
        openapi_url="/api/openapi.json",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
    )

    app.state.settings = settings
    app.state.orchestrator = orchestrator

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.parsed_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/api/v1/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/api/v1/tools", response_model=list[ApiTool])
    def list_tools() -> list[ApiTool]:
        return [
            ApiTool(name=op.name, description=op.description, input_schema=op.input_schema())
            for op in orchestrator.operations
        ]

    @app.get("/api/v1/state")
    def get_state() -> dict[str, Any]:
        return orchestrator.snapshot()

    @app.post("/api/v1/tools/{name}", response_model=ApiToolResult)
    def call_tool(name: str, req: ToolCallRequest | None = None) -> Any:
        try:
            orchestrator.operation(name)
        except UnknownOperationError as e:
            raise HTTPException(status_code=404, detail=e.message) from e

        result = orchestrator.dispatch(name, req.arguments if req is not None else {})
        body = ApiToolResult(
            text=result.text,
            is_error=result.is_error,
            error_kind=result.error_kind,
            data=result.data,
        )
        if not result.is_error:
            return body
        status = _STATUS_BY_ERROR_KIND.get(result.error_kind or "", 500)
        return JSONResponse(status_code=status, content=body.model_dump(mode="json"))

    return app
