"""FastAPI application entrypoint for docsync service mode."""

from __future__ import annotations

import asyncio
from functools import partial
from typing import Any, Callable, Dict, List, Optional

from fastapi import Depends, FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..orchestrator import Orchestrator, StageResult, UnknownDocumentError


class RunRequest(BaseModel):
    path: str
    stages: Optional[List[str]] = None


class StageSummary(BaseModel):
    stage: str
    report_path: Optional[str] = None
    summary: Dict[str, Any] = {}


class RunResponse(BaseModel):
    status: str
    stages: List[StageSummary]


class ValidatedRequest(BaseModel):
    path: str
    document: str
    sources: Optional[List[str]] = None


class ValidatedResponse(BaseModel):
    document: str
    marked: List[str]


class HealthResponse(BaseModel):
    status: str


def _default_orchestrator() -> Orchestrator:
    return Orchestrator()


async def _in_executor(func: Callable[[], Any]) -> Any:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, func)


def _summarize(result: StageResult) -> StageSummary:
    return StageSummary(
        stage=result.stage,
        report_path=str(result.path) if result.path is not None else None,
        summary=result.summary,
    )


def create_app(
    orchestrator_factory: Callable[[], Orchestrator] = _default_orchestrator,
) -> FastAPI:
    """Create the FastAPI application exposing docsync operations."""

    app = FastAPI(title="DocSync Service", version="1.0.0")

    async def get_orchestrator() -> Orchestrator:
        return orchestrator_factory()

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.post("/run", response_model=RunResponse)
    async def run_stages(
        payload: RunRequest,
        orchestrator: Orchestrator = Depends(get_orchestrator),
    ) -> RunResponse:
        results = await _in_executor(partial(orchestrator.run_all, payload.path, stages=payload.stages))
        return RunResponse(status="ok", stages=[_summarize(result) for result in results.values()])

    @app.post("/validated", response_model=ValidatedResponse)
    async def mark_validated(
        payload: ValidatedRequest,
        orchestrator: Orchestrator = Depends(get_orchestrator),
    ) -> ValidatedResponse:
        marked = await _in_executor(
            partial(orchestrator.mark_validated, payload.path, payload.document, sources=payload.sources)
        )
        return ValidatedResponse(document=payload.document, marked=marked)

    @app.exception_handler(FileNotFoundError)
    async def file_not_found_handler(_: Any, exc: FileNotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(UnknownDocumentError)
    async def unknown_document_handler(_: Any, exc: UnknownDocumentError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": exc.args[0] if exc.args else str(exc)})

    @app.exception_handler(RuntimeError)
    async def runtime_error_handler(_: Any, exc: RuntimeError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(ValueError)
    async def value_error_handler(_: Any, exc: ValueError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    return app


def run_service(host: str = "127.0.0.1", port: int = 8000) -> None:  # pragma: no cover - integration path
    import uvicorn

    uvicorn.run(create_app(), host=host, port=port)
