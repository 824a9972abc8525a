"""FastAPI application for the SQL studio.

Endpoints:
  /health                            - Sandbox database and catalog status
  /api/assignments                   - Assignment list
  /api/assignments/{id}              - Assignment detail with sample schemas
  /api/assignments/{id}/execute      - Run a query in the sandbox
  /api/assignments/{id}/hint         - LLM hint (falls back to a generic one)

Run: uvicorn --factory sqlstudio.api:create_app --reload
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, List, Optional

from fastapi import APIRouter, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import StudioConfig
from .schemas import (
    AssignmentDetail,
    AssignmentSummary,
    CamelModel,
    ErrorKind,
    ExecutionOutcome,
    Hint,
    HintLevel,
)
from .studio import Studio

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["assignments"])


class ExecuteRequest(CamelModel):
    sql: Optional[Any] = None


class HintRequest(CamelModel):
    sql: Optional[str] = None
    hint_level: Optional[str] = None


def _studio(request: Request) -> Studio:
    return request.app.state.studio


def _outcome_response(outcome: ExecutionOutcome) -> JSONResponse:
    return JSONResponse(
        status_code=200 if outcome.success else 400,
        content=outcome.model_dump(mode="json", by_alias=True),
    )


@router.get("/assignments", response_model=List[AssignmentSummary])
async def list_assignments(request: Request):
    return await _studio(request).list_assignments()


@router.get("/assignments/{assignment_id}", response_model=AssignmentDetail)
async def get_assignment(assignment_id: str, request: Request):
    assignment = await _studio(request).get_assignment(assignment_id)
    if assignment is None:
        raise HTTPException(status_code=404, detail="Assignment not found")
    return assignment.detail()


@router.post("/assignments/{assignment_id}/execute")
async def execute_query(assignment_id: str, req: ExecuteRequest, request: Request):
    """Validate and run the student's query in the sandbox."""
    if not req.sql:
        return _outcome_response(
            ExecutionOutcome.failure(ErrorKind.INPUT_INVALID, "SQL query is required")
        )

    outcome = await _studio(request).run_sandboxed_query(req.sql)
    return _outcome_response(outcome)


@router.post("/assignments/{assignment_id}/hint", response_model=Hint)
async def get_assignment_hint(assignment_id: str, req: HintRequest, request: Request):
    hint = await _studio(request).get_hint(
        assignment_id, req.sql, HintLevel.parse(req.hint_level)
    )
    if hint is None:
        raise HTTPException(status_code=404, detail="Assignment not found")
    return hint


def create_app(studio: Optional[Studio] = None, config: Optional[StudioConfig] = None) -> FastAPI:
    """
    Builds the app. Without an explicit studio one is created from the
    environment at startup and closed at shutdown.
    """
    if config is None:
        config = studio.config if studio is not None else StudioConfig.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = studio is None
        app.state.studio = studio or Studio(config)
        if not await app.state.studio.pool.ping():
            logger.warning("PostgreSQL sandbox connection test failed")
        yield
        if owned:
            logger.info("Shutting down")
            await app.state.studio.aclose()

    app = FastAPI(
        title="SQL Studio API",
        description="Sandboxed SQL execution and hints for SQL assignments",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[config.frontend_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health(request: Request):
        return await _studio(request).health()

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}")
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    app.include_router(router)
    return app


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=logging.INFO)
    uvicorn.run(create_app(), host="0.0.0.0", port=4000)
