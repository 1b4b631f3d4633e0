"""FastAPI application setup for ragdesk."""

from __future__ import annotations

import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ragdesk.api.dependencies import (
    get_app_settings,
    get_database,
    get_embedding_model,
    get_ingest_pipeline,
    get_object_store,
    get_retrieval_service,
)
from ragdesk.api.routes_admin import router as admin_router
from ragdesk.api.routes_ingest import router as ingest_router
from ragdesk.api.routes_query import router as query_router
from ragdesk.core.errors import (
    DependencyError,
    EmptyContentError,
    ExtractionError,
    InvalidFileError,
    NotFoundError,
    RagdeskError,
    RateLimitExceededError,
)
from ragdesk.core.logging import configure_logging, get_logger
from ragdesk.core.metrics import REQUEST_COUNT, REQUEST_LATENCY

configure_logging()
logger = get_logger(__name__)

_STATUS_BY_ERROR: dict[type[RagdeskError], int] = {
    InvalidFileError: 400,
    ExtractionError: 422,
    EmptyContentError: 422,
    NotFoundError: 404,
    RateLimitExceededError: 429,
    DependencyError: 502,
}

app = FastAPI(
    title="ragdesk",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://127.0.0.1:3000",
        "http://localhost:3000",
    ],
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

app.include_router(ingest_router, prefix="/upload", tags=["ingest"])
app.include_router(query_router, prefix="", tags=["query"])
app.include_router(admin_router, prefix="", tags=["admin"])


@app.middleware("http")
async def record_request_metrics(request: Request, call_next):
    start_time = time.perf_counter()
    response = await call_next(request)
    route = request.scope.get("route")
    endpoint = getattr(route, "path", request.url.path)
    REQUEST_LATENCY.labels(endpoint=endpoint, method=request.method).observe(time.perf_counter() - start_time)
    REQUEST_COUNT.labels(endpoint=endpoint, method=request.method, status=str(response.status_code)).inc()
    return response


@app.exception_handler(RagdeskError)
async def handle_ragdesk_error(request: Request, exc: RagdeskError) -> JSONResponse:
    status_code = next(
        (code for error_type, code in _STATUS_BY_ERROR.items() if isinstance(exc, error_type)),
        500,
    )
    headers: dict[str, str] = {}
    if isinstance(exc, RateLimitExceededError):
        headers = {
            "Retry-After": str(exc.retry_after),
            "X-RateLimit-Remaining": "0",
            "X-RateLimit-Reset": str(int(exc.reset_at)),
        }
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status_code, content=exc.to_dict(), headers=headers)


@app.on_event("startup")
async def startup() -> None:
    """Warm up core singletons on startup."""
    get_app_settings()
    get_database()
    get_embedding_model()
    get_object_store()
    get_ingest_pipeline()
    get_retrieval_service()


@app.get("/health", tags=["admin"])
def health() -> dict[str, bool]:
    """Simple liveness check."""
    return {"ok": True}
