"""Shared FastAPI dependencies."""

from __future__ import annotations

import time
from functools import lru_cache
from typing import Callable

from fastapi import Request, Response

from ragdesk.core.config import Settings, get_settings
from ragdesk.core.errors import RateLimitExceededError
from ragdesk.core.metrics import RATE_LIMITED
from ragdesk.core.ratelimit import RateLimitConfig, RateLimiter
from ragdesk.db.resources import ResourceStore
from ragdesk.db.sqlite import SQLiteDatabase
from ragdesk.ingest.embeddings import EmbeddingModel, build_embedding_model
from ragdesk.ingest.pipeline import IngestPipeline
from ragdesk.retrieval import RetrievalService, VectorIndex
from ragdesk.storage.objects import LocalObjectStore, ObjectStore

_DB: SQLiteDatabase | None = None
_EMBEDDING_MODEL: EmbeddingModel | None = None
_OBJECT_STORE: ObjectStore | None = None
_PIPELINE: IngestPipeline | None = None
_RETRIEVAL: RetrievalService | None = None
_RATE_LIMITER: RateLimiter | None = None


@lru_cache(maxsize=1)
def get_app_settings() -> Settings:
    return get_settings()


def get_database() -> SQLiteDatabase:
    global _DB
    if _DB is None:
        settings = get_app_settings()
        db = SQLiteDatabase(settings.db_path)
        db.ensure_schema()
        _DB = db
    return _DB


def get_resource_store() -> ResourceStore:
    return ResourceStore(get_database())


def get_embedding_model() -> EmbeddingModel:
    global _EMBEDDING_MODEL
    if _EMBEDDING_MODEL is None:
        _EMBEDDING_MODEL = build_embedding_model(get_app_settings())
    return _EMBEDDING_MODEL


def get_object_store() -> ObjectStore:
    global _OBJECT_STORE
    if _OBJECT_STORE is None:
        _OBJECT_STORE = LocalObjectStore(get_app_settings().storage_dir)
    return _OBJECT_STORE


def get_ingest_pipeline() -> IngestPipeline:
    global _PIPELINE
    if _PIPELINE is None:
        _PIPELINE = IngestPipeline(
            database=get_database(),
            settings=get_app_settings(),
            object_store=get_object_store(),
            embedding_model=get_embedding_model(),
        )
    return _PIPELINE


def get_retrieval_service() -> RetrievalService:
    global _RETRIEVAL
    if _RETRIEVAL is None:
        settings = get_app_settings()
        embedding_model = get_embedding_model()
        _RETRIEVAL = RetrievalService.from_settings(
            settings,
            vector_index=VectorIndex(get_database(), dim=embedding_model.dim),
            embedding_model=embedding_model,
        )
    return _RETRIEVAL


def get_rate_limiter() -> RateLimiter:
    global _RATE_LIMITER
    if _RATE_LIMITER is None:
        _RATE_LIMITER = RateLimiter()
    return _RATE_LIMITER


def client_identifier(request: Request) -> str:
    """Identify the caller: an explicit user header, else the client address."""
    user_id = request.headers.get("X-User-Id")
    if user_id:
        return f"user:{user_id}"
    host = request.client.host if request.client else "unknown"
    return f"ip:{host}"


def rate_limit(scope: str) -> Callable[[Request, Response], None]:
    """Build a dependency enforcing the ``rate_limit_<scope>`` setting."""

    def dependency(request: Request, response: Response) -> None:
        settings = get_app_settings()
        config = RateLimitConfig.parse(getattr(settings, f"rate_limit_{scope}"))
        result = get_rate_limiter().check(f"{scope}:{client_identifier(request)}", config)
        if not result.allowed:
            RATE_LIMITED.labels(scope=scope).inc()
            raise RateLimitExceededError(
                "Too many requests, please try again later",
                reset_at=result.reset_at,
                retry_after=result.retry_after(time.time()),
            )
        response.headers.update(result.headers())

    return dependency


def reset_singletons() -> None:
    global _DB, _EMBEDDING_MODEL, _OBJECT_STORE, _PIPELINE, _RETRIEVAL, _RATE_LIMITER
    if _DB is not None:
        _DB.close()
    get_app_settings.cache_clear()
    get_settings.cache_clear()
    _DB = None
    _EMBEDDING_MODEL = None
    _OBJECT_STORE = None
    _PIPELINE = None
    _RETRIEVAL = None
    _RATE_LIMITER = None


__all__ = [
    "get_app_settings",
    "get_database",
    "get_resource_store",
    "get_embedding_model",
    "get_object_store",
    "get_ingest_pipeline",
    "get_retrieval_service",
    "get_rate_limiter",
    "rate_limit",
    "reset_singletons",
]
