"""Pydantic DTOs exposed via API."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

ResourceStatusValue = Literal["processing", "ready", "error", "archived"]


class ResourceResponse(BaseModel):
    id: str
    type: str
    title: str | None = None
    source: str | None = None
    lang: str | None = None
    content_hash: str | None = None
    created_by: str | None = None
    status: ResourceStatusValue
    created_at: datetime
    updated_at: datetime


class UploadResult(BaseModel):
    resource_id: str
    title: str
    chunks_created: int
    embeddings_created: int
    duplicate: bool = False


class UploadResponse(BaseModel):
    success: bool = True
    message: str
    data: UploadResult


class ResourceStatusData(BaseModel):
    resource: ResourceResponse
    chunk_count: int
    embedding_count: int


class ResourceStatusResponse(BaseModel):
    success: bool = True
    data: ResourceStatusData


class DeleteResponse(BaseModel):
    success: bool = True
    message: str = "Resource deleted successfully"


class QueryRequest(BaseModel):
    query: str = Field(min_length=1, description="User question to match against stored chunks")


class RelevantChunk(BaseModel):
    content: str
    similarity: float
    chunk_id: str
    resource_id: str
    chunk_idx: int
    version: int


class QueryResponse(BaseModel):
    results: list[RelevantChunk]


class ResourceListItem(ResourceResponse):
    chunk_count: int


class Pagination(BaseModel):
    page: int
    limit: int
    offset: int


class ResourceListResponse(BaseModel):
    resources: list[ResourceListItem]
    pagination: Pagination
    stats: dict[str, Any] | None = None


class StatusUpdateRequest(BaseModel):
    status: ResourceStatusValue


class StatusUpdateResponse(BaseModel):
    message: str = "Resource updated successfully"
    resource: ResourceResponse


class ErrorResponse(BaseModel):
    error: str
    message: str
    stage: str | None = None


__all__ = [
    "ResourceResponse",
    "UploadResult",
    "UploadResponse",
    "ResourceStatusData",
    "ResourceStatusResponse",
    "DeleteResponse",
    "QueryRequest",
    "RelevantChunk",
    "QueryResponse",
    "ResourceListItem",
    "Pagination",
    "ResourceListResponse",
    "StatusUpdateRequest",
    "StatusUpdateResponse",
    "ErrorResponse",
]
