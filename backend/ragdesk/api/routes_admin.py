"""Administrative routes for ragdesk."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response

from ragdesk.api.dependencies import get_ingest_pipeline, get_resource_store, rate_limit
from ragdesk.core.metrics import metrics_response
from ragdesk.db.resources import ResourceStore
from ragdesk.ingest.pipeline import IngestPipeline
from ragdesk.models.dto import (
    DeleteResponse,
    Pagination,
    ResourceListItem,
    ResourceListResponse,
    StatusUpdateRequest,
    StatusUpdateResponse,
)
from ragdesk.models.entities import ResourceStatus

router = APIRouter(dependencies=[Depends(rate_limit("admin"))])


@router.get("/resources", response_model=ResourceListResponse, summary="List ingested resources")
async def list_resources(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    include_stats: bool = Query(default=False),
    store: ResourceStore = Depends(get_resource_store),
) -> ResourceListResponse:
    offset = (page - 1) * limit
    rows = store.list_resources(limit=limit, offset=offset)
    return ResourceListResponse(
        resources=[ResourceListItem(**resource.to_dict(), chunk_count=count) for resource, count in rows],
        pagination=Pagination(page=page, limit=limit, offset=offset),
        stats=store.stats() if include_stats else None,
    )


@router.patch("/resources/{resource_id}", response_model=StatusUpdateResponse, summary="Change a resource status")
async def update_resource_status(
    resource_id: str,
    request: StatusUpdateRequest,
    pipeline: IngestPipeline = Depends(get_ingest_pipeline),
) -> StatusUpdateResponse:
    resource = pipeline.set_status(resource_id, ResourceStatus(request.status))
    return StatusUpdateResponse(resource=resource.to_dict())


@router.delete("/resources/{resource_id}", response_model=DeleteResponse, summary="Delete a resource")
async def delete_resource(
    resource_id: str,
    pipeline: IngestPipeline = Depends(get_ingest_pipeline),
) -> DeleteResponse:
    pipeline.delete_resource(resource_id)
    return DeleteResponse()


@router.get("/resources/{resource_id}/file", summary="Download the original PDF")
async def download_resource(
    resource_id: str,
    pipeline: IngestPipeline = Depends(get_ingest_pipeline),
) -> Response:
    data, file_name = pipeline.load_source(resource_id)
    return Response(
        content=data,
        media_type="application/pdf",
        headers={"Content-Disposition": f'inline; filename="{file_name}"'},
    )


@router.get("/metrics", summary="Prometheus metrics")
async def get_metrics():
    return metrics_response()


__all__ = ["router"]
