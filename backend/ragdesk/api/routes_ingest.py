"""PDF upload API routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, File, Form, UploadFile

from ragdesk.api.dependencies import get_app_settings, get_ingest_pipeline, rate_limit
from ragdesk.core.config import Settings
from ragdesk.core.errors import InvalidFileError
from ragdesk.ingest.pipeline import IngestPipeline
from ragdesk.models.dto import (
    DeleteResponse,
    ResourceStatusResponse,
    UploadResponse,
    UploadResult,
)

router = APIRouter()

PDF_MIME = "application/pdf"


@router.post(
    "/pdf",
    response_model=UploadResponse,
    summary="Upload and ingest a PDF",
    dependencies=[Depends(rate_limit("upload"))],
)
async def upload_pdf(
    file: UploadFile = File(...),
    title: str | None = Form(default=None),
    lang: str | None = Form(default=None),
    created_by: str | None = Form(default=None),
    pipeline: IngestPipeline = Depends(get_ingest_pipeline),
    settings: Settings = Depends(get_app_settings),
) -> UploadResponse:
    if file.content_type != PDF_MIME:
        raise InvalidFileError("Only PDF files are allowed", stage="validate")
    data = await file.read(settings.max_upload_bytes + 1)
    if len(data) > settings.max_upload_bytes:
        limit_mb = settings.max_upload_bytes // (1024 * 1024)
        raise InvalidFileError(f"File size must be less than {limit_mb}MB", stage="validate")
    result = pipeline.process_pdf(
        data,
        file.filename or "upload.pdf",
        title=title or None,
        lang=lang or "en",
        created_by=created_by or None,
    )
    message = "PDF already ingested" if result.duplicate else "PDF processed successfully"
    return UploadResponse(message=message, data=UploadResult(**result.to_dict()))


@router.get("/pdf/{resource_id}", response_model=ResourceStatusResponse, summary="Ingest progress for a resource")
async def resource_status(
    resource_id: str,
    pipeline: IngestPipeline = Depends(get_ingest_pipeline),
) -> ResourceStatusResponse:
    report = pipeline.get_resource_status(resource_id)
    return ResourceStatusResponse(data=report.to_dict())


@router.delete("/pdf/{resource_id}", response_model=DeleteResponse, summary="Delete a resource and its chunks")
async def delete_pdf(
    resource_id: str,
    pipeline: IngestPipeline = Depends(get_ingest_pipeline),
) -> DeleteResponse:
    pipeline.delete_resource(resource_id)
    return DeleteResponse()
