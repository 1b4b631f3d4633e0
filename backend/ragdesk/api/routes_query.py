"""Query API routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from ragdesk.api.dependencies import get_retrieval_service, rate_limit
from ragdesk.models.dto import QueryRequest, QueryResponse, RelevantChunk
from ragdesk.retrieval.search import RetrievalService, as_payload

router = APIRouter()


@router.post(
    "/query",
    response_model=QueryResponse,
    summary="Find stored chunks relevant to a question",
    dependencies=[Depends(rate_limit("query"))],
)
async def run_query(
    request: QueryRequest,
    service: RetrievalService = Depends(get_retrieval_service),
) -> QueryResponse:
    results = service.find_relevant_content(request.query)
    return QueryResponse(results=[RelevantChunk(**as_payload(result)) for result in results])
