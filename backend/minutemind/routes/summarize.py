"""
Meeting transcript summarization endpoint.

Endpoint: POST /api/summarize
Request: { "transcript": "...", "prompt": "Summarize:" }
Response: { "summary": "..." }
"""
from fastapi import APIRouter, Depends

from minutemind.models.summary import SummarizeRequest, SummarizeResponse
from minutemind.services.summary_service import SummaryService, get_summary_service

router = APIRouter()


@router.post("/summarize", response_model=SummarizeResponse)
async def summarize(
    request: SummarizeRequest,
    summary_service: SummaryService = Depends(get_summary_service),
):
    """Summarize a meeting transcript. Failures are returned as { error }."""
    summary = await summary_service.summarize(request.transcript, request.prompt)
    return SummarizeResponse(summary=summary)
