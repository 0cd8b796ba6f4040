"""Report API routes"""
import asyncio
import logging
from uuid import uuid4

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, StreamingResponse

from .models import ReportRequest
from .pipeline import ReportPipeline, get_pipeline
from .services.stream_publisher import SSE_HEADERS, StreamPublisher

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ai", tags=["Reports"])

# Running report tasks, kept referenced until they finish
_background_tasks = set()


def _missing_prompt(request: ReportRequest) -> bool:
    return not request.prompt or not request.prompt.strip()


@router.post("/generate-report-stream")
async def generate_report_stream(request: ReportRequest, pipeline: ReportPipeline = Depends(get_pipeline)):
    """
    Generate a report and stream progress as Server-Sent Events.

    Events are ``processing`` milestones followed by either the result
    (chunked when large) or a single ``error`` event.
    """
    if _missing_prompt(request):
        return JSONResponse(status_code=400, content={"error": "Prompt is required"})

    request_id = str(uuid4())
    publisher = StreamPublisher(request_id)
    logger.info(f"[{request_id}] Streaming report for prompt: {request.prompt}")

    task = asyncio.create_task(
        pipeline.generate_report_stream(request.prompt, request.conversationHistory, publisher)
    )
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)

    return StreamingResponse(
        publisher.events(),
        media_type="text/event-stream",
        headers=SSE_HEADERS
    )


@router.post("/generate-report")
async def generate_report(request: ReportRequest, pipeline: ReportPipeline = Depends(get_pipeline)):
    """
    Generate a report and return it in one response.

    Returns:
        Final report result
    """
    if _missing_prompt(request):
        return JSONResponse(status_code=400, content={"error": "Prompt is required"})

    try:
        return await pipeline.generate_report(request.prompt, request.conversationHistory)
    except Exception as e:
        logger.exception("Report generation failed")
        return JSONResponse(
            status_code=500,
            content={"error": "Failed to generate report", "message": str(e)}
        )
