"""
Reel Processing Routes

Endpoints for processing post URLs and watching the queue.
"""

import asyncio
import logging
import uuid
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel
from sse_starlette.sse import EventSourceResponse

from app.services.reel_service import ReelService
from core.errors import ReelPipelineError
from core.event_emitter import ProcessingEventEmitter
from core.url_utils import validate_post_url

logger = logging.getLogger(__name__)

router = APIRouter()

# Strong references to running background jobs
_background_jobs = set()


class ProcessReelRequest(BaseModel):
    """Request model for processing a reel"""
    url: str
    requester: Optional[str] = None


class ProcessReelStreamResponse(BaseModel):
    """Response model for starting reel processing with SSE"""
    job_id: str
    status: str
    message: str


class QueueStatusResponse(BaseModel):
    queue_length: int
    processing: bool
    current_item: Optional[Dict[str, Any]] = None


class BrowserStatusResponse(BaseModel):
    connected: bool
    launching: bool
    active_pages: int = 0


def get_reel_service(request: Request) -> ReelService:
    service = getattr(request.app.state, 'reel_service', None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Reel service is not initialized"
        )
    return service


@router.post("/reels/process")
async def process_reel(body: ProcessReelRequest, service: ReelService = Depends(get_reel_service)):
    """
    Process a post URL and return the knowledge artifact

    The request waits in the processing queue until its run completes.
    Pipeline failures are turned into JSON error responses by the app's
    exception handlers.
    """
    url = validate_post_url(body.url)
    logger.info(f"📥 Processing request for: {url}")

    artifact = await service.submit(url, requester=body.requester or "api")
    return artifact.to_dict()


@router.post("/reels/process-stream", response_model=ProcessReelStreamResponse)
async def process_reel_stream(body: ProcessReelRequest, service: ReelService = Depends(get_reel_service)):
    """
    Start processing in the background and return a job id

    Progress and the final artifact are delivered on
    GET /api/reels/stream/{job_id}.
    """
    url = validate_post_url(body.url)
    job_id = str(uuid.uuid4())
    emitter = ProcessingEventEmitter(job_id)

    async def run_job():
        try:
            artifact = await service.submit(url, requester=body.requester or "stream", event_emitter=emitter)
        except ReelPipelineError as e:
            logger.error(f"❌ Job {job_id} failed: {e.message}")
            await emitter.error(e.to_dict())
        except Exception as e:
            logger.error(f"❌ Job {job_id} failed unexpectedly: {e}", exc_info=True)
            await emitter.error({'error': 'INTERNAL_ERROR', 'message': str(e)})
        else:
            await emitter.complete(artifact.to_dict())

    task = asyncio.create_task(run_job())
    _background_jobs.add(task)
    task.add_done_callback(_background_jobs.discard)
    logger.info(f"📡 Started streaming job {job_id} for: {url}")

    return ProcessReelStreamResponse(
        job_id=job_id,
        status="queued",
        message="Processing started; subscribe to the stream for progress"
    )


@router.get("/reels/stream/{job_id}")
async def stream_reel_progress(job_id: str):
    """Stream progress events for a job via Server-Sent Events"""
    if not ProcessingEventEmitter.has_job(job_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown job: {job_id}")

    logger.info(f"📡 Starting SSE stream for job: {job_id}")
    return EventSourceResponse(
        ProcessingEventEmitter.stream_events(job_id),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",  # Disable nginx buffering
        }
    )


@router.get("/queue/status", response_model=QueueStatusResponse)
async def queue_status(service: ReelService = Depends(get_reel_service)):
    return service.queue.get_status()


@router.get("/browser/status", response_model=BrowserStatusResponse)
async def browser_status(service: ReelService = Depends(get_reel_service)):
    return service.pool.get_status()
