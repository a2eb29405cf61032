"""
Event Emitter for Server-Sent Events (SSE)

Lets the pipeline publish step transitions for a job; the API streams them
to the client while the job waits in the queue and runs.
"""

import asyncio
import json
import logging
from datetime import datetime
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

HEARTBEAT_SECONDS = 15.0
REGISTRY_TTL_SECONDS = 5.0


class ProcessingEventEmitter:
    """
    Progress events for one processing job, buffered in an asyncio queue
    until the SSE stream consumes them.
    """

    # Global registry of active jobs
    _active_jobs: Dict[str, asyncio.Queue] = {}

    def __init__(self, job_id: str):
        self.job_id = job_id
        self.queue: asyncio.Queue = asyncio.Queue()
        self.start_time = datetime.now()

        ProcessingEventEmitter._active_jobs[job_id] = self.queue
        logger.info(f"📡 [SSE] Created event emitter for job {job_id}")

    async def emit(self, event_type: str, data: Optional[Dict[str, Any]] = None):
        """
        Queue an event for the stream

        Args:
            event_type: Event name (e.g. 'step_started', 'queued')
            data: JSON-serializable payload
        """
        elapsed = (datetime.now() - self.start_time).total_seconds()

        event = {
            'type': event_type,
            'elapsed': int(elapsed),
            'timestamp': datetime.now().isoformat(),
            'data': data or {}
        }

        await self.queue.put(event)
        logger.debug(f"📡 [SSE] Emitted {event_type} for job {self.job_id}")

        # Let the stream consumer run
        await asyncio.sleep(0)

    async def complete(self, result: Optional[Dict[str, Any]] = None):
        """Send the final result and close the stream"""
        await self.emit('complete', {'message': 'Processing finished', 'result': result})
        await self.queue.put(None)
        asyncio.create_task(self._cleanup_after_delay())

    async def error(self, error_payload: Dict[str, Any]):
        await self.emit('error', error_payload)
        await self.queue.put(None)
        asyncio.create_task(self._cleanup_after_delay())

    async def _cleanup_after_delay(self):
        await asyncio.sleep(REGISTRY_TTL_SECONDS)
        if ProcessingEventEmitter._active_jobs.get(self.job_id) is self.queue:
            del ProcessingEventEmitter._active_jobs[self.job_id]
            logger.info(f"📡 [SSE] Cleaned up job {self.job_id}")

    @classmethod
    def has_job(cls, job_id: str) -> bool:
        return job_id in cls._active_jobs

    @classmethod
    async def stream_events(cls, job_id: str):
        """
        Yield sse-starlette event dicts for a job until it completes

        Sends a heartbeat when no event arrives within HEARTBEAT_SECONDS.
        """
        queue = cls._active_jobs.get(job_id)
        if not queue:
            logger.warning(f"📡 [SSE] No active job found for {job_id}")
            yield {
                "event": "error",
                "data": json.dumps({"message": "Job not found"})
            }
            return

        logger.info(f"📡 [SSE] Started streaming events for job {job_id}")
        yield {
            "event": "ping",
            "data": json.dumps({"message": "SSE connection established"})
        }

        while True:
            try:
                event = await asyncio.wait_for(queue.get(), timeout=HEARTBEAT_SECONDS)
            except asyncio.TimeoutError:
                yield {
                    "event": "heartbeat",
                    "data": json.dumps({"timestamp": datetime.now().isoformat()})
                }
                continue

            if event is None:
                logger.info(f"📡 [SSE] Stream closed for job {job_id}")
                break

            yield {
                "event": event['type'],
                "data": json.dumps({
                    'elapsed': event['elapsed'],
                    'timestamp': event['timestamp'],
                    **event['data'],
                }, default=str)
            }
