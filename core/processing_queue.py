"""
Processing Queue

Serializes pipeline runs process-wide. Submissions are served strictly in
arrival order, one at a time, with a short pause after every run so memory
from the previous run can be reclaimed before the next starts.
"""

import asyncio
import logging
import secrets
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Deque, Dict, Optional

from core.config import Config

logger = logging.getLogger(__name__)


@dataclass
class QueueItem:
    """A pending request and the future its submitter awaits"""
    id: str
    url: str
    future: asyncio.Future
    submitted_at: float = field(default_factory=time.time)
    options: Dict[str, Any] = field(default_factory=dict)


class ProcessingQueue:
    """Single-slot FIFO in front of the pipeline"""

    def __init__(self, processor: Callable[..., Awaitable[Any]],
                 pause_between_runs: float = Config.QUEUE_PAUSE_BETWEEN_RUNS):
        """
        Args:
            processor: Coroutine function that runs the pipeline for one URL;
                called as processor(url, **options)
            pause_between_runs: Seconds to wait after each run before the next
        """
        self._processor = processor
        self.pause_between_runs = pause_between_runs
        self._items: Deque[QueueItem] = deque()
        self._current: Optional[QueueItem] = None
        self._worker: Optional[asyncio.Task] = None
        self.completed_count = 0

    @property
    def is_processing(self) -> bool:
        return self._current is not None

    def __len__(self) -> int:
        return len(self._items)

    async def submit(self, url: str, requester: str = "anonymous", **options: Any) -> Any:
        """
        Queue a URL and wait for its result

        Args:
            url: Post URL to process
            requester: Identifier used in the queue item id
            **options: Extra keyword arguments passed through to the processor

        Returns:
            Whatever the processor returns for this URL

        Raises:
            Whatever the processor raised for this URL
        """
        loop = asyncio.get_running_loop()
        item = QueueItem(
            id=f"{requester}_{int(time.time() * 1000)}_{secrets.token_hex(3)}",
            url=url,
            future=loop.create_future(),
            options=options,
        )
        self._items.append(item)

        position = len(self._items) + (1 if self.is_processing else 0)
        logger.info(f"📥 [QUEUE] Added {item.id} (position {position})")

        self._ensure_worker()
        return await item.future

    def _ensure_worker(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._drain())

    async def _drain(self) -> None:
        while self._items:
            item = self._items.popleft()
            if item.future.done():
                # Submitter stopped waiting before the run started
                logger.info(f"⏭️ [QUEUE] Skipping {item.id}, no longer awaited")
                continue

            self._current = item
            started = time.time()
            logger.info(f"▶️ [QUEUE] Processing {item.id}: {item.url} ({len(self._items)} waiting)")

            try:
                result = await self._processor(item.url, **item.options)
            except Exception as e:
                logger.error(f"❌ [QUEUE] {item.id} failed after {time.time() - started:.1f}s: {e}")
                if not item.future.done():
                    item.future.set_exception(e)
            else:
                logger.info(f"✅ [QUEUE] {item.id} completed in {time.time() - started:.1f}s")
                if not item.future.done():
                    item.future.set_result(result)
            finally:
                self._current = None
                self.completed_count += 1

            await asyncio.sleep(self.pause_between_runs)

    def get_status(self) -> Dict[str, Any]:
        current = None
        if self._current is not None:
            current = {'id': self._current.id, 'url': self._current.url}
        return {
            'queue_length': len(self._items),
            'processing': self.is_processing,
            'current_item': current,
        }

    async def close(self) -> None:
        """Stop the worker and fail everything still waiting"""
        worker, self._worker = self._worker, None
        if self._current is not None:
            self._items.appendleft(self._current)
        if worker is not None and not worker.done():
            worker.cancel()
            try:
                await worker
            except asyncio.CancelledError:
                pass

        while self._items:
            item = self._items.popleft()
            if not item.future.done():
                item.future.set_exception(RuntimeError("Processing queue closed"))
        self._current = None
