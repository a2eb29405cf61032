"""
Reel Service

Builds the long-lived collaborators once (browser pool, API clients,
pipeline, queue) and exposes submit() as the single entry point for
processing a post URL.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import requests

from app.services.reel_processor import ReelProcessor
from core.browser_pool import BrowserPool
from core.claude_client import ClaudeClient
from core.config import Config
from core.models import StructuredKnowledgeArtifact
from core.processing_queue import ProcessingQueue
from core.storage_manager import StorageManager
from fetchers.media_fetcher import MediaFetcher
from processors.audio_extractor import AudioExtractor
from processors.caption_analyzer import CaptionAnalyzer
from processors.entity_extractor import EntityExtractor
from processors.file_transcriber import AudioTranscriber
from processors.frame_extractor import FrameExtractor
from processors.frame_ocr import FrameOCRProcessor
from processors.summarizer import Summarizer
from processors.thumbnail_generator import ThumbnailGenerator
from processors.video_downloader import VideoDownloader

logger = logging.getLogger(__name__)


class ReelService:
    """Owns the pool, queue and pipeline for the lifetime of the process"""

    def __init__(self, pool: BrowserPool, processor: ReelProcessor,
                 queue: Optional[ProcessingQueue] = None):
        self.pool = pool
        self.processor = processor
        self.queue = queue or ProcessingQueue(processor)

    @classmethod
    def from_config(cls, temp_dir: Optional[Path] = None) -> 'ReelService':
        """
        Wire every collaborator from environment configuration

        Storage-backed stages (OCR, thumbnail) are left out with a warning
        when Supabase or OpenAI credentials are missing; the core pipeline
        still needs Anthropic and Deepgram keys.
        """
        session = requests.Session()
        session.headers.update(Config.get_default_headers())

        pool = BrowserPool()
        claude = ClaudeClient()

        storage = None
        try:
            storage = StorageManager()
        except ValueError as e:
            logger.warning(f"⚠️ Storage not configured, OCR and thumbnails disabled: {e}")

        ocr_processor = None
        if storage is not None:
            try:
                ocr_processor = FrameOCRProcessor(storage)
            except ValueError as e:
                logger.warning(f"⚠️ OCR disabled: {e}")

        processor = ReelProcessor(
            fetcher=MediaFetcher.from_config(pool, session=session),
            downloader=VideoDownloader(session=session),
            audio_extractor=AudioExtractor(),
            transcriber=AudioTranscriber(),
            summarizer=Summarizer(claude),
            frame_extractor=FrameExtractor(),
            thumbnail_generator=ThumbnailGenerator(storage) if storage is not None else None,
            ocr_processor=ocr_processor,
            caption_analyzer=CaptionAnalyzer(claude),
            entity_extractor=EntityExtractor(claude),
            storage=storage,
            temp_dir=temp_dir or Config.get_temp_dir(),
        )
        return cls(pool, processor)

    async def submit(self, url: str, requester: str = "anonymous",
                     event_emitter=None) -> StructuredKnowledgeArtifact:
        """Queue a URL and wait for its artifact"""
        if event_emitter is not None:
            status = self.queue.get_status()
            await event_emitter.emit('queued', {
                'position': status['queue_length'] + (1 if status['processing'] else 0) + 1,
            })
        return await self.queue.submit(url, requester=requester, event_emitter=event_emitter)

    def get_status(self) -> Dict[str, Any]:
        return {
            'queue': self.queue.get_status(),
            'browser': self.pool.get_status(),
        }

    async def shutdown(self) -> None:
        await self.queue.close()
        await self.pool.shutdown()
