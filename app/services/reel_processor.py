#!/usr/bin/env python3
"""
Reel Processor

Runs one post URL through the full pipeline:

    fetch → download → audio → frames → thumbnail → transcribe → OCR
          → caption → merge → entities → summarize

Fetch, download, audio extraction, transcription, merging and
summarization are load-bearing; a failure there stops the run with a
PipelineError naming the step. Frames, thumbnail, OCR, caption analysis and
entity extraction are best-effort and only degrade the result.

Every temporary file and transient upload is registered with an
ArtifactTracker and deleted when the run ends, whatever the outcome.
"""

import asyncio
import logging
import secrets
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Dict, List, Optional

from core.artifacts import ArtifactTracker
from core.config import Config
from core.errors import PipelineError, SummarizationError, SummarizationFailure, describe_error
from core.models import (
    CaptionAnalysis, Entity, FrameSample, MediaReference, ModalityText, SourceType,
    StageOutcome, StructuredKnowledgeArtifact
)
from processors.caption_analyzer import caption_to_entities
from processors.entity_extractor import build_visual_insights, categorize, deduplicate
from processors.frame_extractor import determine_sample_timestamps
from processors.multimodal_merger import create_multimodal_prompt, merge_modalities

logger = logging.getLogger(__name__)


class PipelineStep(str, Enum):
    FETCHING = "fetching"
    DOWNLOADING = "downloading"
    EXTRACTING_AUDIO = "extracting_audio"
    EXTRACTING_FRAMES = "extracting_frames"
    GENERATING_THUMBNAIL = "generating_thumbnail"
    TRANSCRIBING = "transcribing"
    RUNNING_OCR = "running_ocr"
    ANALYZING_CAPTION = "analyzing_caption"
    MERGING = "merging"
    EXTRACTING_ENTITIES = "extracting_entities"
    SUMMARIZING = "summarizing"
    DONE = "done"
    FAILED = "failed"


# Key used for each step in the timings dict
TIMING_KEYS = {
    PipelineStep.FETCHING: 'fetch_ms',
    PipelineStep.DOWNLOADING: 'download_ms',
    PipelineStep.EXTRACTING_AUDIO: 'audio_extract_ms',
    PipelineStep.EXTRACTING_FRAMES: 'frame_extraction_ms',
    PipelineStep.GENERATING_THUMBNAIL: 'thumbnail_ms',
    PipelineStep.TRANSCRIBING: 'transcription_ms',
    PipelineStep.RUNNING_OCR: 'ocr_ms',
    PipelineStep.ANALYZING_CAPTION: 'caption_ms',
    PipelineStep.MERGING: 'merge_ms',
    PipelineStep.EXTRACTING_ENTITIES: 'entity_extraction_ms',
    PipelineStep.SUMMARIZING: 'summarization_ms',
}


def new_run_id() -> str:
    return f"{int(time.time() * 1000)}_{secrets.token_hex(3)}"


@dataclass
class PipelineRun:
    """Mutable state of one run"""
    run_id: str
    url: str
    step: PipelineStep = PipelineStep.FETCHING
    failed_step: Optional[PipelineStep] = None
    timings: Dict[str, int] = field(default_factory=dict)
    degraded: List[str] = field(default_factory=list)
    started: float = field(default_factory=time.monotonic)

    def record(self, step: PipelineStep, started: float) -> int:
        elapsed_ms = int((time.monotonic() - started) * 1000)
        self.timings[TIMING_KEYS[step]] = elapsed_ms
        return elapsed_ms

    def total_ms(self) -> int:
        return int((time.monotonic() - self.started) * 1000)


class ReelProcessor:
    """
    Pipeline orchestrator

    All collaborators are injected so one set of long-lived clients (and the
    shared browser pool behind the fetcher) serves every run. Optional
    collaborators may be None, in which case their stage is reported as
    degraded.
    """

    def __init__(
        self,
        fetcher,
        downloader,
        audio_extractor,
        transcriber,
        summarizer,
        frame_extractor=None,
        thumbnail_generator=None,
        ocr_processor=None,
        caption_analyzer=None,
        entity_extractor=None,
        storage=None,
        temp_dir=None,
        frame_max_count: Optional[int] = None,
    ):
        self.fetcher = fetcher
        self.downloader = downloader
        self.audio_extractor = audio_extractor
        self.transcriber = transcriber
        self.summarizer = summarizer
        self.frame_extractor = frame_extractor
        self.thumbnail_generator = thumbnail_generator
        self.ocr_processor = ocr_processor
        self.caption_analyzer = caption_analyzer
        self.entity_extractor = entity_extractor
        self.storage = storage
        self.temp_dir = temp_dir
        self.frame_max_count = frame_max_count or Config.get_frame_max_count()

    async def __call__(self, url: str, **options: Any) -> StructuredKnowledgeArtifact:
        return await self.process(url, **options)

    async def _emit(self, emitter, event_type: str, data: Optional[Dict[str, Any]] = None) -> None:
        if emitter is None:
            return
        try:
            await emitter.emit(event_type, data or {})
        except Exception as e:
            logger.warning(f"⚠️ [PIPELINE] Could not emit {event_type}: {e}")

    async def _required(self, run: PipelineRun, step: PipelineStep, work: Awaitable, emitter=None):
        """Run a load-bearing step; any failure becomes PipelineError(step, cause)"""
        run.step = step
        await self._emit(emitter, 'step_started', {'step': step.value})
        started = time.monotonic()
        try:
            result = await work
        except Exception as e:
            elapsed = run.record(step, started)
            run.failed_step = step
            logger.error(f"❌ [PIPELINE] {step.value} failed after {elapsed}ms: {describe_error(e)}")
            raise PipelineError(step.value, e) from e

        elapsed = run.record(step, started)
        await self._emit(emitter, 'step_completed', {'step': step.value, 'duration_ms': elapsed})
        return result

    async def _best_effort(self, run: PipelineRun, step: PipelineStep, work: Optional[Awaitable],
                           fallback: Any, emitter=None) -> StageOutcome:
        """Run a non-fatal step; failures are logged and replaced by the fallback"""
        run.step = step
        if work is None:
            run.degraded.append(step.value)
            logger.info(f"⏭️ [PIPELINE] {step.value} skipped (not configured)")
            return StageOutcome.degraded(fallback)

        await self._emit(emitter, 'step_started', {'step': step.value})
        started = time.monotonic()
        try:
            result = await work
        except Exception as e:
            elapsed = run.record(step, started)
            run.degraded.append(step.value)
            logger.warning(f"⚠️ [PIPELINE] {step.value} degraded after {elapsed}ms: {describe_error(e)}")
            await self._emit(emitter, 'step_degraded', {'step': step.value, 'message': str(e)})
            return StageOutcome.degraded(fallback, e)

        elapsed = run.record(step, started)
        await self._emit(emitter, 'step_completed', {'step': step.value, 'duration_ms': elapsed})
        return StageOutcome.ok(result)

    async def process(self, url: str, event_emitter=None) -> StructuredKnowledgeArtifact:
        """
        Process one post URL end to end

        Args:
            url: Post URL
            event_emitter: Optional ProcessingEventEmitter for progress events

        Returns:
            StructuredKnowledgeArtifact

        Raises:
            PipelineError: A load-bearing step failed; .step names it and
                .root_cause holds the classified error
        """
        run = PipelineRun(run_id=new_run_id(), url=url)
        logger.info(f"🎬 [PIPELINE] Run {run.run_id} started for {url}")
        await self._emit(event_emitter, 'started', {'url': url, 'run_id': run.run_id})

        try:
            async with ArtifactTracker(run.run_id, storage=self.storage, base_dir=self.temp_dir) as tracker:
                artifact = await self._run(run, tracker, event_emitter)
        except PipelineError:
            run.step = PipelineStep.FAILED
            logger.error(f"❌ [PIPELINE] Run {run.run_id} failed at "
                         f"{run.failed_step.value if run.failed_step else 'unknown'} "
                         f"after {run.total_ms()}ms")
            raise

        run.step = PipelineStep.DONE
        run.timings['total_ms'] = run.total_ms()
        artifact.timings = dict(run.timings)
        logger.info(f"✅ [PIPELINE] Run {run.run_id} done in {run.timings['total_ms']}ms"
                    + (f" (degraded: {', '.join(run.degraded)})" if run.degraded else ""))
        return artifact

    async def _run(self, run: PipelineRun, tracker: ArtifactTracker, emitter) -> StructuredKnowledgeArtifact:
        media: MediaReference = await self._required(
            run, PipelineStep.FETCHING, self.fetcher.fetch(run.url), emitter
        )
        logger.info(f"📦 [PIPELINE] Media resolved via {media.strategy}")

        # Registered before the transfer so a partial file is still cleaned up
        video_path = tracker.path_for("video.mp4")
        tracker.local(video_path, producer="download")
        video = await self._required(
            run, PipelineStep.DOWNLOADING, self.downloader.download(media.video_url, video_path), emitter
        )

        audio = await self._required(
            run, PipelineStep.EXTRACTING_AUDIO,
            self.audio_extractor.extract_audio(video, output_dir=tracker.run_dir), emitter
        )
        tracker.register(audio.artifact)

        duration = media.duration or audio.duration or Config.DEFAULT_DURATION_SECONDS

        frames_outcome = await self._best_effort(
            run, PipelineStep.EXTRACTING_FRAMES,
            self._extract_frames(video.identifier, duration, tracker) if self.frame_extractor else None,
            [], emitter
        )
        frames: List[FrameSample] = frames_outcome.value

        thumbnail_outcome = await self._best_effort(
            run, PipelineStep.GENERATING_THUMBNAIL,
            self.thumbnail_generator.generate(video.identifier, tracker.run_dir, run.run_id, duration)
            if self.thumbnail_generator else None,
            None, emitter
        )

        transcript = await self._required(
            run, PipelineStep.TRANSCRIBING, self.transcriber.transcribe(audio), emitter
        )

        ocr_outcome = await self._best_effort(
            run, PipelineStep.RUNNING_OCR,
            self._run_ocr(frames, run.run_id, tracker) if self.ocr_processor and frames else None,
            [], emitter
        )
        frame_texts: List[ModalityText] = ocr_outcome.value

        caption_outcome = await self._best_effort(
            run, PipelineStep.ANALYZING_CAPTION,
            self.caption_analyzer.analyze(media.caption) if self.caption_analyzer and media.caption else None,
            None, emitter
        )
        caption_analysis: Optional[CaptionAnalysis] = caption_outcome.value

        merged = await self._required(
            run, PipelineStep.MERGING,
            self._merge(transcript.text, frame_texts, media), emitter
        )

        entities_outcome = await self._best_effort(
            run, PipelineStep.EXTRACTING_ENTITIES,
            self._extract_entities(transcript.text, frame_texts, media.caption, caption_analysis)
            if self.entity_extractor else None,
            [], emitter
        )
        entities: List[Entity] = entities_outcome.value
        if not self.entity_extractor and caption_analysis:
            entities = deduplicate(caption_to_entities(caption_analysis))
        categorized = categorize(entities)

        summary = await self._required(
            run, PipelineStep.SUMMARIZING,
            self.summarizer.summarize(create_multimodal_prompt(merged, len(frame_texts))), emitter
        )

        return StructuredKnowledgeArtifact(
            source_url=media.source_url,
            media=media,
            summary=summary,
            transcript=transcript.text,
            frame_texts=frame_texts,
            caption_analysis=caption_analysis,
            entities=entities,
            categorized_entities=categorized,
            visual_insights=build_visual_insights(categorized),
            thumbnail_url=thumbnail_outcome.value,
            processing={
                'processing_version': Config.PROCESSING_VERSION,
                'run_id': run.run_id,
                'fetch_strategy': media.strategy,
                'audio_method': audio.method,
                'duration': duration,
                'frame_count': len(frames),
                'ocr_frames': [item.timestamp for item in frame_texts],
                'has_audio_transcript': merged.has_audio_transcript,
                'has_visual_text': merged.has_visual_text,
                'has_metadata': merged.has_metadata,
                'degraded_stages': list(run.degraded),
            },
        )

    async def _extract_frames(self, video_path: str, duration: float,
                              tracker: ArtifactTracker) -> List[FrameSample]:
        timestamps = determine_sample_timestamps(
            duration,
            interval=Config.FRAME_INTERVAL_SECONDS,
            min_frames=Config.FRAME_MIN_COUNT,
            max_frames=self.frame_max_count,
        )
        result = await self.frame_extractor.extract_frames(video_path, timestamps, tracker.path_for("frames"))
        for frame in result.frames:
            tracker.register(frame.artifact)
        return result.frames

    async def _run_ocr(self, frames: List[FrameSample], run_id: str,
                       tracker: ArtifactTracker) -> List[ModalityText]:
        def register(storage_path: str, bucket: str) -> None:
            tracker.remote(storage_path, bucket, producer="ocr_upload")

        uploaded = await self.ocr_processor.upload_frames(frames, run_id, register)
        return await self.ocr_processor.extract_text(uploaded)

    async def _merge(self, transcript: str, frame_texts: List[ModalityText], media: MediaReference):
        merged = merge_modalities(transcript, frame_texts, media.caption, media.title)
        if not merged.text.strip():
            raise SummarizationError("No text was recovered from any modality",
                                     reason=SummarizationFailure.EMPTY_INPUT)
        return merged

    async def _extract_entities(self, transcript: str, frame_texts: List[ModalityText],
                                caption: Optional[str],
                                caption_analysis: Optional[CaptionAnalysis]) -> List[Entity]:
        jobs = [
            self.entity_extractor.extract(item.text, SourceType.VISUAL, item.timestamp)
            for item in frame_texts
        ]
        if transcript:
            jobs.append(self.entity_extractor.extract(transcript, SourceType.AUDIO))
        if caption:
            jobs.append(self.entity_extractor.extract(caption, SourceType.METADATA))

        batches = await asyncio.gather(*jobs)
        entities = [entity for batch in batches for entity in batch]
        if caption_analysis:
            entities.extend(caption_to_entities(caption_analysis))

        return deduplicate(entities)
