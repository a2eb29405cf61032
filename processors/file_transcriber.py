#!/usr/bin/env python3
"""
Audio Transcriber
Transcribes extracted reel audio using the DeepGram API with Braintrust logging
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional

import braintrust
from deepgram import DeepgramClient

from core.config import Config
from core.errors import TranscriptionError
from core.models import AudioArtifact, Transcript

logger = logging.getLogger(__name__)


class AudioTranscriber:
    """Speech-to-text for extracted audio; failures abort the run"""

    def __init__(self, client: Optional[DeepgramClient] = None, model: str = Config.DEEPGRAM_MODEL):
        self.model = model

        api_keys = Config.get_api_keys()
        if api_keys.get('braintrust'):
            try:
                braintrust.login()
                logger.info("✅ Braintrust initialized successfully")
            except Exception as e:
                logger.warning(f"⚠️ Braintrust failed to initialize: {e}")
                logger.warning("⚠️ Continuing without Braintrust logging")

        if client is not None:
            self.client = client
            return

        api_key = api_keys.get('deepgram')
        if not api_key:
            raise ValueError("DeepGram API key not found. Please set DEEPGRAM_API_KEY environment variable")
        self.client = DeepgramClient(api_key=api_key)
        logger.info("✅ DeepGram client initialized successfully")

    async def transcribe(self, audio: AudioArtifact) -> Transcript:
        """Transcribe an audio artifact without blocking the event loop"""
        return await asyncio.to_thread(self.transcribe_file, audio.artifact.identifier, audio.duration)

    @braintrust.traced
    def transcribe_file(self, audio_path: str, duration_hint: Optional[float] = None) -> Transcript:
        """
        Transcribe an audio file

        Args:
            audio_path: Path to the audio file
            duration_hint: Duration from ffprobe, used when the service reports none

        Returns:
            Transcript with full text and measured duration

        Raises:
            TranscriptionError: Missing/empty file or service failure
        """
        path = Path(audio_path)
        if not path.exists() or path.stat().st_size == 0:
            raise TranscriptionError("Audio file is empty or missing", details={'path': str(path)})

        with open(path, "rb") as audio_file:
            buffer_data = audio_file.read()

        options = {
            "model": self.model,
            "smart_format": True,
            "punctuate": True,
            "detect_language": True,
        }

        braintrust.current_span().log(
            input={
                "file_path": str(path),
                "file_size_mb": len(buffer_data) / 1024 / 1024,
                "options": options
            },
            metadata={
                "provider": "deepgram",
                "model": self.model
            }
        )

        logger.info(f"📡 [TRANSCRIBE] Sending {len(buffer_data) / 1024 / 1024:.1f}MB to DeepGram...")
        try:
            response = self.client.listen.v1.media.transcribe_file(
                request=buffer_data,
                **options
            )
        except Exception as e:
            logger.error(f"❌ [TRANSCRIBE] DeepGram request failed: {e}")
            raise TranscriptionError(f"Transcription service failed: {e}") from e

        try:
            channel = response.results.channels[0]
            alternative = channel.alternatives[0]
        except (AttributeError, IndexError, TypeError) as e:
            raise TranscriptionError("Transcription response had no results") from e

        text = (alternative.transcript or "").strip()
        words = getattr(alternative, 'words', None) or []

        duration = getattr(getattr(response, 'metadata', None), 'duration', None)
        if not duration and words:
            duration = words[-1].end
        if not duration:
            duration = duration_hint or 0.0

        language = getattr(channel, 'detected_language', None)

        if not text:
            logger.warning("⚠️ [TRANSCRIBE] No speech detected in audio")
        else:
            logger.info(f"✅ [TRANSCRIBE] {len(text)} chars, {duration:.1f}s")

        braintrust.current_span().log(
            output={
                "transcript_length": len(text),
                "duration": duration,
                "language": language,
            }
        )

        return Transcript(text=text, duration=float(duration), language=language)
