#!/usr/bin/env python3
"""
Audio Extractor

Pulls the audio track out of a downloaded video. A stream copy (no re-encode)
is tried first under a short timeout; if it fails or times out the audio is
re-encoded to MP3 with the fastest settings.
"""

import logging
import os
from pathlib import Path
from typing import Optional

from core.config import Config
from core.errors import AudioExtractionError
from core.models import AudioArtifact, TemporaryArtifact
from processors.ffmpeg_utils import CommandTimeout, probe_duration, run_command

logger = logging.getLogger(__name__)

REENCODE_TIMEOUT = 300


def _non_empty(path: Path) -> bool:
    return path.exists() and path.stat().st_size > 0


def _remove(path: Path) -> None:
    try:
        if path.exists():
            os.unlink(path)
    except OSError as e:
        logger.warning(f"⚠️ [AUDIO] Could not remove partial file {path}: {e}")


class AudioExtractor:
    """Extract audio with ffmpeg: codec copy fast path, MP3 re-encode fallback"""

    def __init__(self, copy_timeout: float = Config.AUDIO_COPY_TIMEOUT,
                 reencode_timeout: float = REENCODE_TIMEOUT):
        self.copy_timeout = copy_timeout
        self.reencode_timeout = reencode_timeout

    def _copy_command(self, video_path: str, output_path: Path) -> list:
        return [
            "ffmpeg", "-y",
            "-i", video_path,
            "-vn",
            "-acodec", "copy",
            str(output_path)
        ]

    def _reencode_command(self, video_path: str, output_path: Path) -> list:
        return [
            "ffmpeg", "-y",
            "-i", video_path,
            "-vn",
            "-acodec", "libmp3lame",
            "-b:a", Config.AUDIO_BITRATE,
            "-ar", str(Config.AUDIO_SAMPLE_RATE),
            "-ac", str(Config.AUDIO_CHANNELS),
            "-threads", "0",
            "-preset", "ultrafast",
            str(output_path)
        ]

    async def extract_audio(self, video: TemporaryArtifact, output_dir: Optional[Path] = None) -> AudioArtifact:
        """
        Extract the audio track from a video file

        Args:
            video: Downloaded video artifact
            output_dir: Directory for the audio file (defaults to the video's directory)

        Returns:
            AudioArtifact with the audio file, its duration and the method used

        Raises:
            AudioExtractionError: Neither path produced a non-empty file
        """
        video_path = video.identifier
        directory = Path(output_dir) if output_dir else Path(video_path).parent
        stem = Path(video_path).stem

        duration = await probe_duration(video_path)
        logger.info(f"🎵 [AUDIO] Extracting audio (duration: {duration or 'unknown'}s)")

        copy_path = directory / f"{stem}_audio.m4a"
        if await self._try_stream_copy(video_path, copy_path):
            logger.info(f"✅ [AUDIO] Stream copy succeeded: {copy_path.stat().st_size / 1024:.0f}KB")
            return AudioArtifact(
                artifact=TemporaryArtifact(identifier=str(copy_path), producer="audio",
                                           size_bytes=copy_path.stat().st_size),
                duration=duration,
                method="copy",
            )

        logger.info("🔁 [AUDIO] Falling back to MP3 re-encode")
        mp3_path = directory / f"{stem}_audio.mp3"
        try:
            returncode, _, stderr = await run_command(
                self._reencode_command(video_path, mp3_path), timeout=self.reencode_timeout
            )
        except (CommandTimeout, FileNotFoundError) as e:
            _remove(mp3_path)
            raise AudioExtractionError(f"Audio re-encode failed: {e}") from e

        if returncode != 0 or not _non_empty(mp3_path):
            _remove(mp3_path)
            error_msg = stderr.decode('utf-8', errors='ignore')[-500:]
            logger.error(f"❌ [AUDIO] Re-encode failed: {error_msg}")
            raise AudioExtractionError("Audio extraction produced no output",
                                       details={'ffmpeg': error_msg[-200:]})

        logger.info(f"✅ [AUDIO] Re-encoded audio: {mp3_path.stat().st_size / 1024:.0f}KB")
        return AudioArtifact(
            artifact=TemporaryArtifact(identifier=str(mp3_path), producer="audio",
                                       size_bytes=mp3_path.stat().st_size),
            duration=duration,
            method="reencode",
        )

    async def _try_stream_copy(self, video_path: str, output_path: Path) -> bool:
        try:
            returncode, _, stderr = await run_command(
                self._copy_command(video_path, output_path), timeout=self.copy_timeout
            )
        except CommandTimeout:
            logger.warning(f"⚠️ [AUDIO] Stream copy timed out after {self.copy_timeout}s")
            _remove(output_path)
            return False
        except FileNotFoundError as e:
            raise AudioExtractionError("ffmpeg is not installed") from e

        if returncode == 0 and _non_empty(output_path):
            return True

        logger.warning(f"⚠️ [AUDIO] Stream copy failed: {stderr.decode('utf-8', errors='ignore')[-200:]}")
        _remove(output_path)
        return False
