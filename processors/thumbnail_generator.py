"""
Thumbnail Generator

Captures one frame near the start of the video and stores it as the reel's
thumbnail. The local capture is always removed.
"""

import asyncio
import logging
import os
from pathlib import Path
from typing import Optional, Sequence

from core.config import Config
from core.errors import ThumbnailGenerationError
from core.storage_manager import StorageManager
from processors.ffmpeg_utils import CommandTimeout, run_command

logger = logging.getLogger(__name__)


class ThumbnailGenerator:
    def __init__(self, storage: StorageManager,
                 timestamps: Sequence[float] = Config.THUMBNAIL_TIMESTAMPS,
                 resolution=Config.THUMBNAIL_RESOLUTION):
        self.storage = storage
        self.timestamps = tuple(timestamps)
        self.width, self.height = resolution

    async def generate(self, video_path: str, output_dir: Path, run_id: str,
                       duration: Optional[float] = None) -> str:
        """
        Capture, upload and return the public thumbnail URL

        Raises:
            ThumbnailGenerationError: No capture succeeded or the upload failed
        """
        output_path = Path(output_dir) / f"thumbnail_{run_id}.jpg"
        candidates = [t for t in self.timestamps if duration is None or t < duration] or [0.0]

        try:
            captured_at = None
            for timestamp in candidates:
                if await self._capture(video_path, timestamp, output_path):
                    captured_at = timestamp
                    break

            if captured_at is None:
                raise ThumbnailGenerationError("Could not capture a thumbnail frame",
                                               details={'tried': candidates})

            logger.info(f"🖼️ [THUMBNAIL] Captured frame at {captured_at}s")
            try:
                _, public_url = await asyncio.to_thread(self.storage.upload_thumbnail, str(output_path), run_id)
            except Exception as e:
                raise ThumbnailGenerationError(f"Thumbnail upload failed: {e}") from e

            logger.info(f"✅ [THUMBNAIL] Uploaded: {public_url}")
            return public_url
        finally:
            if output_path.exists():
                try:
                    os.unlink(output_path)
                except OSError as e:
                    logger.warning(f"⚠️ [THUMBNAIL] Could not remove local capture: {e}")

    async def _capture(self, video_path: str, timestamp: float, output_path: Path) -> bool:
        cmd = [
            "ffmpeg", "-y",
            "-ss", str(timestamp),
            "-i", video_path,
            "-frames:v", "1",
            "-vf", f"scale={self.width}:{self.height}:force_original_aspect_ratio=decrease",
            "-q:v", "2",
            str(output_path)
        ]
        try:
            returncode, _, _ = await run_command(cmd, timeout=30)
        except (CommandTimeout, FileNotFoundError) as e:
            logger.warning(f"⚠️ [THUMBNAIL] Capture at {timestamp}s failed: {e}")
            return False

        return returncode == 0 and output_path.exists() and output_path.stat().st_size > 0
