"""
Video Frame Extractor

Samples frames at evenly spaced timestamps across the clip. The number of
frames follows the clip duration (one per FRAME_INTERVAL_SECONDS), clamped to
[FRAME_MIN_COUNT, max]. All captures run in parallel; a failed capture is
dropped, not retried.
"""

import asyncio
import logging
import math
from pathlib import Path
from typing import List, Optional

from core.config import Config
from core.models import FrameExtractionResult, FrameSample, TemporaryArtifact
from processors.ffmpeg_utils import CommandTimeout, format_timestamp, run_command

logger = logging.getLogger(__name__)

CAPTURE_TIMEOUT = 30


def determine_sample_timestamps(
    duration: float,
    interval: float = Config.FRAME_INTERVAL_SECONDS,
    min_frames: int = Config.FRAME_MIN_COUNT,
    max_frames: Optional[int] = None,
) -> List[float]:
    """
    Evenly spaced timestamps strictly inside (0, duration)

    Args:
        duration: Clip length in seconds (must be positive)
        interval: Target seconds per frame
        min_frames: Lower bound on the frame count
        max_frames: Upper bound (defaults to Config.get_frame_max_count())

    Returns:
        Strictly increasing timestamps, never 0 and never the clip end

    Examples:
        >>> determine_sample_timestamps(42, max_frames=8)
        [6.0, 12.0, 18.0, 24.0, 30.0, 36.0]
    """
    if duration is None or not math.isfinite(duration) or duration <= 0:
        raise ValueError(f"Duration must be a positive number, got {duration!r}")

    if max_frames is None:
        max_frames = Config.get_frame_max_count()
    max_frames = max(max_frames, min_frames)

    count = math.ceil(duration / interval)
    count = max(min_frames, min(max_frames, count))

    spacing = duration / (count + 1)
    return [spacing * i for i in range(1, count + 1)]


class FrameExtractor:
    """Capture single frames at given timestamps with ffmpeg"""

    def __init__(self, resolution=Config.FRAME_RESOLUTION, capture_timeout: float = CAPTURE_TIMEOUT):
        self.width, self.height = resolution
        self.capture_timeout = capture_timeout

    def _capture_command(self, video_path: str, timestamp: float, output_path: Path) -> list:
        return [
            "ffmpeg", "-y",
            "-ss", f"{timestamp:.3f}",
            "-i", video_path,
            "-frames:v", "1",
            "-vf", f"scale={self.width}:{self.height}:force_original_aspect_ratio=decrease",
            "-q:v", "2",  # High quality JPEG
            str(output_path)
        ]

    async def extract_frames(self, video_path: str, timestamps: List[float],
                             output_dir: Path) -> FrameExtractionResult:
        """
        Capture one frame per timestamp, all in parallel

        Args:
            video_path: Path to the video file
            timestamps: Precomputed sample timestamps
            output_dir: Directory to write JPEGs into

        Returns:
            FrameExtractionResult with the successful captures in timestamp order
        """
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"🎬 [FRAMES] Extracting {len(timestamps)} frames in parallel")

        results = await asyncio.gather(*[
            self._capture(video_path, timestamp, output_dir / f"frame_{index:02d}_{int(timestamp * 1000)}.jpg")
            for index, timestamp in enumerate(timestamps)
        ])

        frames = sorted((frame for frame in results if frame is not None), key=lambda f: f.timestamp)
        result = FrameExtractionResult(frames=frames, requested=len(timestamps))

        logger.info(
            f"✅ [FRAMES] Extracted {len(frames)}/{len(timestamps)} frames "
            f"({result.success_ratio:.0%} success)"
        )
        return result

    async def _capture(self, video_path: str, timestamp: float, output_path: Path) -> Optional[FrameSample]:
        try:
            returncode, _, stderr = await run_command(
                self._capture_command(video_path, timestamp, output_path),
                timeout=self.capture_timeout
            )
        except (CommandTimeout, FileNotFoundError, OSError) as e:
            logger.warning(f"⚠️ [FRAMES] Capture at {format_timestamp(timestamp)} failed: {e}")
            return None

        if returncode != 0 or not output_path.exists() or output_path.stat().st_size == 0:
            logger.warning(
                f"⚠️ [FRAMES] Capture at {format_timestamp(timestamp)} produced no image: "
                f"{stderr.decode('utf-8', errors='ignore')[-200:]}"
            )
            return None

        return FrameSample(
            timestamp=timestamp,
            artifact=TemporaryArtifact(identifier=str(output_path), producer="frames",
                                       size_bytes=output_path.stat().st_size),
        )
