"""
ffmpeg / ffprobe helpers shared by the media transform stages
"""

import asyncio
import logging
from typing import List, Optional, Tuple

logger = logging.getLogger(__name__)


class CommandTimeout(Exception):
    """The external command exceeded its time limit and was killed"""


async def run_command(cmd: List[str], timeout: Optional[float] = None) -> Tuple[int, bytes, bytes]:
    """
    Run an external command without blocking the event loop

    Args:
        cmd: Command and arguments
        timeout: Seconds before the process is killed (None waits forever)

    Returns:
        Tuple of (returncode, stdout, stderr)

    Raises:
        CommandTimeout: If the timeout elapsed
        FileNotFoundError: If the executable is not installed
    """
    process = await asyncio.create_subprocess_exec(
        *cmd,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE
    )

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        try:
            process.kill()
        except ProcessLookupError:
            pass
        await process.wait()
        raise CommandTimeout(f"{cmd[0]} timed out after {timeout}s")

    return process.returncode, stdout, stderr


async def probe_duration(media_path: str) -> Optional[float]:
    """Get media duration in seconds using ffprobe (None when unknown)"""
    cmd = [
        "ffprobe",
        "-v", "error",
        "-show_entries", "format=duration",
        "-of", "default=noprint_wrappers=1:nokey=1",
        media_path
    ]

    try:
        returncode, stdout, stderr = await run_command(cmd, timeout=30)
    except (CommandTimeout, FileNotFoundError) as e:
        logger.warning(f"⚠️ Could not get media duration: {e}")
        return None

    if returncode != 0:
        logger.warning(f"⚠️ ffprobe failed: {stderr.decode('utf-8', errors='ignore')[:200]}")
        return None

    try:
        duration = float(stdout.decode('utf-8').strip())
    except ValueError:
        return None
    return duration if duration > 0 else None


def format_timestamp(seconds: float) -> str:
    """Format timestamp as MM:SS or HH:MM:SS"""
    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    secs = int(seconds % 60)

    if hours > 0:
        return f"{hours:02d}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"
