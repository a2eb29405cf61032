#!/usr/bin/env python3
"""
Frame OCR

Uploads sampled frames to transient storage and reads their on-screen text
with an OpenAI vision model. OCR is advisory: a frame whose upload or OCR
call fails is dropped and the rest of the batch carries on.
"""

import asyncio
import logging
from typing import Callable, List, Optional, Tuple

from openai import OpenAI

from core.config import Config
from core.models import FrameSample, ModalityText, SourceType
from core.prompts import FrameOCRPrompt
from core.storage_manager import StorageManager

logger = logging.getLogger(__name__)

UploadedFrame = Tuple[FrameSample, str]


def clean_ocr_text(text: Optional[str]) -> str:
    """Normalize a model reply; the no-text marker becomes an empty string"""
    if not text:
        return ""
    cleaned = text.strip().strip('`').strip()
    if cleaned.lower().rstrip('.') == FrameOCRPrompt.NO_TEXT_MARKER.lower():
        return ""
    return cleaned


class FrameOCRProcessor:
    """Transient upload plus batched vision OCR for frame samples"""

    def __init__(self, storage: StorageManager, client: Optional[OpenAI] = None,
                 model: str = FrameOCRPrompt.MODEL):
        self.storage = storage
        self.model = model

        if client is None:
            api_key = Config.get_api_keys().get('openai')
            if not api_key:
                raise ValueError("OPENAI_API_KEY environment variable not set")
            client = OpenAI(api_key=api_key)
        self.client = client

    async def upload_frames(self, frames: List[FrameSample], run_id: str,
                            register: Callable[[str, str], None]) -> List[UploadedFrame]:
        """
        Upload frames in parallel

        register(storage_path, bucket) is called before each upload starts so
        the object is tracked for deletion even if the upload fails midway.

        Returns:
            (frame, public_url) pairs for successful uploads, in timestamp order
        """
        async def upload(frame: FrameSample) -> Optional[UploadedFrame]:
            register(self.storage.frame_storage_path(run_id, frame.timestamp), self.storage.frame_bucket)
            try:
                _, public_url = await asyncio.to_thread(
                    self.storage.upload_frame, frame.path, run_id, frame.timestamp
                )
            except Exception as e:
                logger.warning(f"⚠️ [OCR] Upload failed for frame at {frame.timestamp:.1f}s: {e}")
                return None
            return frame, public_url

        results = await asyncio.gather(*[upload(frame) for frame in frames])
        uploaded = [item for item in results if item is not None]
        logger.info(f"📤 [OCR] Uploaded {len(uploaded)}/{len(frames)} frames")
        return uploaded

    def _read_frame_text(self, image_url: str) -> str:
        response = self.client.chat.completions.create(
            model=self.model,
            max_tokens=FrameOCRPrompt.MAX_TOKENS,
            temperature=0,
            messages=[{
                "role": "user",
                "content": [
                    {"type": "text", "text": FrameOCRPrompt.build()},
                    {"type": "image_url", "image_url": {"url": image_url}},
                ],
            }],
        )
        return clean_ocr_text(response.choices[0].message.content)

    async def extract_text(self, uploaded: List[UploadedFrame]) -> List[ModalityText]:
        """
        OCR a batch of uploaded frames concurrently

        Returns:
            One visual ModalityText per frame with readable text, in timestamp
            order. Frames that failed or had no text are omitted.
        """
        if not uploaded:
            return []

        logger.info(f"🔍 [OCR] Reading text from {len(uploaded)} frames")
        results = await asyncio.gather(
            *[asyncio.to_thread(self._read_frame_text, url) for _, url in uploaded],
            return_exceptions=True
        )

        texts: List[ModalityText] = []
        failures = 0
        for (frame, _), result in zip(uploaded, results):
            if isinstance(result, BaseException):
                failures += 1
                logger.warning(f"⚠️ [OCR] Frame at {frame.timestamp:.1f}s failed: {result}")
                continue
            if not result:
                continue
            texts.append(ModalityText(
                source_type=SourceType.VISUAL,
                text=result,
                timestamp=frame.timestamp,
                confidence=Config.OCR_DEFAULT_CONFIDENCE,
            ))

        texts.sort(key=lambda item: item.timestamp)
        logger.info(
            f"✅ [OCR] Text found in {len(texts)}/{len(uploaded)} frames ({failures} failed)"
        )
        return texts
