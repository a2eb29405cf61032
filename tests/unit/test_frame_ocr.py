"""
Unit tests for processors/frame_ocr.py

Storage and the OpenAI client are mocked; no network calls are made.
"""

import asyncio
from unittest.mock import Mock

import pytest

from core.models import FrameSample, SourceType, TemporaryArtifact
from core.storage_manager import StorageManager
from processors.frame_ocr import FrameOCRProcessor, clean_ocr_text

RUN_ID = "1718000000000_abc123"
TIMESTAMPS = [5.0, 10.0, 15.0, 20.0, 25.0]


def make_frames(tmp_path):
    frames = []
    for ts in TIMESTAMPS:
        path = tmp_path / f"frame_{int(ts * 1000):08d}.jpg"
        path.write_bytes(b"\xff\xd8jpeg")
        frames.append(FrameSample(timestamp=ts, artifact=TemporaryArtifact(identifier=str(path), producer="frames")))
    return frames


def make_storage(events, fail_at=()):
    storage = Mock()
    storage.frame_bucket = "reel-frames"
    storage.frame_storage_path.side_effect = StorageManager.frame_storage_path

    def upload_frame(file_path, run_id, timestamp):
        path = StorageManager.frame_storage_path(run_id, timestamp)
        events.append(("upload", path))
        if timestamp in fail_at:
            raise ConnectionError("upload reset")
        return path, f"https://storage.example.com/{path}"

    storage.upload_frame.side_effect = upload_frame
    return storage


def completion(text):
    response = Mock()
    response.choices = [Mock(message=Mock(content=text))]
    return response


def make_client(replies):
    """OpenAI client whose reply depends on the frame URL"""
    def create(**kwargs):
        url = kwargs['messages'][0]['content'][1]['image_url']['url']
        reply = next(value for key, value in replies.items() if key in url)
        if isinstance(reply, Exception):
            raise reply
        return completion(reply)

    client = Mock()
    client.chat.completions.create.side_effect = create
    return client


def uploaded_pairs(frames):
    return [(frame, f"https://storage.example.com/run_{RUN_ID}/frame_{int(frame.timestamp * 1000):08d}.jpg")
            for frame in frames]


class TestCleanOcrText:
    """Tests for clean_ocr_text()"""

    @pytest.mark.unit
    def test_no_text_marker_becomes_empty(self):
        """Should treat the no-text reply as an empty result"""
        assert clean_ocr_text("No text found.") == ""
        assert clean_ocr_text(None) == ""
        assert clean_ocr_text("  ```3 AI TOOLS```  ") == "3 AI TOOLS"


class TestUploadFrames:
    """Tests for FrameOCRProcessor.upload_frames()"""

    @pytest.mark.unit
    def test_registers_before_upload_and_drops_failures(self, tmp_path):
        """Should register every object before uploading and skip failed uploads"""
        events = []
        storage = make_storage(events, fail_at={15.0})
        processor = FrameOCRProcessor(storage, client=Mock())

        def register(path, bucket):
            events.append(("register", path))

        uploaded = asyncio.run(processor.upload_frames(make_frames(tmp_path), RUN_ID, register))

        assert [frame.timestamp for frame, _ in uploaded] == [5.0, 10.0, 20.0, 25.0]
        registered = [path for kind, path in events if kind == "register"]
        assert len(registered) == 5
        for path in registered:
            assert events.index(("register", path)) < events.index(("upload", path))


class TestExtractText:
    """Tests for FrameOCRProcessor.extract_text()"""

    @pytest.mark.unit
    def test_partial_failures_keep_remaining_frames(self, tmp_path):
        """Should return text for the 3 frames that succeeded when 2 of 5 OCR calls fail"""
        client = make_client({
            "00005000": "3 AI TOOLS",
            "00010000": RuntimeError("vision timeout"),
            "00015000": "NOTION AI",
            "00020000": RuntimeError("500 from vision"),
            "00025000": "gamma.app",
        })
        processor = FrameOCRProcessor(Mock(), client=client)

        texts = asyncio.run(processor.extract_text(uploaded_pairs(make_frames(tmp_path))))

        assert [t.text for t in texts] == ["3 AI TOOLS", "NOTION AI", "gamma.app"]
        assert [t.timestamp for t in texts] == [5.0, 15.0, 25.0]
        assert all(t.source_type == SourceType.VISUAL for t in texts)
        assert client.chat.completions.create.call_count == 5

    @pytest.mark.unit
    def test_frames_without_text_are_omitted(self, tmp_path):
        """Should skip frames whose reply is the no-text marker"""
        replies = {f"{int(ts * 1000):08d}": "No text found" for ts in TIMESTAMPS}
        replies["00010000"] = "SAVE 10 HOURS"
        processor = FrameOCRProcessor(Mock(), client=make_client(replies))

        texts = asyncio.run(processor.extract_text(uploaded_pairs(make_frames(tmp_path))))

        assert [(t.timestamp, t.text) for t in texts] == [(10.0, "SAVE 10 HOURS")]

    @pytest.mark.unit
    def test_empty_batch(self):
        """Should return an empty list without calling the model"""
        client = Mock()
        assert asyncio.run(FrameOCRProcessor(Mock(), client=client).extract_text([])) == []
        client.chat.completions.create.assert_not_called()

    @pytest.mark.unit
    def test_requires_api_key_without_client(self, monkeypatch):
        """Should raise ValueError when no client is given and no key is configured"""
        monkeypatch.delenv('OPENAI_API_KEY', raising=False)
        with pytest.raises(ValueError):
            FrameOCRProcessor(Mock())
