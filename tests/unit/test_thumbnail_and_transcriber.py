"""
Unit tests for processors/thumbnail_generator.py and processors/file_transcriber.py
"""

import asyncio
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import Mock, patch

import pytest

from core.errors import ThumbnailGenerationError, TranscriptionError
from core.models import AudioArtifact, TemporaryArtifact
from processors.file_transcriber import AudioTranscriber
from processors.thumbnail_generator import ThumbnailGenerator

RUN_ID = "1718000000000_abc123"


def fake_ffmpeg(fail_at=()):
    """run_command stand-in that writes a JPEG unless the -ss timestamp is in fail_at"""
    calls = []

    async def run(cmd, timeout=None):
        timestamp = float(cmd[cmd.index("-ss") + 1])
        calls.append(timestamp)
        if timestamp in fail_at:
            return 1, b"", b"seek failed"
        Path(cmd[-1]).write_bytes(b"\xff\xd8jpeg")
        return 0, b"", b""

    return run, calls


class TestThumbnailGenerator:
    """Tests for ThumbnailGenerator.generate()"""

    @pytest.mark.unit
    def test_uploads_and_removes_local_capture(self, tmp_path):
        """Should upload the capture, return its URL and delete the local file"""
        storage = Mock()
        storage.upload_thumbnail.return_value = ("thumbnails/x.jpg", "https://storage.example.com/x.jpg")
        run, calls = fake_ffmpeg()

        with patch('processors.thumbnail_generator.run_command', run):
            url = asyncio.run(ThumbnailGenerator(storage, timestamps=(1.0, 0.0))
                              .generate("video.mp4", tmp_path, RUN_ID, duration=42.0))

        assert url == "https://storage.example.com/x.jpg"
        assert calls == [1.0]
        storage.upload_thumbnail.assert_called_once_with(str(tmp_path / f"thumbnail_{RUN_ID}.jpg"), RUN_ID)
        assert list(tmp_path.iterdir()) == []

    @pytest.mark.unit
    def test_falls_back_to_next_timestamp(self, tmp_path):
        """Should retry at the next timestamp when a capture fails"""
        storage = Mock()
        storage.upload_thumbnail.return_value = ("p", "https://storage.example.com/p.jpg")
        run, calls = fake_ffmpeg(fail_at={1.0})

        with patch('processors.thumbnail_generator.run_command', run):
            asyncio.run(ThumbnailGenerator(storage, timestamps=(1.0, 0.0)).generate("video.mp4", tmp_path, RUN_ID))

        assert calls == [1.0, 0.0]

    @pytest.mark.unit
    def test_skips_timestamps_past_the_end(self, tmp_path):
        """Should not seek past a short clip's duration"""
        storage = Mock()
        storage.upload_thumbnail.return_value = ("p", "u")
        run, calls = fake_ffmpeg()

        with patch('processors.thumbnail_generator.run_command', run):
            asyncio.run(ThumbnailGenerator(storage, timestamps=(1.0, 0.0)).generate("v.mp4", tmp_path, RUN_ID, 0.5))

        assert calls == [0.0]

    @pytest.mark.unit
    def test_upload_failure_raises_and_cleans(self, tmp_path):
        """Should raise ThumbnailGenerationError and still delete the capture"""
        storage = Mock()
        storage.upload_thumbnail.side_effect = ConnectionError("storage down")
        run, _ = fake_ffmpeg()

        with patch('processors.thumbnail_generator.run_command', run):
            with pytest.raises(ThumbnailGenerationError):
                asyncio.run(ThumbnailGenerator(storage, timestamps=(1.0,)).generate("v.mp4", tmp_path, RUN_ID))

        assert list(tmp_path.iterdir()) == []


def deepgram_response(transcript, duration=None, words=None, language="en"):
    alternative = SimpleNamespace(transcript=transcript, words=words or [])
    channel = SimpleNamespace(alternatives=[alternative], detected_language=language)
    return SimpleNamespace(
        results=SimpleNamespace(channels=[channel]),
        metadata=SimpleNamespace(duration=duration),
    )


def make_audio(tmp_path, content=b"\x00" * 128, duration=42.0):
    path = tmp_path / "video_audio.m4a"
    path.write_bytes(content)
    return AudioArtifact(artifact=TemporaryArtifact(identifier=str(path), producer="audio"),
                         duration=duration, method="copy")


class TestAudioTranscriber:
    """Tests for AudioTranscriber with a fake DeepGram client"""

    @pytest.fixture(autouse=True)
    def no_braintrust(self, monkeypatch):
        monkeypatch.delenv('BRAINTRUST_API_KEY', raising=False)

    @pytest.mark.unit
    def test_transcribes_audio(self, tmp_path):
        """Should return transcript text, duration and language"""
        client = Mock()
        client.listen.v1.media.transcribe_file.return_value = deepgram_response(
            " Here are three AI tools. ", duration=41.9
        )

        transcript = asyncio.run(AudioTranscriber(client=client).transcribe(make_audio(tmp_path)))

        assert transcript.text == "Here are three AI tools."
        assert transcript.duration == pytest.approx(41.9)
        assert transcript.language == "en"
        kwargs = client.listen.v1.media.transcribe_file.call_args.kwargs
        assert kwargs['request'] == b"\x00" * 128
        assert kwargs['smart_format'] is True

    @pytest.mark.unit
    def test_empty_transcript_is_not_an_error(self, tmp_path):
        """Should return empty text and fall back to the duration hint"""
        client = Mock()
        client.listen.v1.media.transcribe_file.return_value = deepgram_response("")

        transcript = asyncio.run(AudioTranscriber(client=client).transcribe(make_audio(tmp_path, duration=12.0)))

        assert transcript.text == ""
        assert transcript.duration == 12.0

    @pytest.mark.unit
    def test_duration_from_last_word(self, tmp_path):
        """Should use the last word's end time when metadata has no duration"""
        client = Mock()
        client.listen.v1.media.transcribe_file.return_value = deepgram_response(
            "hello there", words=[SimpleNamespace(end=0.4), SimpleNamespace(end=1.2)]
        )
        transcript = asyncio.run(AudioTranscriber(client=client).transcribe(make_audio(tmp_path)))
        assert transcript.duration == pytest.approx(1.2)

    @pytest.mark.unit
    def test_service_failure(self, tmp_path):
        """Should raise TranscriptionError when the service call fails"""
        client = Mock()
        client.listen.v1.media.transcribe_file.side_effect = RuntimeError("503")
        with pytest.raises(TranscriptionError):
            asyncio.run(AudioTranscriber(client=client).transcribe(make_audio(tmp_path)))

    @pytest.mark.unit
    def test_empty_audio_file(self, tmp_path):
        """Should raise TranscriptionError for a zero-byte file without calling the service"""
        client = Mock()
        with pytest.raises(TranscriptionError):
            asyncio.run(AudioTranscriber(client=client).transcribe(make_audio(tmp_path, content=b"")))
        client.listen.v1.media.transcribe_file.assert_not_called()

    @pytest.mark.unit
    def test_requires_api_key(self, monkeypatch):
        """Should raise ValueError without a client or DEEPGRAM_API_KEY"""
        monkeypatch.delenv('DEEPGRAM_API_KEY', raising=False)
        with pytest.raises(ValueError):
            AudioTranscriber()
