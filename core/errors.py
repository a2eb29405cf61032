"""
Error taxonomy for the reel pipeline

Every failure the pipeline can surface is a ReelPipelineError subclass
carrying a stable error code and an HTTP-style status code for the API layer.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ReelPipelineError(Exception):
    """Base exception for the reel pipeline."""

    error_code = "PIPELINE_ERROR"
    status_code = 500

    def __init__(self, message: str, error_code: str = None, status_code: int = None,
                 details: Dict[str, Any] = None):
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code
        if status_code:
            self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            'error': self.error_code,
            'message': self.message,
            'details': self.details,
        }


# Source classification

class InvalidURLError(ReelPipelineError):
    """Raised when the post URL does not have the expected shape."""
    error_code = "INVALID_URL"
    status_code = 400


class MediaNotFoundError(ReelPipelineError):
    """Raised when no strategy can resolve the post to a media URL."""
    error_code = "MEDIA_NOT_FOUND"
    status_code = 404

    def __init__(self, message: str = "Media not found or has been removed", last_error: Exception = None,
                 **kwargs):
        super().__init__(message, **kwargs)
        self.last_error = last_error
        if last_error is not None:
            self.details.setdefault('last_error', str(last_error))


class PrivateOrRestrictedError(ReelPipelineError):
    """Raised when the post is private or behind a login wall."""
    error_code = "PRIVATE_MEDIA"
    status_code = 403


class UnsupportedMediaError(ReelPipelineError):
    """Raised when the post exists but has no downloadable video."""
    error_code = "UNSUPPORTED_MEDIA"
    status_code = 400


# Media transforms

class DownloadError(ReelPipelineError):
    error_code = "VIDEO_DOWNLOAD_ERROR"


class AudioExtractionError(ReelPipelineError):
    error_code = "AUDIO_EXTRACTION_ERROR"


class FrameExtractionError(ReelPipelineError):
    """Non-fatal: frame extraction only degrades visual coverage."""
    error_code = "FRAME_EXTRACTION_ERROR"


class ThumbnailGenerationError(ReelPipelineError):
    """Non-fatal: the artifact is returned without a thumbnail."""
    error_code = "THUMBNAIL_GENERATION_ERROR"


# Analysis stages

class TranscriptionError(ReelPipelineError):
    error_code = "TRANSCRIPTION_ERROR"


class OCRError(ReelPipelineError):
    """Non-fatal: OCR text is advisory."""
    error_code = "OCR_ERROR"


class CaptionAnalysisError(ReelPipelineError):
    """Non-fatal: caption analysis falls back to regex extraction."""
    error_code = "CAPTION_ANALYSIS_ERROR"


class EntityExtractionError(ReelPipelineError):
    """Non-fatal: entity extraction yields an empty list."""
    error_code = "ENTITY_EXTRACTION_ERROR"


class SummarizationFailure(str, Enum):
    EMPTY_INPUT = "empty_input"
    MALFORMED_RESPONSE = "malformed_response"
    AUTH_FAILED = "auth_failed"
    RATE_LIMITED = "rate_limited"
    SERVICE_ERROR = "service_error"


class SummarizationError(ReelPipelineError):
    error_code = "SUMMARIZATION_ERROR"

    def __init__(self, message: str, reason: SummarizationFailure = SummarizationFailure.SERVICE_ERROR,
                 **kwargs):
        super().__init__(message, **kwargs)
        self.reason = reason
        self.details.setdefault('reason', reason.value)
        if reason == SummarizationFailure.RATE_LIMITED:
            self.status_code = 429


# Infrastructure

class ResourcePoolError(ReelPipelineError):
    """Raised when the browser process cannot be launched within the retry budget."""
    error_code = "RESOURCE_POOL_ERROR"
    status_code = 503


class StorageError(ReelPipelineError):
    error_code = "STORAGE_ERROR"


class PipelineError(ReelPipelineError):
    """
    Pipeline-level failure attributed to one step

    Args:
        step: Name of the step that failed
        root_cause: The underlying exception
    """

    error_code = "REEL_PROCESSING_ERROR"

    def __init__(self, step: str, root_cause: Exception):
        message = f"Processing failed at step '{step}': {root_cause}"
        status_code = getattr(root_cause, 'status_code', None) or 500
        details = {'step': step, 'cause_type': type(root_cause).__name__}
        if isinstance(root_cause, ReelPipelineError):
            details['cause_code'] = root_cause.error_code
            details.update(root_cause.details)
        super().__init__(message, status_code=status_code, details=details)
        self.step = step
        self.root_cause = root_cause

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload['step'] = self.step
        payload['cause'] = str(self.root_cause)
        return payload


# A strategy raising one of these means no other strategy can succeed
DEFINITIVE_FETCH_ERRORS = (InvalidURLError, PrivateOrRestrictedError)


def describe_error(error: Optional[BaseException]) -> str:
    """Short human-readable description used in logs and diagnostics"""
    if error is None:
        return "unknown error"
    if isinstance(error, ReelPipelineError):
        return f"{error.error_code}: {error.message}"
    return f"{type(error).__name__}: {error}"
