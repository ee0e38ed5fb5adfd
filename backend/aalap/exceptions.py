"""Custom exceptions for the media pipeline.

Every failure that makes a requested artifact impossible is raised as an
``AalapError`` subclass carrying a machine-readable code and an HTTP status.
Failures local to one unit of a batch (one thumbnail, one probe) are not
exceptions at all; they are recovered where they happen and logged.
"""

from aalap.constants.error_codes import get_error_spec
from aalap.schemas.envelope import ErrorInfo, ErrorLocation


class AalapError(Exception):
    """Base exception for all media pipeline errors."""

    code: str = "INTERNAL_ERROR"
    status_code: int = 500
    message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: str | None = None,
        *,
        code: str | None = None,
        status_code: int | None = None,
        location: ErrorLocation | None = None,
        suggested_fix: str | None = None,
    ):
        self.message = message or self.__class__.message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code
        self.location = location
        self.suggested_fix = suggested_fix
        super().__init__(self.message)

    def to_error_info(self) -> ErrorInfo:
        """Convert exception to ErrorInfo for API response."""
        spec = get_error_spec(self.code)
        return ErrorInfo(
            code=self.code,
            message=self.message,
            location=self.location,
            retryable=spec.get("retryable", False),
            suggested_fix=self.suggested_fix or spec.get("suggested_fix"),
        )


# =============================================================================
# Resource Not Found Errors (404)
# =============================================================================


class ResourceNotFoundError(AalapError):
    """Base class for resource not found errors."""

    status_code = 404


class SceneNotFoundError(ResourceNotFoundError):
    """Scene not found."""

    code = "SCENE_NOT_FOUND"
    message = "Scene not found"

    def __init__(self, scene_id: str | None = None):
        message = f"Scene not found: {scene_id}" if scene_id else self.message
        location = ErrorLocation(scene_id=scene_id) if scene_id else None
        super().__init__(message, location=location)


class VideoNotFoundError(ResourceNotFoundError):
    """Source video not found in storage."""

    code = "VIDEO_NOT_FOUND"
    message = "Video file not found"

    def __init__(self, video_id: str | None = None, storage_key: str | None = None):
        message = self.message
        if storage_key:
            message = f"Video file not found: {storage_key}"
        location = ErrorLocation(video_id=video_id) if video_id else None
        super().__init__(message, location=location)


class TrimSessionNotFoundError(ResourceNotFoundError):
    """Trim session not found."""

    code = "TRIM_SESSION_NOT_FOUND"
    message = "Trim session not found"

    def __init__(self, session_id: str | None = None):
        message = f"Trim session not found: {session_id}" if session_id else self.message
        super().__init__(message)


# =============================================================================
# Validation Errors (400)
# =============================================================================


class ValidationError(AalapError):
    """Base class for validation errors."""

    code = "VALIDATION_ERROR"
    status_code = 400


class NoAudioSourcesError(ValidationError):
    """Neither a music source nor any sound effect was supplied."""

    code = "NO_AUDIO_SOURCES"
    message = "No audio to preview"


class InvalidSceneDurationError(ValidationError):
    """Scene duration is zero, negative or not finite."""

    code = "INVALID_SCENE_DURATION"
    message = "Invalid scene duration"

    def __init__(self, duration_s: float | None = None, scene_id: str | None = None):
        message = self.message
        if duration_s is not None:
            message = f"Invalid scene duration: {duration_s}s"
        location = ErrorLocation(scene_id=scene_id) if scene_id else None
        super().__init__(message, location=location)


# =============================================================================
# Scene Selection Rejections (422)
# =============================================================================


class SelectionRejectedError(AalapError):
    """A scene confirm attempt violated a selection invariant.

    Raised synchronously to the initiating action. The segmenter state is
    left untouched.
    """

    code = "SELECTION_REJECTED"
    status_code = 422
    message = "Scene selection rejected"


class SelectionEndBeforeStartError(SelectionRejectedError):
    code = "SELECTION_END_BEFORE_START"
    message = "End time must be after start time"

    def __init__(self, start_s: float | None = None, end_s: float | None = None):
        message = self.message
        if start_s is not None and end_s is not None:
            message = f"End time must be after start time (start: {start_s:.2f}s, end: {end_s:.2f}s)"
        super().__init__(message)


class SelectionTooShortError(SelectionRejectedError):
    code = "SELECTION_TOO_SHORT"
    message = "Scene is too short"

    def __init__(self, length_s: float | None = None, min_length_s: float | None = None):
        message = self.message
        if min_length_s is not None:
            message = f"Scene must be at least {min_length_s} seconds long"
            if length_s is not None:
                message += f" (got {length_s:.3f}s)"
        super().__init__(message)


class DurationUnavailableError(SelectionRejectedError):
    code = "DURATION_UNAVAILABLE"
    message = "Video duration not available. Please wait for the video to load completely."


# =============================================================================
# Conflict Errors (409)
# =============================================================================


class ConflictError(AalapError):
    """Base class for conflict errors."""

    code = "CONFLICT"
    status_code = 409


class InvalidTransitionError(ConflictError):
    """Segmenter verb not valid in the current state."""

    code = "INVALID_TRANSITION"
    message = "Operation not allowed in the current state"

    def __init__(self, action: str | None = None, state: str | None = None):
        message = self.message
        if action and state:
            message = f"Cannot {action} while {state}"
        super().__init__(message)


class NothingToExportError(ConflictError):
    code = "NOTHING_TO_EXPORT"
    message = "No scenes to export"


# =============================================================================
# System Errors (500/503)
# =============================================================================


class MixError(AalapError):
    """The mixing subprocess failed or the filter graph was rejected."""

    code = "MIX_FAILED"
    status_code = 500
    message = "Audio mixing failed"


class EngineUnavailableError(AalapError):
    """The media engine binary could not be launched."""

    code = "ENGINE_UNAVAILABLE"
    status_code = 503
    message = "Media engine is not available"


class StorageError(AalapError):
    """Storage error."""

    code = "STORAGE_ERROR"
    status_code = 500
    message = "Storage error"
