"""Error codes dictionary for the media API.

This is the single source of truth for all error codes, their retryability,
and suggested recovery hints. Used by exception handlers to generate
machine-readable error responses.
"""

from typing import TypedDict


class ErrorCodeSpec(TypedDict, total=False):
    """Specification for an error code."""

    retryable: bool
    suggested_fix: str


ERROR_CODES: dict[str, ErrorCodeSpec] = {
    # ==========================================================================
    # Resource errors
    # ==========================================================================
    "SCENE_NOT_FOUND": {
        "retryable": False,
    },
    "VIDEO_NOT_FOUND": {
        "retryable": False,
        "suggested_fix": "Re-upload the video before requesting thumbnails",
    },
    "TRIM_SESSION_NOT_FOUND": {
        "retryable": False,
        "suggested_fix": "Create a new trim session",
    },
    "NOT_FOUND": {
        "retryable": False,
    },
    "BAD_REQUEST": {
        "retryable": False,
    },
    # ==========================================================================
    # Validation errors (not retryable, fix input)
    # ==========================================================================
    "VALIDATION_ERROR": {
        "retryable": False,
    },
    "NO_AUDIO_SOURCES": {
        "retryable": False,
        "suggested_fix": "Select a music track or at least one sound effect",
    },
    "INVALID_SCENE_DURATION": {
        "retryable": False,
        "suggested_fix": "Scene end time must be after its start time",
    },
    # ==========================================================================
    # Scene selection rejections
    # ==========================================================================
    "SELECTION_REJECTED": {
        "retryable": False,
    },
    "SELECTION_END_BEFORE_START": {
        "retryable": False,
        "suggested_fix": "Move the timeline forward to select an end point",
    },
    "SELECTION_TOO_SHORT": {
        "retryable": False,
        "suggested_fix": "Scenes must be at least 0.1 seconds long",
    },
    "DURATION_UNAVAILABLE": {
        "retryable": True,
        "suggested_fix": "Wait for the video to load completely",
    },
    # ==========================================================================
    # Conflicts
    # ==========================================================================
    "CONFLICT": {
        "retryable": False,
    },
    "INVALID_TRANSITION": {
        "retryable": False,
    },
    "NOTHING_TO_EXPORT": {
        "retryable": False,
        "suggested_fix": "Confirm at least one scene before exporting",
    },
    # ==========================================================================
    # System errors
    # ==========================================================================
    "MIX_FAILED": {
        "retryable": True,
    },
    "ENGINE_UNAVAILABLE": {
        "retryable": True,
        "suggested_fix": "Check that FFMPEG_PATH points to an ffmpeg binary",
    },
    "STORAGE_ERROR": {
        "retryable": True,
    },
    "INTERNAL_ERROR": {
        "retryable": True,
    },
}


def get_error_spec(code: str) -> ErrorCodeSpec:
    """Look up the spec for an error code, falling back to INTERNAL_ERROR."""
    return ERROR_CODES.get(code, ERROR_CODES["INTERNAL_ERROR"])


def is_retryable(code: str) -> bool:
    return get_error_spec(code).get("retryable", False)
