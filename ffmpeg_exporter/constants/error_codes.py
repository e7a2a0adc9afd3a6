"""Error codes dictionary for the exporter API.

Single source of truth for error codes and their retryability. Used by
``ExporterError.to_error_info`` to build machine-readable error responses.
"""

from typing import TypedDict


class ErrorCodeSpec(TypedDict, total=False):
    """Specification for an error code."""

    retryable: bool
    suggested_fix: str


ERROR_CODES: dict[str, ErrorCodeSpec] = {
    # ==========================================================================
    # Asset-level errors (job continues without the asset)
    # ==========================================================================
    "ASSET_AUDIO_FAILED": {
        "retryable": False,
        "suggested_fix": "Check that the asset source exists and contains a decodable audio stream",
    },
    # ==========================================================================
    # Process-level errors (fatal to the job)
    # ==========================================================================
    "FFMPEG_FAILED": {
        "retryable": True,
        "suggested_fix": "Inspect the ffmpeg stderr output attached to the error message",
    },
    "ENCODER_FAILED": {
        "retryable": True,
        "suggested_fix": "Start a new export job; the video encoder process exited with an error",
    },
    # ==========================================================================
    # Planning / state errors
    # ==========================================================================
    "WORKER_OUT_OF_RANGE": {
        "retryable": False,
        "suggested_fix": "worker_id must satisfy 0 <= worker_id < num_workers",
    },
    "INVALID_FRAME": {
        "retryable": False,
        "suggested_fix": "Send each frame as a data:image/...;base64, URL with valid base64 content",
    },
    "INVALID_EXPORTER_STATE": {
        "retryable": False,
        "suggested_fix": "Call start() before feeding frames and do not reuse a finished exporter",
    },
    "EXPORTER_NOT_FOUND": {
        "retryable": False,
        "suggested_fix": "Create the export job with POST /exporter/jobs first",
    },
    "EXPORTER_EXISTS": {
        "retryable": False,
        "suggested_fix": "Use a new hiddenFolderId, or kill the running job before restarting it",
    },
    "INTERNAL_ERROR": {
        "retryable": False,
    },
}


def get_error_spec(code: str) -> ErrorCodeSpec:
    """Return the spec for an error code, or an empty spec for unknown codes."""
    return ERROR_CODES.get(code, {})
