"""Custom exceptions for the exporter.

Each exception carries a machine-readable code and an HTTP status so the
API layer can turn it into an ``ErrorInfo`` response without special cases.

Taxonomy:
- Asset-level (``AssetAudioError``): recovered by skipping the asset.
- Process-level (``FFmpegError``, ``EncoderProcessError``): fatal to the job.
- Planning (``WorkerRangeError``): raised before any process is launched.
- Request (``InvalidFrameError``): malformed frame payloads.
- State (``InvalidExporterStateError``, ``ExporterExistsError``): lifecycle misuse.
"""

from ffmpeg_exporter.constants.error_codes import get_error_spec
from ffmpeg_exporter.schemas.envelope import ErrorInfo, ErrorLocation


class ExporterError(Exception):
    """Base exception for all exporter errors."""

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
    ):
        self.message = message or self.__class__.message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code
        self.location = location
        super().__init__(self.message)

    def to_error_info(self) -> ErrorInfo:
        """Convert exception to ErrorInfo for API response."""
        spec = get_error_spec(self.code)
        return ErrorInfo(
            code=self.code,
            message=self.message,
            location=self.location,
            retryable=spec.get("retryable", False),
            suggested_fix=spec.get("suggested_fix"),
        )


# =============================================================================
# Asset-level Errors
# =============================================================================


class AssetAudioError(ExporterError):
    """Probing or preparing the audio of a single asset failed."""

    code = "ASSET_AUDIO_FAILED"
    status_code = 422
    message = "Asset audio preparation failed"

    def __init__(self, asset_key: str, reason: str | None = None):
        self.asset_key = asset_key
        message = f"Audio preparation failed for asset '{asset_key}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, location=ErrorLocation(asset_key=asset_key))


# =============================================================================
# Process-level Errors
# =============================================================================


class FFmpegError(ExporterError):
    """An ffmpeg/ffprobe process exited with a non-zero status."""

    code = "FFMPEG_FAILED"
    status_code = 500
    message = "FFmpeg process failed"

    def __init__(
        self,
        message: str | None = None,
        *,
        returncode: int | None = None,
        stderr: str = "",
    ):
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(message)


class EncoderProcessError(FFmpegError):
    """The streaming video encoder failed or was killed."""

    code = "ENCODER_FAILED"
    message = "Video encoder process failed"


# =============================================================================
# Planning / State Errors
# =============================================================================


class WorkerRangeError(ExporterError):
    """Worker id or worker count outside the valid range."""

    code = "WORKER_OUT_OF_RANGE"
    status_code = 400
    message = "Worker id out of range"

    def __init__(self, message: str | None = None, *, worker_id: int | None = None):
        location = ErrorLocation(worker_id=worker_id) if worker_id is not None else None
        super().__init__(message, location=location)


class InvalidFrameError(ExporterError):
    """A pushed frame is not a valid base64 data URL."""

    code = "INVALID_FRAME"
    status_code = 422
    message = "Frame data is not valid base64"


class InvalidExporterStateError(ExporterError):
    """Operation not allowed in the exporter's current state."""

    code = "INVALID_EXPORTER_STATE"
    status_code = 409
    message = "Operation not allowed in the current exporter state"


class ExporterNotFoundError(ExporterError):
    """No export job registered under the given id."""

    code = "EXPORTER_NOT_FOUND"
    status_code = 404
    message = "Export job not found"

    def __init__(self, job_id: str | None = None):
        message = f"Export job not found: {job_id}" if job_id else self.message
        location = ErrorLocation(job_id=job_id) if job_id else None
        super().__init__(message, location=location)


class ExporterExistsError(ExporterError):
    """An export job with the same id is already live."""

    code = "EXPORTER_EXISTS"
    status_code = 409
    message = "Export job already exists"

    def __init__(self, job_id: str):
        super().__init__(
            f"Export job already exists: {job_id}",
            location=ErrorLocation(job_id=job_id),
        )
