"""Error taxonomy shared by the pipeline and the management API."""


class AppError(Exception):
    """Base exception for Splitscribe errors.

    Attributes:
        http_status: HTTP status code returned when the error reaches a request handler.
    """

    http_status: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidInput(AppError):
    """Missing upload, unsupported file, or an unsafe artifact name."""

    http_status = 400


class UploadTooLarge(AppError):
    """Upload exceeds the configured size ceiling."""

    http_status = 413


class NotFound(AppError):
    """Requested artifact does not exist."""

    http_status = 404


class StorageFailure(AppError):
    """A filesystem operation failed unexpectedly."""

    http_status = 500


class SegmentationFailed(AppError):
    """The external segmentation process failed or could not be started."""

    def __init__(self, message: str, exit_code: int | None = None) -> None:
        super().__init__(message)
        self.exit_code = exit_code


class TranscriptionFailed(AppError):
    """The speech-to-text service rejected a segment.

    ``status_code`` carries the remote HTTP status (``None`` when no response
    was received) and ``body`` the response text, unmodified.
    """

    def __init__(self, status_code: int | None, body: str) -> None:
        if status_code is None:
            message = f"Transcription request failed: {body}"
        else:
            message = f"Transcription API error: {status_code} - {body}"
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class RenderingFailed(AppError):
    """Document generation failed."""
