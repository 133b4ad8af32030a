"""
Errors
======

Error taxonomy for the frame extraction core.

The HTTP boundary maps these kinds to distinct status codes, so the core
must never collapse "input invalid" into "processing failed":

    FrameExtractionError
    ├── InvalidArgumentError   -> 400 (no decoder started)
    ├── SourceNotFoundError    -> 404 (no decoder started)
    └── DecodeFailureError     -> 500 (decoder torn down, no partial frames)
        └── DecodeTimeoutError -> 500 (watchdog expired)

Under-delivery is NOT an error. It is reported on the result.
"""


class FrameExtractionError(Exception):
    """Base exception for all frame extraction errors."""


class InvalidArgumentError(FrameExtractionError):
    """Raised when request parameters are missing, non-numeric or out of range."""


class SourceNotFoundError(FrameExtractionError):
    """Raised when the referenced media file does not exist."""

    def __init__(self, filename: str) -> None:
        self.filename = filename
        super().__init__(f"Video not found: {filename}")


class DecodeFailureError(FrameExtractionError):
    """Raised when the external decoder fails before enough frames are produced."""


class DecodeTimeoutError(DecodeFailureError):
    """Raised when the decoder does not settle within the watchdog timeout."""

    def __init__(self, timeout_seconds: float) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Decoder did not finish within {timeout_seconds:.1f}s")
