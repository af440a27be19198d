"""Exceptions raised while scanning chord charts."""


class ChartScanError(Exception):
    """Base class for chart scanning errors."""

    recoverable = False
    """Whether a batch can treat this failure as a skipped item."""


class NoTextFoundError(ChartScanError, ValueError):
    """OCR found no usable text in the image."""

    recoverable = True

    def __init__(self, message: str = "No text found in image"):
        super().__init__(message)


class InvalidImageError(ChartScanError, ValueError):
    """The image could not be decoded or has an unusable pixel buffer."""

    recoverable = True

    def __init__(self, message: str = "Invalid image"):
        super().__init__(message)


class RecognitionError(ChartScanError):
    """The OCR backend failed."""


class BatchTooLargeError(ChartScanError, ValueError):
    """A batch exceeds the configured maximum size."""

    def __init__(self, count: int, maximum: int):
        self.count = count
        self.maximum = maximum
        super().__init__(f"Batch size {count} exceeds maximum of {maximum} images")


def is_recoverable(error: BaseException) -> bool:
    """Return True if a per-image failure should be recorded as recoverable."""
    return isinstance(error, ChartScanError) and error.recoverable
