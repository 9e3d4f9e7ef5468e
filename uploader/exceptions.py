"""Custom exception classes for the upload engine."""

from typing import Optional


class UploadError(Exception):
    """
    Base exception class for all upload engine errors.
    """
    pass


class TransportError(UploadError):
    """
    Raised by a transport adapter when a probe or chunk transmission fails.
    """
    pass


class TransientTransportError(TransportError):
    """
    Raised on network failures and timeouts. The chunk retries automatically.
    """
    pass


class PermanentTransportError(TransportError):
    """
    Raised when the receiver rejected a chunk for good. The chunk is not retried.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ValidationError(UploadError):
    """
    Raised when an item is refused at admission time. The item never enters the queue.
    """

    def __init__(self, message: str, item=None):
        super().__init__(message)
        self.item = item


class MaxFilesError(ValidationError):
    """
    Raised when a batch would push the queue over its file-count ceiling.
    """

    def __init__(self, message: str, items=None):
        super().__init__(message)
        self.items = list(items or [])


class MinFileSizeError(ValidationError):
    """
    Raised when an item is smaller than the configured minimum size.
    """
    pass


class MaxFileSizeError(ValidationError):
    """
    Raised when an item is larger than the configured maximum size.
    """
    pass


class FileTypeError(ValidationError):
    """
    Raised when an item matches none of the allowed extensions or MIME types.
    """
    pass


class IdentifierCollisionError(UploadError):
    """
    Recorded when an item's unique identifier is already tracked by the queue.
    """

    def __init__(self, message: str, item=None, unique_identifier: str = ""):
        super().__init__(message)
        self.item = item
        self.unique_identifier = unique_identifier


class IdentifierGenerationError(UploadError):
    """
    Raised when a custom unique identifier generator fails.
    """

    def __init__(self, message: str, item=None):
        super().__init__(message)
        self.item = item
