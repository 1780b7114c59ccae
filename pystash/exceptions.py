"""Exceptions raised by the STASH API client."""

from __future__ import annotations


class StashError(Exception):
    """Base exception for all pystash errors."""


class StashValidationError(StashError, ValueError):
    """Raised when request parameters cannot possibly succeed server-side.

    Validation happens before anything is sent, so these errors are never
    retried.
    """

    def __init__(self, reason: str, operation: str | None = None):
        self.reason = reason
        self.operation = operation
        if operation:
            super().__init__(f"Invalid parameters for '{operation}': {reason}")
        else:
            super().__init__(reason)


class StashUnrecognizedOperationError(StashValidationError):
    """Raised when an operation name is not part of the known operation set."""

    def __init__(self, operation: str):
        super().__init__("Unrecognized Operation Specified", operation)


class StashSignatureError(StashError):
    """Raised when a request cannot be signed (MissingField)."""

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"Input missing {field} for signature calculation")


class StashCryptoError(StashError):
    """Base exception for file key encryption errors."""


class StashKeyTooShortError(StashCryptoError):
    """Raised when the secret is shorter than the 32 byte cipher key."""


class StashInsufficientDataError(StashCryptoError):
    """Raised when a ciphertext blob is shorter than the IV."""


class StashDecryptionError(StashCryptoError):
    """Raised when a ciphertext blob is malformed or does not decrypt."""


class StashConfigError(StashError):
    """Raised when API credentials are not configured."""


class StashFileNotFoundError(StashError):
    """Raised when a local file to upload does not exist."""

    def __init__(self, file_path: str):
        self.file_path = file_path
        super().__init__(f"File not found: {file_path}")


class StashUploadError(StashError):
    """Raised when an upload cannot be performed."""


class StashDownloadError(StashError):
    """Raised when a download cannot be written locally."""


class StashInvalidResponseError(StashError):
    """Raised when the server returns a body that is not a JSON envelope."""
