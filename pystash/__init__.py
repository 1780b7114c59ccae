"""PyStash - signed requests, parameter validation and file key crypto for
the STASH Vault API."""

from .api import StashClient
from .credentials import PROFILES, Credentials, DeploymentProfile, get_profile
from .crypto import decrypt_string, encrypt_string
from .exceptions import (
    StashConfigError,
    StashCryptoError,
    StashDecryptionError,
    StashDownloadError,
    StashError,
    StashFileNotFoundError,
    StashInsufficientDataError,
    StashInvalidResponseError,
    StashKeyTooShortError,
    StashSignatureError,
    StashUnrecognizedOperationError,
    StashUploadError,
    StashValidationError,
)
from .listing import OutputType, extract_names
from .operations import Operation
from .request import RequestBuilder, SignedRequest
from .signing import CanonicalScheme, build_query, canonicalize, sign, verify
from .validation import validate_params

__all__ = [
    "StashClient",
    "Credentials",
    "DeploymentProfile",
    "PROFILES",
    "get_profile",
    "Operation",
    "OutputType",
    "RequestBuilder",
    "SignedRequest",
    "CanonicalScheme",
    "StashError",
    "StashValidationError",
    "StashUnrecognizedOperationError",
    "StashSignatureError",
    "StashCryptoError",
    "StashKeyTooShortError",
    "StashInsufficientDataError",
    "StashDecryptionError",
    "StashConfigError",
    "StashFileNotFoundError",
    "StashUploadError",
    "StashDownloadError",
    "StashInvalidResponseError",
    "build_query",
    "canonicalize",
    "sign",
    "verify",
    "encrypt_string",
    "decrypt_string",
    "extract_names",
    "validate_params",
]
