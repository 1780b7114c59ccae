"""Utility functions for the STASH API client."""

import json
from collections.abc import Mapping
from typing import Any, Optional

# =============================================================================
# Constants
# =============================================================================

# Prepended to or removed from Vault paths as needed
BASE_VAULT_FOLDER: str = "My Home"

# Bytes inspected at the start of a download to detect an error envelope
DOWNLOAD_ERROR_PROBE_SIZE: int = 250

# Codes the server uses for error envelopes written into download streams
DOWNLOAD_ERROR_CODES: frozenset[str] = frozenset({"400", "403", "404", "500"})

# Chunk size for streamed downloads
DEFAULT_CHUNK_SIZE: int = 8192


# =============================================================================
# Response envelope utilities
# =============================================================================


def response_code(envelope: Optional[Mapping[str, Any]]) -> int:
    """Return the status code of a response envelope.

    Args:
        envelope: Decoded response envelope

    Returns:
        The code as an integer, or -1 if the envelope has no usable code

    Examples:
        >>> response_code({"code": "200", "message": "OK"})
        200
        >>> response_code({})
        -1
    """
    if not envelope:
        return -1
    code = envelope.get("code")
    try:
        return int(code) if code not in (None, "") else -1
    except (TypeError, ValueError):
        return -1


def is_ok(envelope: Optional[Mapping[str, Any]]) -> bool:
    """Check whether a response envelope reports success (code 200)."""
    return response_code(envelope) == 200


def error_message(envelope: Optional[Mapping[str, Any]]) -> str:
    """Build a readable message from an error envelope.

    Uses ``error.extendedErrorMessage`` when present, falling back to
    ``message``.
    """
    if not envelope:
        return "no response"
    error = envelope.get("error")
    message = str(envelope.get("message") or "no message returned")
    if isinstance(error, Mapping) and error.get("extendedErrorMessage"):
        return f"{message} - {error['extendedErrorMessage']}"
    return message


def parse_error_envelope(buffer: bytes) -> Optional[dict[str, Any]]:
    """Detect an error envelope written in place of downloaded content.

    Args:
        buffer: The first bytes of a download

    Returns:
        The decoded envelope if the buffer is a JSON object whose code is one
        of the download error codes, otherwise None
    """
    try:
        data = json.loads(buffer.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        return None
    if isinstance(data, dict) and str(data.get("code")) in DOWNLOAD_ERROR_CODES:
        return data
    return None


# =============================================================================
# Vault path utilities
# =============================================================================


def folder_names(path: str, add_base: bool = True) -> list[str]:
    """Split a Vault folder path into its segments.

    Args:
        path: Folder path using "/" separators (e.g. "Documents/Reports")
        add_base: Prepend the base vault folder when it is missing

    Returns:
        List of path segments

    Examples:
        >>> folder_names("Documents/Reports")
        ['My Home', 'Documents', 'Reports']
        >>> folder_names("/My Home/Documents/")
        ['My Home', 'Documents']
        >>> folder_names("")
        ['My Home']
    """
    parts = [part for part in path.replace("\\", "/").split("/") if part]
    if add_base and (not parts or parts[0] != BASE_VAULT_FOLDER):
        parts.insert(0, BASE_VAULT_FOLDER)
    return parts


def folder_path(names: list[str], strip_base: bool = True) -> str:
    """Join folder segments into a display path.

    Examples:
        >>> folder_path(["My Home", "Documents"])
        'Documents'
        >>> folder_path(["My Home", "Documents"], strip_base=False)
        'My Home/Documents'
    """
    parts = list(names)
    if strip_base and parts and parts[0] == BASE_VAULT_FOLDER:
        parts = parts[1:]
    return "/".join(parts)


def basename(path: str) -> str:
    """Return the file name of a path with either separator style.

    Examples:
        >>> basename("C:\\\\data\\\\report.pdf")
        'report.pdf'
        >>> basename("/tmp/notes.txt")
        'notes.txt'
    """
    return path.replace("\\", "/").rstrip("/").rsplit("/", 1)[-1]


# =============================================================================
# Size formatting utilities
# =============================================================================


def format_size(size_bytes: int) -> str:
    """Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string (e.g., "1.5 MB", "256 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / 1024 / 1024:.1f} MB"
    else:
        return f"{size_bytes / 1024 / 1024 / 1024:.1f} GB"
