"""API client for the STASH Vault."""

from __future__ import annotations

import logging
import random
import threading
import time
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import httpx

from .config import config
from .credentials import Credentials, get_profile
from .crypto import decrypt_string, encrypt_string
from .exceptions import (
    StashConfigError,
    StashDownloadError,
    StashFileNotFoundError,
    StashInvalidResponseError,
    StashUploadError,
)
from .operations import Operation
from .request import RequestBuilder, SignedRequest
from .utils import (
    DEFAULT_CHUNK_SIZE,
    DOWNLOAD_ERROR_PROBE_SIZE,
    basename,
    error_message,
    parse_error_envelope,
    response_code,
)
from .validation import as_int, validate_params

logger = logging.getLogger(__name__)

Identifier = Mapping[str, Any]


class StashClient:
    """Client for interacting with the STASH Vault API.

    Every call validates its parameters locally, builds a freshly signed
    request and returns the decoded response envelope. Server errors are
    returned as envelopes, not raised. Network failures are turned into a
    ``{"code": "500", "message": ...}`` envelope so that callers always get
    the same result shape.
    """

    def __init__(
        self,
        api_id: str | None = None,
        api_pw: str | None = None,
        base_url: str | None = None,
        profile: str | None = None,
        max_retries: int = 0,
        retry_delay: float = 1.0,
        timeout: float = 30.0,
        verify_ssl: bool = True,
    ):
        """Initialize STASH API client.

        Args:
            api_id: Optional API ID (uses config if not provided)
            api_pw: Optional API PW (uses config if not provided)
            base_url: Optional base URL (uses config if not provided)
            profile: Optional deployment profile name (uses config if not
                provided)
            max_retries: Retry attempts after a network failure (default: 0).
                Server error responses are never retried.
            retry_delay: Initial delay between retries in seconds (default: 1.0)
            timeout: Request timeout in seconds (default: 30.0)
            verify_ssl: Verify the server certificate (default: True)
        """
        api_id = api_id or config.api_id
        api_pw = api_pw or config.api_pw

        if not api_id or not api_pw:
            raise StashConfigError(
                "API credentials not configured. Please set STASH_API_ID and "
                "STASH_API_PW environment variables or run 'stash init'."
            )

        self.credentials = Credentials(
            api_id=api_id,
            api_pw=api_pw,
            base_url=base_url or config.api_url,
            profile=get_profile(profile or config.profile),
        )
        self.builder = RequestBuilder(self.credentials)
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout
        self.verify_ssl = verify_ssl

        self._client: httpx.Client | None = None
        self._client_lock = threading.Lock()

    def __repr__(self) -> str:
        return f"StashClient({self.credentials})"

    def __enter__(self) -> StashClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _get_client(self) -> httpx.Client:
        """Get or create the httpx client shared by all threads."""
        with self._client_lock:
            if self._client is None or self._client.is_closed:
                self._client = httpx.Client(
                    timeout=httpx.Timeout(self.timeout),
                    follow_redirects=True,
                    verify=self.verify_ssl,
                )
            return self._client

    def close(self) -> None:
        """Close the client and release connections."""
        with self._client_lock:
            if self._client is not None and not self._client.is_closed:
                self._client.close()
            self._client = None

    def _calculate_retry_delay(self, attempt: int) -> float:
        """Calculate delay before next retry using exponential backoff.

        Args:
            attempt: Current attempt number (0-based)

        Returns:
            Delay in seconds
        """
        base_delay = self.retry_delay * (2**attempt)
        # Add jitter: +/- 25% of base delay
        jitter = base_delay * 0.25 * (2 * random.random() - 1)
        return base_delay + jitter

    # =========================
    # Transport
    # =========================

    @staticmethod
    def _transport_fault(error: Exception) -> dict[str, Any]:
        return {"code": "500", "message": str(error)}

    @staticmethod
    def _decode_response(response: httpx.Response) -> dict[str, Any]:
        """Decode a response body into an envelope.

        JSON envelopes are returned verbatim whatever the HTTP status. A
        non-JSON error reply becomes ``{"code": <status>, "message": <body>}``.

        Raises:
            StashInvalidResponseError: If a successful reply is not a JSON object
        """
        data: Any = None
        if response.content:
            try:
                data = response.json()
            except ValueError:
                data = None

        if isinstance(data, dict):
            return data

        if response.status_code != 200:
            return {"code": str(response.status_code), "message": response.text}

        content_type = response.headers.get("Content-Type", "")
        raise StashInvalidResponseError(
            f"Invalid response from server (Content-Type: {content_type or 'none'})"
        )

    def _send(self, request: SignedRequest, files: Any = None) -> dict[str, Any]:
        """Send a signed request, retrying network failures only.

        Args:
            request: The signed request
            files: Optional httpx ``files`` argument; sends a multipart body
                with the payload in the ``params`` field
                (multipart requests are not retried, the file stream is
                consumed by the first attempt)

        Returns:
            Decoded response envelope
        """
        client = self._get_client()
        last_exception: Exception | None = None
        logger.debug(f"Sending {request.operation.value} request to {request.url}")

        retries = self.max_retries if files is None else 0

        for attempt in range(retries + 1):
            try:
                if files is not None:
                    response = client.post(
                        request.url,
                        data=request.to_multipart_fields(),
                        files=files,
                    )
                else:
                    response = client.post(request.url, json=request.to_payload())
            except httpx.RequestError as e:
                last_exception = e
                if attempt < retries:
                    delay = self._calculate_retry_delay(attempt)
                    logger.debug(f"Network error ({e}), retrying in {delay:.2f}s")
                    time.sleep(delay)
                    continue
                break

            result = self._decode_response(response)
            logger.debug(
                "%s complete - code %s", request.operation.value, result.get("code")
            )
            return result

        logger.warning(f"Request to {request.url} failed: {last_exception}")
        return self._transport_fault(last_exception)

    def _call(
        self,
        operation: Operation,
        params: Identifier | None = None,
        path: Path | None = None,
    ) -> dict[str, Any]:
        """Send one operation, routing file transfers by operation kind.

        Args:
            operation: Operation to perform
            params: Request parameters
            path: Local file to upload, or to write a download to

        Raises:
            ValueError: If a file transfer operation is called without a path
        """
        if operation.is_upload or operation.is_download:
            if path is None:
                raise ValueError(f"{operation.value} requires a local file path")
            if operation.is_upload:
                return self._upload(operation, Path(path), params or {})
            return self._download(operation, params or {}, Path(path))

        request = self.builder.build(operation, params)
        return self._send(request)

    def _upload(
        self, operation: Operation, file_path: Path, params: Identifier
    ) -> dict[str, Any]:
        """Send a multipart request carrying a local file."""
        if not file_path.is_file():
            raise StashFileNotFoundError(str(file_path))

        request = self.builder.build(operation, params)
        with open(file_path, "rb") as f:
            files = {"file": (file_path.name, f, "application/octet-stream")}
            return self._send(request, files=files)

    def _download(
        self, operation: Operation, params: Identifier, output_path: Path
    ) -> dict[str, Any]:
        """Stream a file from the API into ``output_path``.

        The server reports errors by writing a JSON envelope into the stream.
        When the first bytes of the download are such an envelope the partial
        file is removed and the envelope is returned.

        Raises:
            StashDownloadError: If the output directory does not exist or the
                file cannot be written
        """
        output_path = Path(output_path)
        parent = output_path.parent
        if not parent.is_dir():
            raise StashDownloadError(f"Output directory does not exist: {parent}")

        request = self.builder.build(operation, params)
        client = self._get_client()
        logger.debug(f"Downloading {request.operation.value} to {output_path}")

        try:
            with client.stream("POST", request.url, json=request.to_payload()) as response:
                head = b""
                with open(output_path, "wb") as f:
                    for chunk in response.iter_bytes(chunk_size=DEFAULT_CHUNK_SIZE):
                        if len(head) < DOWNLOAD_ERROR_PROBE_SIZE:
                            head += chunk[: DOWNLOAD_ERROR_PROBE_SIZE - len(head)]
                        f.write(chunk)
                status = response.status_code
        except httpx.RequestError as e:
            output_path.unlink(missing_ok=True)
            logger.warning(f"Download from {request.url} failed: {e}")
            return self._transport_fault(e)
        except OSError as e:
            raise StashDownloadError(f"Failed to write file: {e}") from e

        envelope = parse_error_envelope(head)
        if envelope is None and status != 200:
            envelope = {"code": str(status), "message": head.decode("utf-8", "replace")}
        if envelope is not None:
            logger.debug(f"Download returned error envelope: {envelope.get('code')}")
            output_path.unlink(missing_ok=True)
            return envelope

        return {"code": "200", "message": "OK", "fileName": str(output_path)}

    # =========================
    # File Operations
    # =========================

    def get_file(self, src: Identifier, output_path: Path | str) -> dict[str, Any]:
        """Download a file from the Vault.

        Args:
            src: Source identifier including ``fileKey``
            output_path: Local path to write the file to

        Returns:
            ``{"code": "200", "message": "OK", "fileName": ...}`` on success,
            otherwise the error envelope
        """
        return self._call(Operation.READ, src, Path(output_path))

    def put_file(self, file_path: Path | str, dest: Identifier) -> dict[str, Any]:
        """Upload a local file to the Vault.

        The destination is checked first: files are not overwritten unless
        ``overwriteFile`` is 1 and ``overwriteFileId`` names the existing file.

        Args:
            file_path: Local file to upload
            dest: Destination identifier (destFolderId or destFolderNames),
                ``fileKey`` and optional overwrite settings

        Returns:
            Response envelope, with ``fileId`` and ``fileAliasId`` on success

        Raises:
            StashFileNotFoundError: If the local file does not exist
            StashValidationError: If the destination parameters are invalid
            StashUploadError: If the existence check contradicts the
                overwrite request
        """
        file_path = Path(file_path)
        if not file_path.is_file():
            raise StashFileNotFoundError(str(file_path))

        validate_params(Operation.WRITE, dest)

        overwrite = as_int(dest.get("overwriteFile")) == 1
        info_src: dict[str, Any] = {"fileName": basename(str(file_path))}
        if overwrite:
            info_src["fileId"] = as_int(dest["overwriteFileId"])
        else:
            if dest.get("destFolderNames"):
                info_src["folderNames"] = dest["destFolderNames"]
            if dest.get("destFolderId"):
                info_src["folderId"] = dest["destFolderId"]

        info = self.get_file_info(info_src)
        code = response_code(info)
        if overwrite and code == 404:
            raise StashUploadError(
                "Unable to Upload File, Overwrite Requested, but File Does Not Exist"
            )
        if not overwrite and code == 200:
            raise StashUploadError(
                "Unable to Upload File, File with Same Name Already Exists in "
                "Destination Folder and Overwrite Not Requested"
            )
        if not overwrite and code != 404:
            raise StashUploadError(
                f"Unable to Upload File, destination check failed: "
                f"{error_message(info)}"
            )

        return self._call(Operation.WRITE, dest, file_path)

    def copy_file(self, src: Identifier, dst: Identifier) -> dict[str, Any]:
        """Copy a file, creating a new file in the storage location(s).

        Returns:
            Response envelope, with ``fileAliasId`` on success
        """
        return self._call(Operation.COPY, {**src, **dst})

    def rename_file(self, src: Identifier, dst: Identifier) -> dict[str, Any]:
        """Rename a file (``dst`` needs only ``destFileName``)."""
        return self._call(Operation.RENAME, {**src, **dst})

    def move_file(self, src: Identifier, dst: Identifier) -> dict[str, Any]:
        """Move a file to another folder without touching storage."""
        return self._call(Operation.MOVE, {**src, **dst})

    def delete_file(self, src: Identifier) -> dict[str, Any]:
        return self._call(Operation.DELETE, src)

    def get_file_info(self, src: Identifier) -> dict[str, Any]:
        return self._call(Operation.GET_FILE_INFO, src)

    # =========================
    # Listing Operations
    # =========================

    def list_all(self, src: Identifier) -> dict[str, Any]:
        """List all files and folders in the Vault or in a folder.

        ``folderId`` may be 0 (root) or -1 (all folders).
        """
        return self._call(Operation.LIST_ALL, src)

    def list_files(self, src: Identifier) -> dict[str, Any]:
        """List the files in a folder.

        The shape of the ``files`` entries depends on ``outputType``; use
        :func:`pystash.listing.extract_names` to get plain names.
        """
        return self._call(Operation.LIST_FILES, src)

    def list_sf_files(self, src: Identifier) -> dict[str, Any]:
        """List the files in a SmartFolder (``sfId`` and ``outputType``)."""
        return self._call(Operation.LIST_SMART_FOLDER_FILES, src)

    def list_folders(self, src: Identifier) -> dict[str, Any]:
        return self._call(Operation.LIST_FOLDERS, src)

    # =========================
    # Folder Operations
    # =========================

    def get_folder_id(self, src: Identifier) -> dict[str, Any]:
        """Look up the folder ID for a folder path (``folderId`` in the
        envelope, 0 if not found)."""
        return self._call(Operation.GET_FOLDER_ID, src)

    def create_directory(self, src: Identifier) -> dict[str, Any]:
        """Recursively create a folder; the new ID is in ``folderId``."""
        return self._call(Operation.CREATE_DIRECTORY, src)

    def rename_directory(self, src: Identifier, dst: Identifier) -> dict[str, Any]:
        return self._call(Operation.RENAME_DIRECTORY, {**src, **dst})

    def move_directory(self, src: Identifier, dst: Identifier) -> dict[str, Any]:
        return self._call(Operation.MOVE_DIRECTORY, {**src, **dst})

    def copy_directory(self, src: Identifier, dst: Identifier) -> dict[str, Any]:
        """Copy a folder; the new folder ID is in ``folderId``."""
        return self._call(Operation.COPY_DIRECTORY, {**src, **dst})

    def delete_directory(self, src: Identifier) -> dict[str, Any]:
        """Recursively delete a folder."""
        return self._call(Operation.DELETE_DIRECTORY, src)

    def get_folder_info(self, src: Identifier) -> dict[str, Any]:
        return self._call(Operation.GET_FOLDER_INFO, src)

    def get_sync_info(self, src: Identifier) -> Any:
        """Get sync info (path, type, hash, timestamp) for a folder's contents.

        Returns:
            The ``syncInfo`` value when present, otherwise the envelope
        """
        result = self._call(Operation.GET_SYNC_INFO, src)
        if "syncInfo" in result:
            return result["syncInfo"]
        return result

    # =========================
    # Locks, Tags and Versions
    # =========================

    def set_file_lock(self, src: Identifier) -> dict[str, Any]:
        return self._call(Operation.SET_FILE_LOCK, src)

    def get_file_lock(self, src: Identifier) -> dict[str, Any]:
        return self._call(Operation.GET_FILE_LOCK, src)

    def clear_file_lock(self, src: Identifier) -> dict[str, Any]:
        return self._call(Operation.CLEAR_FILE_LOCK, src)

    def get_tags(self, src: Identifier) -> dict[str, Any]:
        return self._call(Operation.GET_TAGS, src)

    def set_tags(self, src: Identifier, tags: list[str] | str) -> dict[str, Any]:
        """Replace the tags of a file."""
        return self._call(Operation.SET_TAGS, {**src, "tags": tags})

    def add_tag(self, src: Identifier, tag: str) -> dict[str, Any]:
        return self._call(Operation.ADD_TAG, {**src, "tag": tag})

    def delete_tag(self, src: Identifier, tag: str) -> dict[str, Any]:
        return self._call(Operation.DELETE_TAG, {**src, "tag": tag})

    def list_versions(self, src: Identifier) -> dict[str, Any]:
        return self._call(Operation.LIST_VERSIONS, src)

    def read_version(
        self, src: Identifier, output_path: Path | str
    ) -> dict[str, Any]:
        """Download a previous version of a file (``versionId``, ``fileKey``)."""
        return self._call(Operation.READ_VERSION, src, Path(output_path))

    def restore_version(self, src: Identifier) -> dict[str, Any]:
        return self._call(Operation.RESTORE_VERSION, src)

    def delete_version(self, src: Identifier) -> dict[str, Any]:
        return self._call(Operation.DELETE_VERSION, src)

    # =========================
    # Account Operations
    # =========================

    def get_vault_info(self) -> dict[str, Any]:
        """Get information on the user's Vault."""
        return self._call(Operation.GET_VAULT_INFO, {})

    def check_creds(self, src: Identifier) -> dict[str, Any]:
        """Check that the API credentials, username and file key match.

        A failed check counts as a failed login for the account.
        """
        return self._call(Operation.CHECK_CREDENTIALS, src)

    def check_ad_creds(self, src: Identifier) -> dict[str, Any]:
        """Check credentials against the account's directory service."""
        return self._call(Operation.CHECK_AD_CREDENTIALS, src)

    def check_vault_connection(self) -> tuple[bool, str]:
        """Check the connection to the Vault with the current API settings.

        Returns:
            Tuple of (connected, error message); the message is empty on
            success
        """
        result = self._call(Operation.TEST_LOOPBACK, None)
        if response_code(result) == 200:
            return True, ""
        return False, str(result.get("message") or "no message returned")

    def is_valid_user(self, src: Identifier) -> dict[str, Any]:
        """Check whether an account username exists."""
        return self._call(Operation.IS_VALID_USER, src)

    def set_permissions(self, src: Identifier) -> dict[str, Any]:
        """Set folder permissions from a ``permJson`` document.

        Returns:
            Response envelope, with the created/updated ``permIds``
        """
        return self._call(Operation.SET_PERMISSIONS, src)

    def check_permissions(self, src: Identifier) -> dict[str, Any]:
        """Check whether a user has the requested access to an object.

        Returns:
            Response envelope, with the boolean ``result``
        """
        return self._call(Operation.CHECK_PERMISSIONS, src)

    # =========================
    # WebErase Operations
    # =========================

    def web_erase_token(self, params: Identifier | None = None) -> dict[str, Any]:
        """Request a WebErase token (``token`` in the envelope)."""
        return self._call(Operation.WEB_ERASE_TOKEN, params or {})

    def web_erase_store(
        self, file_path: Path | str, params: Identifier
    ) -> dict[str, Any]:
        """Upload a file under a WebErase token.

        Args:
            file_path: Local file to upload
            params: ``token_key``, ``fileKey`` and ``destFolderId``
        """
        return self._call(Operation.WEB_ERASE_STORE, params, Path(file_path))

    def web_erase_retrieve(
        self, params: Identifier, output_path: Path | str
    ) -> dict[str, Any]:
        """Download a file stored under a WebErase token."""
        return self._call(Operation.WEB_ERASE_RETRIEVE, params, Path(output_path))

    def web_erase_update(self, params: Identifier) -> dict[str, Any]:
        return self._call(Operation.WEB_ERASE_UPDATE, params)

    def web_erase_delete(self, params: Identifier) -> dict[str, Any]:
        return self._call(Operation.WEB_ERASE_DELETE, params)

    def web_erase_one_time_code(self, params: Identifier) -> dict[str, Any]:
        """Confirm a WebErase transaction with a one-time code."""
        return self._call(Operation.WEB_ERASE_ONE_TIME_CODE, params)

    def web_erase_polling(self, params: Identifier) -> dict[str, Any]:
        """Poll whether a WebErase transaction has been validated."""
        return self._call(Operation.WEB_ERASE_POLLING, params)

    def web_erase_project_list(
        self, params: Identifier | None = None
    ) -> dict[str, Any]:
        return self._call(Operation.WEB_ERASE_PROJECT_LIST, params or {})

    # =========================
    # File Key Encryption
    # =========================

    def encrypt_string(self, value: str, want_hex: bool = True) -> str | bytes:
        """Encrypt a value (typically the file key) with the API PW."""
        return encrypt_string(value, self.credentials.api_pw, want_hex)

    def decrypt_string(self, blob: str | bytes, is_hex: bool = True) -> str:
        """Decrypt a value produced by :meth:`encrypt_string`."""
        return decrypt_string(blob, self.credentials.api_pw, is_hex)
