"""Parameter validation for STASH API operations.

Each operation maps to a tuple of predicates in :data:`RULES`. A predicate
reads the parameter mapping and raises :class:`StashValidationError` with a
reason string when the request could not possibly succeed server-side.
Predicates run in order and the first failure wins. Parameters are never
modified.

Numeric parameters may be given as ``int`` or as numeric strings
(``{"fileId": "1"}``), matching what callers typically read from forms and
config files.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from functools import partial
from typing import Any, Callable, Optional

from .exceptions import StashValidationError
from .operations import Operation

logger = logging.getLogger(__name__)

Params = Mapping[str, Any]
Predicate = Callable[[Params], None]


# =============================================================================
# Value helpers
# =============================================================================


def as_int(value: Any) -> Optional[int]:
    """Convert an int or numeric string to int, None if not possible."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def _int_at_least(params: Params, key: str, minimum: int) -> bool:
    value = as_int(params.get(key))
    return value is not None and value >= minimum


def _non_empty(params: Params, key: str) -> bool:
    value = params.get(key)
    if value is None or value is False:
        return False
    if isinstance(value, (str, list, tuple, dict)):
        return len(value) > 0
    return True


def _non_empty_path(params: Params, key: str) -> bool:
    value = params.get(key)
    return isinstance(value, (list, tuple)) and len(value) > 0


# =============================================================================
# Predicates
# =============================================================================


def validate_source(
    params: Params, folder_only: bool = False, allow_zero_ids: bool = False
) -> None:
    """Check the source identifier.

    With ``folder_only`` a folderId or folderNames is required. Otherwise a
    fileId, or a fileName plus either folderId or folderNames, is required.
    ``allow_zero_ids`` accepts fileId 0 and folderId 0 (root) or -1 (all
    folders).
    """
    if folder_only:
        if _int_at_least(params, "folderId", -1 if allow_zero_ids else 1):
            return
        if _non_empty_path(params, "folderNames"):
            return
        raise StashValidationError(
            "Source Parameters Invalid - folderId or folderNames MUST be specified"
        )

    if _int_at_least(params, "fileId", 0 if allow_zero_ids else 1):
        return
    if _non_empty(params, "fileName"):
        if _int_at_least(params, "folderId", 1):
            return
        if _non_empty_path(params, "folderNames"):
            return
    raise StashValidationError(
        "Source Parameters Invalid - fileId or fileName plus either folderId "
        "or folderNames MUST be specified"
    )


def validate_destination(
    params: Params, folder_only: bool = False, name_only: bool = False
) -> None:
    """Check the destination identifier.

    With ``folder_only`` a destFolderId or destFolderNames is required. With
    ``name_only`` only destFileName is required. Otherwise destFileName plus
    either destFolderId or destFolderNames is required.
    """
    if folder_only and name_only:
        raise StashValidationError("folderOnly and nameOnly cannot both be set")

    if folder_only:
        if _int_at_least(params, "destFolderId", 1):
            return
        if _non_empty_path(params, "destFolderNames"):
            return
        raise StashValidationError(
            "Destination Parameters Invalid - destFolderId or destFolderNames "
            "MUST be specified"
        )

    if _non_empty(params, "destFileName"):
        if name_only:
            return
        if _int_at_least(params, "destFolderId", 1):
            return
        if _non_empty_path(params, "destFolderNames"):
            return
    raise StashValidationError(
        "Destination Parameters Invalid - destFileName plus either destFolderId "
        "or destFolderNames MUST be specified"
    )


def validate_output_type(params: Params) -> None:
    """Require an outputType of 0 or greater."""
    if not _int_at_least(params, "outputType", 0):
        raise StashValidationError(
            "Source Parameters Invalid - outputType MUST be specified"
        )


def validate_search(params: Params, require_terms: bool = False) -> None:
    """Require search terms when the operation needs them."""
    if require_terms and not _non_empty(params, "search"):
        raise StashValidationError(
            "Search Terms Invalid - search parameter MUST be specified"
        )


def validate_smart_folder_id(params: Params) -> None:
    if not _int_at_least(params, "sfId", 1):
        raise StashValidationError("Invalid SmartFolder ID")


def validate_overwrite(params: Params) -> None:
    """Check overwriteFile and the overwriteFileId it requires."""
    if not _non_empty(params, "overwriteFile"):
        return
    overwrite = as_int(params.get("overwriteFile"))
    if overwrite not in (0, 1):
        raise StashValidationError("Invalid overwriteFile value")
    if overwrite == 1:
        if not _non_empty(params, "overwriteFileId"):
            raise StashValidationError(
                "overwriteFileId parameter must be specified with overwriteFile"
            )
        if not _int_at_least(params, "overwriteFileId", 1):
            raise StashValidationError("Invalid value for overwriteFileId")


def validate_file_key(params: Params) -> None:
    if not _non_empty(params, "fileKey"):
        raise StashValidationError("Invalid fileKey Parameter")


def validate_credentials(
    params: Params,
    file_key: bool = False,
    username: bool = False,
    api_id: bool = False,
    api_pw: bool = False,
) -> None:
    """Require the credential fields selected by the flags."""
    checks = (
        (file_key, "fileKey"),
        (username, "accountUsername"),
        (api_id, "apiid"),
        (api_pw, "apipw"),
    )
    for enabled, key in checks:
        if enabled and not _non_empty(params, key):
            raise StashValidationError(
                f"Source Parameters Invalid - {key} MUST be specified and not blank"
            )


def validate_set_permissions(params: Params) -> None:
    if not _non_empty(params, "permJson"):
        raise StashValidationError("Invalid permissions Json parameter")


def validate_check_permissions(params: Params) -> None:
    for key in ("objectUserId", "objectId", "objectIdType"):
        if not _int_at_least(params, key, 1):
            raise StashValidationError(f"Invalid {key} parameter")
    if not _int_at_least(params, "requestedAccess", 0):
        raise StashValidationError("Invalid requestedAccess parameter")


def validate_tag(params: Params) -> None:
    if not _non_empty(params, "tag"):
        raise StashValidationError("Invalid tag parameter")


def validate_tags(params: Params) -> None:
    if not _non_empty(params, "tags"):
        raise StashValidationError("Invalid tags parameter")


def validate_version_id(params: Params) -> None:
    if not _int_at_least(params, "versionId", 1):
        raise StashValidationError("Invalid versionId parameter")


def validate_token_key(params: Params) -> None:
    if not _non_empty(params, "token_key"):
        raise StashValidationError("Invalid token_key parameter")


def validate_web_erase_folder(params: Params) -> None:
    if not _int_at_least(params, "destFolderId", 1):
        raise StashValidationError("Invalid destFolderId parameter")


# =============================================================================
# Dispatch table
# =============================================================================

_file_source = partial(validate_source, folder_only=False, allow_zero_ids=False)
_folder_source = partial(validate_source, folder_only=True, allow_zero_ids=False)
_listing_source = partial(validate_source, folder_only=True, allow_zero_ids=True)
_full_dest = partial(validate_destination)
_folder_dest = partial(validate_destination, folder_only=True)
_name_dest = partial(validate_destination, name_only=True)
_optional_search = partial(validate_search, require_terms=False)

RULES: dict[Operation, tuple[Predicate, ...]] = {
    Operation.READ: (_file_source, validate_file_key),
    Operation.WRITE: (_folder_dest, validate_overwrite, validate_file_key),
    Operation.COPY: (_file_source, _full_dest),
    Operation.MOVE: (_file_source, _folder_dest),
    Operation.DELETE: (_file_source,),
    Operation.RENAME: (_file_source, _name_dest),
    Operation.LIST_ALL: (_listing_source, _optional_search),
    Operation.LIST_FILES: (_listing_source, validate_output_type, _optional_search),
    Operation.LIST_SMART_FOLDER_FILES: (
        validate_output_type,
        validate_smart_folder_id,
    ),
    Operation.LIST_FOLDERS: (
        _listing_source,
        validate_output_type,
        _optional_search,
    ),
    Operation.GET_FOLDER_ID: (_folder_source,),
    Operation.CREATE_DIRECTORY: (_folder_source,),
    Operation.RENAME_DIRECTORY: (_folder_source, _folder_dest),
    Operation.MOVE_DIRECTORY: (_folder_source, _folder_dest),
    Operation.COPY_DIRECTORY: (_folder_source, _folder_dest),
    Operation.DELETE_DIRECTORY: (_folder_source,),
    Operation.GET_FILE_INFO: (_file_source,),
    Operation.GET_FOLDER_INFO: (_folder_source,),
    Operation.SET_FILE_LOCK: (_file_source,),
    Operation.GET_FILE_LOCK: (_file_source,),
    Operation.CLEAR_FILE_LOCK: (_file_source,),
    Operation.GET_TAGS: (_file_source,),
    Operation.SET_TAGS: (_file_source, validate_tags),
    Operation.ADD_TAG: (_file_source, validate_tag),
    Operation.DELETE_TAG: (_file_source, validate_tag),
    Operation.GET_SYNC_INFO: (_folder_source,),
    Operation.GET_VAULT_INFO: (),
    Operation.CHECK_CREDENTIALS: (
        partial(validate_credentials, file_key=True, username=True),
    ),
    Operation.CHECK_AD_CREDENTIALS: (
        partial(
            validate_credentials,
            file_key=True,
            username=True,
            api_id=True,
            api_pw=True,
        ),
    ),
    Operation.IS_VALID_USER: (partial(validate_credentials, username=True),),
    Operation.SET_PERMISSIONS: (validate_set_permissions,),
    Operation.CHECK_PERMISSIONS: (validate_check_permissions,),
    Operation.LIST_VERSIONS: (_file_source,),
    Operation.READ_VERSION: (_file_source, validate_version_id, validate_file_key),
    Operation.RESTORE_VERSION: (_file_source, validate_version_id),
    Operation.DELETE_VERSION: (_file_source, validate_version_id),
    Operation.WEB_ERASE_TOKEN: (),
    Operation.WEB_ERASE_STORE: (
        validate_token_key,
        validate_file_key,
        validate_web_erase_folder,
    ),
    Operation.WEB_ERASE_RETRIEVE: (validate_token_key, validate_file_key),
    Operation.WEB_ERASE_UPDATE: (validate_token_key, validate_file_key),
    Operation.WEB_ERASE_DELETE: (validate_token_key,),
    Operation.WEB_ERASE_ONE_TIME_CODE: (validate_token_key,),
    Operation.WEB_ERASE_POLLING: (validate_token_key,),
    Operation.WEB_ERASE_PROJECT_LIST: (),
    Operation.TEST_LOOPBACK: (),
    Operation.NONE: (),
}

assert set(RULES) == set(Operation), "every operation needs a validation rule"

# Operations that accept params=None
_NULL_PARAMS_ALLOWED = (Operation.NONE, Operation.TEST_LOOPBACK)


def validate_params(
    operation: str | Operation, params: Optional[Params]
) -> Operation:
    """Validate the parameters for an operation.

    Args:
        operation: Operation or operation name (case-insensitive)
        params: Parameters that will be sent with the request

    Returns:
        The resolved :class:`Operation`

    Raises:
        StashUnrecognizedOperationError: If the operation name is unknown
        StashValidationError: If a required parameter is missing or invalid

    Example:
        >>> validate_params("copy", {"fileId": 1, "destFileName": "x",
        ...                          "destFolderId": 5})
        <Operation.COPY: 'copy'>
    """
    op = Operation.from_name(operation)

    if op is Operation.NONE:
        return op
    if params is None:
        if op in _NULL_PARAMS_ALLOWED:
            return op
        raise StashValidationError("Parameters Can't Be Null", op.value)

    for predicate in RULES[op]:
        try:
            predicate(params)
        except StashValidationError as e:
            logger.debug("Validation failed for %s: %s", op.value, e.reason)
            raise StashValidationError(e.reason, op.value) from None

    logger.debug("Validated %d parameter(s) for %s", len(params), op.value)
    return op
