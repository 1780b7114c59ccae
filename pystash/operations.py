"""The closed set of STASH API operations."""

from __future__ import annotations

from enum import Enum

from .exceptions import StashUnrecognizedOperationError


class Operation(str, Enum):
    """Operations known to the client.

    The value is the operation name; :attr:`endpoint` is the API path the
    operation is sent to.
    """

    READ = "read"
    WRITE = "write"
    COPY = "copy"
    MOVE = "move"
    DELETE = "delete"
    RENAME = "rename"
    LIST_ALL = "listAll"
    LIST_FILES = "listFiles"
    LIST_SMART_FOLDER_FILES = "listSmartFolderFiles"
    LIST_FOLDERS = "listFolders"
    GET_FOLDER_ID = "getFolderId"
    CREATE_DIRECTORY = "createDirectory"
    RENAME_DIRECTORY = "renameDirectory"
    MOVE_DIRECTORY = "moveDirectory"
    COPY_DIRECTORY = "copyDirectory"
    DELETE_DIRECTORY = "deleteDirectory"
    GET_FILE_INFO = "getFileInfo"
    GET_FOLDER_INFO = "getFolderInfo"
    SET_FILE_LOCK = "setFileLock"
    GET_FILE_LOCK = "getFileLock"
    CLEAR_FILE_LOCK = "clearFileLock"
    GET_TAGS = "getTags"
    SET_TAGS = "setTags"
    ADD_TAG = "addTag"
    DELETE_TAG = "deleteTag"
    GET_SYNC_INFO = "getSyncInfo"
    GET_VAULT_INFO = "getVaultInfo"
    CHECK_CREDENTIALS = "checkCredentials"
    CHECK_AD_CREDENTIALS = "checkAdCredentials"
    IS_VALID_USER = "isValidUser"
    SET_PERMISSIONS = "setPermissions"
    CHECK_PERMISSIONS = "checkPermissions"
    LIST_VERSIONS = "listVersions"
    READ_VERSION = "readVersion"
    RESTORE_VERSION = "restoreVersion"
    DELETE_VERSION = "deleteVersion"
    WEB_ERASE_TOKEN = "webEraseToken"
    WEB_ERASE_STORE = "webEraseStore"
    WEB_ERASE_RETRIEVE = "webEraseRetrieve"
    WEB_ERASE_UPDATE = "webEraseUpdate"
    WEB_ERASE_DELETE = "webEraseDelete"
    WEB_ERASE_ONE_TIME_CODE = "webEraseOneTimeCode"
    WEB_ERASE_POLLING = "webErasePolling"
    WEB_ERASE_PROJECT_LIST = "webEraseProjectList"
    TEST_LOOPBACK = "testLoopback"
    NONE = "none"

    @property
    def endpoint(self) -> str:
        """API path relative to the base URL, e.g. ``api2/file/read``."""
        return _ENDPOINTS[self]

    @property
    def is_upload(self) -> bool:
        """Operation sends a multipart body with a file."""
        return self in (Operation.WRITE, Operation.WEB_ERASE_STORE)

    @property
    def is_download(self) -> bool:
        """Operation streams file content back instead of a JSON envelope."""
        return self in (
            Operation.READ,
            Operation.READ_VERSION,
            Operation.WEB_ERASE_RETRIEVE,
        )

    @classmethod
    def from_name(cls, name: str | Operation) -> Operation:
        """Resolve an operation name case-insensitively.

        Accepts the enum value (``listFiles``), the member name
        (``LIST_FILES``) and the short names used by the API endpoints
        (``listsffiles``, ``setperms``, ``checkcreds``, ...).

        Raises:
            StashUnrecognizedOperationError: If the name is unknown
        """
        if isinstance(name, Operation):
            return name
        key = str(name).strip().lower()
        try:
            return _LOOKUP[key]
        except KeyError:
            raise StashUnrecognizedOperationError(str(name)) from None


_FILE = "api2/file/"
_AUTH = "api2/auth/"
_WEB_ERASE = "api2/weberase/"

_ENDPOINTS: dict[Operation, str] = {
    Operation.READ: _FILE + "read",
    Operation.WRITE: _FILE + "write",
    Operation.COPY: _FILE + "copy",
    Operation.MOVE: _FILE + "move",
    Operation.DELETE: _FILE + "delete",
    Operation.RENAME: _FILE + "rename",
    Operation.LIST_ALL: _FILE + "listall",
    Operation.LIST_FILES: _FILE + "listfiles",
    Operation.LIST_SMART_FOLDER_FILES: _FILE + "listsffiles",
    Operation.LIST_FOLDERS: _FILE + "listfolders",
    Operation.GET_FOLDER_ID: _FILE + "getfolderid",
    Operation.CREATE_DIRECTORY: _FILE + "createdirectory",
    Operation.RENAME_DIRECTORY: _FILE + "renamedirectory",
    Operation.MOVE_DIRECTORY: _FILE + "movedirectory",
    Operation.COPY_DIRECTORY: _FILE + "copydirectory",
    Operation.DELETE_DIRECTORY: _FILE + "deletedirectory",
    Operation.GET_FILE_INFO: _FILE + "getfileinfo",
    Operation.GET_FOLDER_INFO: _FILE + "getfolderinfo",
    Operation.SET_FILE_LOCK: _FILE + "setfilelock",
    Operation.GET_FILE_LOCK: _FILE + "getfilelock",
    Operation.CLEAR_FILE_LOCK: _FILE + "clearfilelock",
    Operation.GET_TAGS: _FILE + "gettags",
    Operation.SET_TAGS: _FILE + "settags",
    Operation.ADD_TAG: _FILE + "addtag",
    Operation.DELETE_TAG: _FILE + "deletetag",
    Operation.GET_SYNC_INFO: _FILE + "getsyncinfo",
    Operation.GET_VAULT_INFO: _FILE + "getvaultinfo",
    Operation.CHECK_CREDENTIALS: _AUTH + "checkcreds",
    Operation.CHECK_AD_CREDENTIALS: _AUTH + "checkadcreds",
    Operation.IS_VALID_USER: _AUTH + "isvaliduser",
    Operation.SET_PERMISSIONS: _FILE + "setperms",
    Operation.CHECK_PERMISSIONS: _FILE + "checkperms",
    Operation.LIST_VERSIONS: _FILE + "listversions",
    Operation.READ_VERSION: _FILE + "readversion",
    Operation.RESTORE_VERSION: _FILE + "restoreversion",
    Operation.DELETE_VERSION: _FILE + "deleteversion",
    Operation.WEB_ERASE_TOKEN: _WEB_ERASE + "token",
    Operation.WEB_ERASE_STORE: _WEB_ERASE + "store",
    Operation.WEB_ERASE_RETRIEVE: _WEB_ERASE + "retrieve",
    Operation.WEB_ERASE_UPDATE: _WEB_ERASE + "update",
    Operation.WEB_ERASE_DELETE: _WEB_ERASE + "delete",
    Operation.WEB_ERASE_ONE_TIME_CODE: _WEB_ERASE + "onetimecode",
    Operation.WEB_ERASE_POLLING: _WEB_ERASE + "polling",
    Operation.WEB_ERASE_PROJECT_LIST: _WEB_ERASE + "projectlist",
    Operation.TEST_LOOPBACK: _AUTH + "testloopback",
    Operation.NONE: "",
}

_LOOKUP: dict[str, Operation] = {}
for _op in Operation:
    _LOOKUP[_op.value.lower()] = _op
    _LOOKUP[_op.name.lower()] = _op
    # Short endpoint names ("listsffiles", "checkcreds", ...) only resolve
    # within the file and auth groups; weberase names would collide.
    if _op.endpoint.startswith((_FILE, _AUTH)):
        _LOOKUP.setdefault(_op.endpoint.rsplit("/", 1)[1], _op)
del _op

assert set(_ENDPOINTS) == set(Operation), "every operation needs an endpoint"
