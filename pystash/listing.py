"""Output shapes for listing operations.

The ``outputType`` parameter of listFiles, listFolders and
listSmartFolderFiles selects how the server shapes the ``files`` or
``folders`` entries of its response. :func:`extract_names` turns any of these
shapes back into a flat list of names.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import IntEnum
from typing import Any, Callable


class OutputType(IntEnum):
    """Response shapes for listing operations."""

    NAMES = 0
    """Plain list of names"""

    PATH_ARRAYS = 1
    """Each entry is a list of path segments ending with the name"""

    PATH_STRINGS = 2
    """Each entry is a "/" separated path string"""

    DETAILS = 3
    """Each entry is an object with at least a ``name`` field"""

    TREE_MODEL = 4
    """UI tree model objects"""

    GRID_MODEL = 5
    """UI grid model objects"""

    LIST_MODEL = 6
    """UI list model objects

    File entries name themselves with ``name`` (``text`` as fallback),
    folder entries with ``text``.
    """

    @property
    def is_model(self) -> bool:
        return self >= OutputType.TREE_MODEL

    @classmethod
    def parse(cls, value: Any) -> OutputType:
        """Convert an int, numeric string or member name to an OutputType."""
        if isinstance(value, OutputType):
            return value
        if isinstance(value, str) and not value.strip().lstrip("-").isdigit():
            return cls[value.strip().upper()]
        return cls(int(value))


def _format_names(entries: list[Any]) -> list[str]:
    return [str(entry) for entry in entries]


def _format_path_arrays(entries: list[Any]) -> list[str]:
    names = []
    for entry in entries:
        if isinstance(entry, (list, tuple)) and entry:
            names.append(str(entry[-1]))
        else:
            names.append("")
    return names


def _format_path_strings(entries: list[Any]) -> list[str]:
    return [str(entry).rstrip("/").rsplit("/", 1)[-1] for entry in entries]


def _format_details(entries: list[Any]) -> list[str]:
    return [
        str(entry.get("name", "")) if isinstance(entry, Mapping) else str(entry)
        for entry in entries
    ]


def _format_file_model(entries: list[Any]) -> list[str]:
    names = []
    for entry in entries:
        if isinstance(entry, Mapping) and "name" in entry:
            names.append(str(entry["name"]))
        elif isinstance(entry, Mapping) and "text" in entry:
            names.append(str(entry["text"]))
        else:
            names.append("")
    return names


def _format_folder_model(entries: list[Any]) -> list[str]:
    return [
        str(entry.get("text", "")) if isinstance(entry, Mapping) else ""
        for entry in entries
    ]


FORMATTERS: dict[OutputType, Callable[[list[Any]], list[str]]] = {
    OutputType.NAMES: _format_names,
    OutputType.PATH_ARRAYS: _format_path_arrays,
    OutputType.PATH_STRINGS: _format_path_strings,
    OutputType.DETAILS: _format_details,
}

# UI model entries are read by kind: files carry "name" (or "text"),
# folders only "text".
MODEL_FORMATTERS: dict[str, Callable[[list[Any]], list[str]]] = {
    "files": _format_file_model,
    "folders": _format_folder_model,
}


def extract_names(
    envelope: Mapping[str, Any], key: str, output_type: int | OutputType
) -> list[str]:
    """Extract entry names from a listing response.

    Args:
        envelope: Decoded response envelope
        key: ``"files"`` or ``"folders"``
        output_type: The outputType the request was sent with

    Returns:
        List of names, empty if the envelope has no entries

    Examples:
        >>> extract_names({"files": [{"text": "a.txt"}]}, "files", 4)
        ['a.txt']
        >>> extract_names({"folders": ["My Home/Docs"]}, "folders", 2)
        ['Docs']
    """
    entries = envelope.get(key) or []
    if isinstance(entries, Mapping):
        entries = list(entries.values())
    shape = OutputType.parse(output_type)
    if shape.is_model:
        return MODEL_FORMATTERS.get(key, _format_file_model)(list(entries))
    return FORMATTERS[shape](list(entries))
