"""Canonical serialization and HMAC signing of STASH API requests.

Every request is signed over a canonical byte string built from the request
fields in the order ``url, api_version, api_id, api_timestamp`` followed by the
operation parameters in the order the caller supplied them. No key sorting is
ever applied.

Two canonicalization schemes exist across deployments and they are not
compatible with each other. The scheme is part of the deployment profile and
the same scheme must be used for signing and verification.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
from collections.abc import Mapping
from enum import Enum
from typing import Any
from urllib.parse import quote_plus

from .exceptions import StashSignatureError

logger = logging.getLogger(__name__)

SIGNATURE_FIELD = "api_signature"
REQUIRED_FIELDS = ("url", "api_version", "api_id", "api_timestamp")

# HMAC-SHA-256 rendered as lowercase hex
SIGNATURE_LENGTH = 64


class CanonicalScheme(str, Enum):
    """Serialization used to produce the bytes that get signed."""

    QUERY = "query"
    """URL-encoded key=value&key=value form"""

    JSON = "json"
    """Compact JSON with forward slashes left unescaped"""


def _encode(value: str) -> str:
    # Form encoding: only [A-Za-z0-9._-] stay literal, spaces become "+"
    return quote_plus(value, safe="").replace("~", "%7E")


def _scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "1" if value else "0"
    return str(value)


def _query_pairs(data: Mapping[str, Any] | list, prefix: str | None) -> list[str]:
    pairs: list[str] = []
    items = data.items() if isinstance(data, Mapping) else enumerate(data)
    for key, value in items:
        if value is None:
            continue
        name = _encode(str(key))
        if prefix is not None:
            name = f"{prefix}%5B{name}%5D"
        if isinstance(value, Mapping):
            pairs.extend(_query_pairs(value, name))
        elif isinstance(value, (list, tuple)):
            pairs.extend(_query_pairs(list(value), name))
        else:
            pairs.append(f"{name}={_encode(_scalar(value))}")
    return pairs


def build_query(fields: Mapping[str, Any]) -> str:
    """Serialize fields as an URL-encoded query string.

    Nested lists and mappings are flattened as ``key[0]=...`` and
    ``key[sub]=...`` with the brackets percent-encoded. ``None`` values are
    omitted and booleans become ``1``/``0``.

    Examples:
        >>> build_query({"a": "x y", "folderNames": ["My Home", "Docs"]})
        'a=x+y&folderNames%5B0%5D=My+Home&folderNames%5B1%5D=Docs'
    """
    return "&".join(_query_pairs(fields, None))


def canonicalize(
    fields: Mapping[str, Any], scheme: CanonicalScheme = CanonicalScheme.QUERY
) -> bytes:
    """Produce the canonical byte string for a set of request fields.

    Any ``api_signature`` entry is removed first so that re-signing an
    already signed payload yields the same bytes.

    Args:
        fields: Ordered request fields (url, api_version, api_id,
            api_timestamp, then operation parameters)
        scheme: Canonicalization scheme of the deployment profile

    Returns:
        UTF-8 encoded canonical string
    """
    data = {k: v for k, v in fields.items() if k != SIGNATURE_FIELD}
    if scheme is CanonicalScheme.JSON:
        text = json.dumps(data, separators=(",", ":"), ensure_ascii=True)
    else:
        text = build_query(data)
    return text.encode("utf-8")


def _check_required(fields: Mapping[str, Any]) -> None:
    for name in REQUIRED_FIELDS:
        value = fields.get(name)
        if value is None or value == "" or value == 0:
            raise StashSignatureError(name)


def sign(
    fields: Mapping[str, Any],
    secret: str,
    scheme: CanonicalScheme = CanonicalScheme.QUERY,
) -> str:
    """Compute the request signature.

    Args:
        fields: Ordered request fields
        secret: The API PW used as HMAC key
        scheme: Canonicalization scheme of the deployment profile

    Returns:
        64 character lowercase hexadecimal HMAC-SHA-256 digest

    Raises:
        StashSignatureError: If url, api_version, api_id or api_timestamp is
            missing or empty
    """
    _check_required(fields)
    message = canonicalize(fields, scheme)
    signature = hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()
    logger.debug(
        "Signed %d field(s) for %s using %s scheme",
        len(fields),
        fields.get("url"),
        scheme.value,
    )
    return signature


def verify(
    fields: Mapping[str, Any],
    signature: str,
    secret: str,
    scheme: CanonicalScheme = CanonicalScheme.QUERY,
) -> bool:
    """Check a signature against the fields it claims to cover."""
    if not signature or len(signature) != SIGNATURE_LENGTH:
        return False
    expected = sign(fields, secret, scheme)
    return hmac.compare_digest(expected, signature.lower())
