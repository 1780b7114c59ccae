"""Credential state and deployment profiles for the STASH API."""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any
from urllib.parse import urlparse

from .config import DEFAULT_BASE_URL
from .exceptions import StashConfigError, StashValidationError
from .signing import SIGNATURE_LENGTH, CanonicalScheme

API_VERSION = "1.0"
API_ID_LENGTH = 32
API_PW_LENGTH = 32

_HEX_RE = re.compile(r"^[0-9a-fA-F]+$")
_ALNUM_RE = re.compile(r"^[a-zA-Z0-9]+$")
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


@dataclass(frozen=True)
class DeploymentProfile:
    """Rules that differ between STASH deployments."""

    name: str
    """Profile name used in configuration"""

    id_charset: str
    """Character class of the API ID, hex or alnum"""

    pw_charset: str
    """Character class of the API PW, hex or alnum"""

    scheme: CanonicalScheme
    """Canonicalization scheme for request signatures"""

    allow_email_id: bool = False
    """Whether an email address is accepted as API ID"""

    version: str = API_VERSION
    """API version string sent with every request"""


PROFILES: dict[str, DeploymentProfile] = {
    "stash": DeploymentProfile(
        name="stash",
        id_charset="hex",
        pw_charset="alnum",
        scheme=CanonicalScheme.QUERY,
    ),
    "stash-v1": DeploymentProfile(
        name="stash-v1",
        id_charset="alnum",
        pw_charset="hex",
        scheme=CanonicalScheme.QUERY,
    ),
    "stash-json": DeploymentProfile(
        name="stash-json",
        id_charset="hex",
        pw_charset="alnum",
        scheme=CanonicalScheme.JSON,
        allow_email_id=True,
    ),
}

DEFAULT_PROFILE = PROFILES["stash"]


def get_profile(name: str | None) -> DeploymentProfile:
    """Look up a deployment profile by name (default profile for None)."""
    if not name:
        return DEFAULT_PROFILE
    try:
        return PROFILES[name.lower()]
    except KeyError:
        raise StashConfigError(
            f"Unknown deployment profile '{name}'. "
            f"Available profiles: {', '.join(PROFILES)}"
        ) from None


def _charset_re(charset: str) -> re.Pattern[str]:
    return _HEX_RE if charset == "hex" else _ALNUM_RE


def _check_api_id(value: Any, profile: DeploymentProfile) -> None:
    if not isinstance(value, str):
        raise StashValidationError("api_id Must be a String")
    if profile.allow_email_id and _EMAIL_RE.match(value):
        return
    if len(value) != API_ID_LENGTH:
        raise StashValidationError(
            f"api_id Must Be {API_ID_LENGTH} Characters in Length"
        )
    if not _charset_re(profile.id_charset).match(value):
        raise StashValidationError(
            f"api_id Has Invalid Characters, only {profile.id_charset} "
            "characters are allowed"
        )


def _check_api_pw(value: Any, profile: DeploymentProfile) -> None:
    if not isinstance(value, str):
        raise StashValidationError("api_pw Must be a String")
    if len(value) < API_PW_LENGTH:
        raise StashValidationError(
            f"api_pw Must Be at Least {API_PW_LENGTH} Characters in Length"
        )
    if not _charset_re(profile.pw_charset).match(value):
        raise StashValidationError(
            f"api_pw Has Invalid Characters, only {profile.pw_charset} "
            "characters are allowed"
        )


def _check_url(value: Any) -> None:
    if not isinstance(value, str):
        raise StashValidationError("url Must be a Valid URL - including https")
    parsed = urlparse(value)
    if not parsed.scheme or not parsed.netloc:
        raise StashValidationError("url Must be a Valid URL - including https")
    if parsed.scheme != "https":
        raise StashValidationError("url Must start with HTTPS")


def check_api_fields(
    fields: Mapping[str, Any], profile: DeploymentProfile = DEFAULT_PROFILE
) -> None:
    """Check request-level fields for sanity.

    Any subset of ``api_id``, ``api_pw``, ``api_signature``,
    ``api_timestamp``, ``api_version``, ``url`` and ``params`` may be given;
    other keys are ignored.

    Raises:
        StashValidationError: For the first field that is invalid
    """
    for name, value in fields.items():
        if name == "api_id":
            _check_api_id(value, profile)
        elif name == "api_pw":
            _check_api_pw(value, profile)
        elif name == "api_signature":
            if not isinstance(value, str) or len(value) != SIGNATURE_LENGTH:
                raise StashValidationError(
                    f"api_signature Must Be {SIGNATURE_LENGTH} Characters in Length"
                )
            if not _HEX_RE.match(value):
                raise StashValidationError(
                    "api_signature Has Invalid Characters, only a-f and 0-9 "
                    "are allowed"
                )
        elif name == "api_timestamp":
            if isinstance(value, bool) or not isinstance(value, int):
                raise StashValidationError("api_timestamp Must be an Integer Value")
            if value < 1:
                raise StashValidationError("api_timestamp Must be Greater Than 0")
        elif name == "api_version":
            if value != profile.version:
                raise StashValidationError(
                    "api_version Does Not Match API Version for this Code"
                )
        elif name == "url":
            _check_url(value)
        elif name == "params":
            if not isinstance(value, Mapping):
                raise StashValidationError("params Must be a Mapping")


def normalize_base_url(url: str | None) -> str:
    """Return the base URL with a trailing slash (default URL for None)."""
    url = url or DEFAULT_BASE_URL
    if not url.endswith("/"):
        url += "/"
    return url


@dataclass(frozen=True)
class Credentials:
    """API identity for one STASH account.

    Credentials are immutable. ``with_id`` and ``with_secret`` return a new
    validated instance instead of changing this one.
    """

    api_id: str
    api_pw: str = field(repr=False)
    base_url: str = DEFAULT_BASE_URL
    profile: DeploymentProfile = DEFAULT_PROFILE

    def __post_init__(self) -> None:
        _check_api_id(self.api_id, self.profile)
        _check_api_pw(self.api_pw, self.profile)
        object.__setattr__(self, "base_url", normalize_base_url(self.base_url))

    @property
    def version(self) -> str:
        return self.profile.version

    @property
    def scheme(self) -> CanonicalScheme:
        return self.profile.scheme

    def with_id(self, api_id: str) -> Credentials:
        return replace(self, api_id=api_id)

    def with_secret(self, api_pw: str) -> Credentials:
        return replace(self, api_pw=api_pw)

    def endpoint(self, path: str) -> str:
        """Build the absolute URL for an API path such as ``api2/file/read``."""
        return f"{self.base_url}{path.lstrip('/')}"

    def __str__(self) -> str:
        return f"STASHAPI Object - Version: {self.version} ID: {self.api_id}"
