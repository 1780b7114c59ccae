"""Assembly of signed STASH API requests.

A :class:`SignedRequest` is built fresh for every call and never reused. It
carries its own copy of the parameters, so nothing leaks from one operation
into the next.
"""

from __future__ import annotations

import copy
import json
import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Optional

from .credentials import Credentials
from .exceptions import StashValidationError
from .operations import Operation
from .signing import REQUIRED_FIELDS, SIGNATURE_FIELD, sign, verify
from .validation import validate_params

logger = logging.getLogger(__name__)

RESERVED_FIELDS = frozenset(REQUIRED_FIELDS)


@dataclass(frozen=True)
class SignedRequest:
    """A validated, timestamped and signed request ready for the transport."""

    operation: Operation
    url: str
    version: str
    api_id: str
    timestamp: int
    signature: str
    params: Mapping[str, Any] = field(hash=False)

    def signed_fields(self) -> dict[str, Any]:
        """Fields covered by the signature, in signing order."""
        fields: dict[str, Any] = {
            "url": self.url,
            "api_version": self.version,
            "api_id": self.api_id,
            "api_timestamp": self.timestamp,
        }
        fields.update(self.params)
        return fields

    def to_payload(self) -> dict[str, Any]:
        """JSON body sent to the API."""
        payload: dict[str, Any] = {
            "url": self.url,
            "api_version": self.version,
            "api_id": self.api_id,
            "api_timestamp": self.timestamp,
            SIGNATURE_FIELD: self.signature,
        }
        payload.update(self.params)
        return payload

    def to_multipart_fields(self) -> dict[str, str]:
        """Form fields for upload requests (the file part is added by the
        transport)."""
        return {"params": json.dumps(self.to_payload(), separators=(",", ":"))}


class RequestBuilder:
    """Builds signed requests from read-only credentials.

    The builder holds no per-request state and can be shared between threads.
    """

    def __init__(
        self,
        credentials: Credentials,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the builder.

        Args:
            credentials: API credentials used for every request
            clock: Source of the current epoch time in seconds
        """
        self.credentials = credentials
        self.clock = clock

    def _timestamp(self) -> int:
        timestamp = int(self.clock())
        if timestamp < 1:
            raise StashValidationError("api_timestamp Must be Greater Than 0")
        logger.debug(f"Request timestamp: {timestamp}")
        return timestamp

    def build(
        self,
        operation: str | Operation,
        params: Optional[Mapping[str, Any]] = None,
        url: Optional[str] = None,
    ) -> SignedRequest:
        """Validate, timestamp and sign a request.

        Args:
            operation: Operation (or operation name) being performed
            params: Operation parameters, in the order they should be signed
            url: Override for the endpoint URL (defaults to the operation's
                endpoint under the credentials' base URL)

        Returns:
            The signed request

        Raises:
            StashValidationError: If the parameters fail validation or
                contain reserved request fields
            StashSignatureError: If a required signing field is empty
        """
        op = validate_params(operation, params)

        clean: dict[str, Any] = {}
        for key, value in (params or {}).items():
            if key == SIGNATURE_FIELD:
                continue
            if key in RESERVED_FIELDS:
                raise StashValidationError(
                    f"{key} is a reserved request field", op.value
                )
            clean[key] = copy.deepcopy(value)

        target = url or self.credentials.endpoint(op.endpoint)
        fields: dict[str, Any] = {
            "url": target,
            "api_version": self.credentials.version,
            "api_id": self.credentials.api_id,
            "api_timestamp": self._timestamp(),
        }
        fields.update(clean)

        signature = sign(fields, self.credentials.api_pw, self.credentials.scheme)

        return SignedRequest(
            operation=op,
            url=target,
            version=fields["api_version"],
            api_id=fields["api_id"],
            timestamp=fields["api_timestamp"],
            signature=signature,
            params=MappingProxyType(clean),
        )

    def verify(self, request: SignedRequest) -> bool:
        """Recompute the signature of a request with these credentials."""
        return verify(
            request.signed_fields(),
            request.signature,
            self.credentials.api_pw,
            self.credentials.scheme,
        )
