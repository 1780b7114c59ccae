"""Unit tests for signed request assembly."""

import hashlib
import hmac
import json

import pytest

from pystash.credentials import PROFILES, Credentials
from pystash.exceptions import StashValidationError
from pystash.operations import Operation
from pystash.request import RequestBuilder
from pystash.signing import CanonicalScheme, build_query, canonicalize

API_ID = "0123456789abcdef0123456789abcdef"
API_PW = "abcdefghijklmnopqrstuvwxyzABCDEF"
BASE_URL = "https://vault.example.com/"
NOW = 1700000000


@pytest.fixture
def credentials():
    return Credentials(API_ID, API_PW, base_url=BASE_URL)


@pytest.fixture
def builder(credentials):
    return RequestBuilder(credentials, clock=lambda: NOW)


class TestRequestBuilder:
    """Tests for RequestBuilder.build()."""

    def test_builds_signed_request(self, builder):
        """Test the fields of a freshly built request."""
        request = builder.build("read", {"fileId": 10, "fileKey": "k"})
        assert request.operation is Operation.READ
        assert request.url == BASE_URL + "api2/file/read"
        assert request.version == "1.0"
        assert request.api_id == API_ID
        assert request.timestamp == NOW
        assert len(request.signature) == 64
        assert dict(request.params) == {"fileId": 10, "fileKey": "k"}

    def test_end_to_end_signature(self, builder):
        """Test the signature against one computed by hand."""
        request = builder.build(
            Operation.COPY,
            {"fileId": 10, "destFileName": "b.txt", "destFolderId": 3},
        )
        canonical = (
            "url=https%3A%2F%2Fvault.example.com%2Fapi2%2Ffile%2Fcopy"
            "&api_version=1.0"
            f"&api_id={API_ID}"
            f"&api_timestamp={NOW}"
            "&fileId=10&destFileName=b.txt&destFolderId=3"
        )
        expected = hmac.new(
            API_PW.encode(), canonical.encode(), hashlib.sha256
        ).hexdigest()
        assert build_query(request.signed_fields()) == canonical
        assert request.signature == expected

    def test_json_profile_signs_json(self):
        """Test that the JSON deployment profile signs compact JSON."""
        creds = Credentials(API_ID, API_PW, profile=PROFILES["stash-json"])
        builder = RequestBuilder(creds, clock=lambda: NOW)
        request = builder.build("delete", {"fileId": 10})
        message = canonicalize(request.signed_fields(), CanonicalScheme.JSON)
        expected = hmac.new(API_PW.encode(), message, hashlib.sha256).hexdigest()
        assert request.signature == expected
        assert builder.verify(request)

    def test_parameter_order_preserved(self, builder):
        """Test that parameters are signed in caller order."""
        request = builder.build("read", {"fileKey": "k", "fileId": 10})
        assert list(request.signed_fields()) == [
            "url",
            "api_version",
            "api_id",
            "api_timestamp",
            "fileKey",
            "fileId",
        ]

    def test_verify_round_trip(self, builder):
        """Test that a built request verifies with the same credentials."""
        request = builder.build("getFolderInfo", {"folderId": 4})
        assert builder.verify(request)

    def test_verify_fails_with_other_secret(self, builder, credentials):
        """Test that another secret does not verify the request."""
        request = builder.build("getFolderInfo", {"folderId": 4})
        other = RequestBuilder(credentials.with_secret("Z" * 32), clock=lambda: NOW)
        assert not other.verify(request)

    def test_payload_contains_signature(self, builder):
        """Test the body sent to the API."""
        request = builder.build("delete", {"fileId": 1})
        payload = request.to_payload()
        assert payload["api_signature"] == request.signature
        assert payload["api_timestamp"] == NOW
        assert payload["fileId"] == 1
        assert list(payload)[:5] == [
            "url",
            "api_version",
            "api_id",
            "api_timestamp",
            "api_signature",
        ]

    def test_multipart_fields(self, builder):
        """Test that uploads carry the payload as compact JSON."""
        request = builder.build("write", {"destFolderId": 2, "fileKey": "k"})
        fields = request.to_multipart_fields()
        assert json.loads(fields["params"]) == request.to_payload()
        assert " " not in fields["params"]

    def test_stale_signature_in_params_is_dropped(self, builder):
        """Test that a caller supplied signature never reaches the request."""
        request = builder.build("delete", {"fileId": 1, "api_signature": "f" * 64})
        assert "api_signature" not in request.params
        assert request.signature != "f" * 64

    @pytest.mark.parametrize("field", ["url", "api_version", "api_id", "api_timestamp"])
    def test_reserved_fields_rejected(self, builder, field):
        """Test that parameters cannot override request fields."""
        with pytest.raises(StashValidationError, match="reserved"):
            builder.build("delete", {"fileId": 1, field: "x"})

    def test_validation_runs_before_signing(self, builder):
        """Test that invalid parameters never produce a request."""
        with pytest.raises(StashValidationError, match="fileKey"):
            builder.build("read", {"fileId": 1})

    def test_params_are_isolated_from_caller(self, builder):
        """Test that mutating caller data after build does not leak in."""
        names = ["My Home", "Docs"]
        params = {"folderNames": names}
        request = builder.build("createDirectory", params)
        names.append("Later")
        params["extra"] = 1
        assert request.params["folderNames"] == ["My Home", "Docs"]
        assert "extra" not in request.params

    def test_params_are_read_only(self, builder):
        """Test that request params cannot be changed after signing."""
        request = builder.build("delete", {"fileId": 1})
        with pytest.raises(TypeError):
            request.params["fileId"] = 2  # type: ignore[index]

    def test_requests_are_hashable(self, builder):
        """Test that signed requests can be used as set members."""
        first = builder.build("delete", {"fileId": 1})
        second = builder.build("delete", {"fileId": 1})
        assert first == second
        assert hash(first) == hash(second)
        assert len({first, second}) == 1

    def test_requests_do_not_share_state(self, builder):
        """Test that one request's parameters never appear in the next."""
        builder.build("read", {"fileId": 1, "fileKey": "k"})
        request = builder.build("getVaultInfo", {})
        assert dict(request.params) == {}

    def test_url_override(self, builder):
        """Test that an explicit URL replaces the operation endpoint."""
        url = "https://other.example.com/api2/file/delete"
        request = builder.build("delete", {"fileId": 1}, url=url)
        assert request.url == url

    def test_loopback_without_params(self, builder):
        """Test that the loopback check needs no parameters."""
        request = builder.build("testLoopback", None)
        assert request.url == BASE_URL + "api2/auth/testloopback"
        assert dict(request.params) == {}

    def test_non_positive_clock_rejected(self, credentials):
        """Test that the timestamp must be greater than zero."""
        builder = RequestBuilder(credentials, clock=lambda: 0)
        with pytest.raises(StashValidationError, match="Greater Than 0"):
            builder.build("getVaultInfo", {})

    def test_timestamp_is_truncated_to_seconds(self, credentials):
        """Test that fractional clocks produce integer timestamps."""
        builder = RequestBuilder(credentials, clock=lambda: 1700000000.9)
        assert builder.build("getVaultInfo", {}).timestamp == 1700000000


class TestListFoldersScenario:
    """End-to-end: credentials, validation and signing for listFolders."""

    def test_list_folders_request(self):
        secret = "Abcdefghij" * 4
        creds = Credentials(API_ID, secret)
        request = RequestBuilder(creds).build(
            "listFolders", {"folderId": 0, "outputType": 1}
        )
        payload = request.to_payload()

        signature = payload["api_signature"]
        assert len(signature) == 64
        assert signature == signature.lower()
        int(signature, 16)
        assert isinstance(payload["api_timestamp"], int)
        assert payload["api_timestamp"] > 0
        assert payload["url"].endswith("api2/file/listfolders")
        assert RequestBuilder(creds).verify(request)
