"""Unit tests for credentials and deployment profiles."""

import dataclasses

import pytest

from pystash.credentials import (
    DEFAULT_PROFILE,
    PROFILES,
    Credentials,
    check_api_fields,
    get_profile,
    normalize_base_url,
)
from pystash.exceptions import StashConfigError, StashValidationError
from pystash.signing import CanonicalScheme

API_ID = "0123456789abcdef0123456789abcdef"
API_PW = "abcdefghijklmnopqrstuvwxyzABCDEF"


class TestProfiles:
    """Tests for deployment profile lookup."""

    def test_default_profile(self):
        """Test that None resolves to the default profile."""
        assert get_profile(None) is DEFAULT_PROFILE
        assert DEFAULT_PROFILE.scheme is CanonicalScheme.QUERY

    def test_lookup_is_case_insensitive(self):
        """Test profile lookup ignores case."""
        assert get_profile("STASH-JSON") is PROFILES["stash-json"]

    def test_unknown_profile_raises(self):
        """Test that an unknown profile is a configuration error."""
        with pytest.raises(StashConfigError, match="Unknown deployment profile"):
            get_profile("nope")

    def test_json_profile_uses_json_scheme(self):
        """Test the JSON deployment profile."""
        assert PROFILES["stash-json"].scheme is CanonicalScheme.JSON
        assert PROFILES["stash-json"].allow_email_id is True


class TestCredentials:
    """Tests for the Credentials dataclass."""

    def test_valid_credentials(self):
        """Test creating credentials with valid values."""
        creds = Credentials(api_id=API_ID, api_pw=API_PW)
        assert creds.api_id == API_ID
        assert creds.version == "1.0"
        assert creds.scheme is CanonicalScheme.QUERY
        assert creds.base_url == "https://www.stashbusiness.com/"

    def test_base_url_gets_trailing_slash(self):
        """Test that the base URL is normalized."""
        creds = Credentials(API_ID, API_PW, base_url="https://vault.example.com")
        assert creds.base_url == "https://vault.example.com/"
        assert creds.endpoint("api2/file/read") == (
            "https://vault.example.com/api2/file/read"
        )

    def test_endpoint_strips_leading_slash(self):
        """Test that endpoint paths may start with a slash."""
        creds = Credentials(API_ID, API_PW, base_url="https://vault.example.com/")
        assert creds.endpoint("/api2/auth/testloopback") == (
            "https://vault.example.com/api2/auth/testloopback"
        )

    @pytest.mark.parametrize(
        "api_id,match",
        [
            ("abc", "32 Characters"),
            ("g" * 32, "Invalid Characters"),
        ],
    )
    def test_invalid_api_id(self, api_id, match):
        """Test API ID length and character checks."""
        with pytest.raises(StashValidationError, match=match):
            Credentials(api_id=api_id, api_pw=API_PW)

    @pytest.mark.parametrize(
        "api_pw,match",
        [
            ("short", "at Least 32"),
            ("!" * 32, "Invalid Characters"),
        ],
    )
    def test_invalid_api_pw(self, api_pw, match):
        """Test API PW length and character checks."""
        with pytest.raises(StashValidationError, match=match):
            Credentials(api_id=API_ID, api_pw=api_pw)

    def test_v1_profile_accepts_alnum_id_and_hex_pw(self):
        """Test the v1 deployment character classes."""
        creds = Credentials(
            api_id="g" * 32, api_pw="ab" * 16, profile=PROFILES["stash-v1"]
        )
        assert creds.api_id == "g" * 32

    def test_v1_profile_rejects_non_hex_pw(self):
        """Test that the v1 deployment requires a hex API PW."""
        with pytest.raises(StashValidationError):
            Credentials(api_id=API_ID, api_pw=API_PW, profile=PROFILES["stash-v1"])

    def test_json_profile_accepts_email_id(self):
        """Test that an email address is a valid ID for the JSON deployment."""
        creds = Credentials(
            api_id="user@example.com", api_pw=API_PW, profile=PROFILES["stash-json"]
        )
        assert creds.api_id == "user@example.com"

    def test_default_profile_rejects_email_id(self):
        """Test that email IDs are only accepted where the profile allows."""
        with pytest.raises(StashValidationError):
            Credentials(api_id="user@example.com", api_pw=API_PW)

    def test_credentials_are_immutable(self):
        """Test that fields cannot be reassigned."""
        creds = Credentials(API_ID, API_PW)
        with pytest.raises(dataclasses.FrozenInstanceError):
            creds.api_id = "x"  # type: ignore[misc]

    def test_with_id_returns_new_instance(self):
        """Test that with_id leaves the original untouched."""
        creds = Credentials(API_ID, API_PW)
        other_id = "fedcba9876543210fedcba9876543210"
        updated = creds.with_id(other_id)
        assert updated.api_id == other_id
        assert creds.api_id == API_ID

    def test_with_secret_validates(self):
        """Test that with_secret validates the new secret."""
        creds = Credentials(API_ID, API_PW)
        with pytest.raises(StashValidationError):
            creds.with_secret("short")

    def test_secret_not_in_repr(self):
        """Test that the API PW is not exposed by repr or str."""
        creds = Credentials(API_ID, API_PW)
        assert API_PW not in repr(creds)
        assert API_PW not in str(creds)
        assert str(creds) == f"STASHAPI Object - Version: 1.0 ID: {API_ID}"


class TestCheckApiFields:
    """Tests for request-level field checks."""

    def test_valid_fields(self):
        """Test that a complete valid set passes."""
        check_api_fields(
            {
                "api_id": API_ID,
                "api_pw": API_PW,
                "api_signature": "a" * 64,
                "api_timestamp": 1700000000,
                "api_version": "1.0",
                "url": "https://www.stashbusiness.com/api2/file/read",
                "params": {},
            }
        )

    @pytest.mark.parametrize(
        "fields,match",
        [
            ({"api_signature": "a" * 63}, "64 Characters"),
            ({"api_signature": "z" * 64}, "Invalid Characters"),
            ({"api_timestamp": "1700000000"}, "Integer"),
            ({"api_timestamp": True}, "Integer"),
            ({"api_timestamp": 0}, "Greater Than 0"),
            ({"api_version": "2.0"}, "Does Not Match"),
            ({"url": "not a url"}, "Valid URL"),
            ({"url": "http://www.stashbusiness.com/"}, "HTTPS"),
            ({"params": ["a"]}, "Mapping"),
        ],
    )
    def test_invalid_fields(self, fields, match):
        """Test each invalid field is reported."""
        with pytest.raises(StashValidationError, match=match):
            check_api_fields(fields)

    def test_unknown_fields_ignored(self):
        """Test that keys outside the checked set are ignored."""
        check_api_fields({"something": object()})


class TestNormalizeBaseUrl:
    """Tests for normalize_base_url()."""

    def test_none_uses_default(self):
        assert normalize_base_url(None) == "https://www.stashbusiness.com/"

    def test_existing_slash_kept(self):
        assert normalize_base_url("https://a.example/") == "https://a.example/"
