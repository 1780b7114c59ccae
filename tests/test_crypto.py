"""Unit tests for file key encryption."""

import os

import pytest
from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from pystash.crypto import IV_SIZE, KEY_SIZE, decrypt_string, encrypt_string
from pystash.exceptions import (
    StashCryptoError,
    StashDecryptionError,
    StashInsufficientDataError,
    StashKeyTooShortError,
)

SECRET = "abcdefghijklmnopqrstuvwxyzABCDEF"


def reference_encrypt(plaintext: bytes, key: bytes, iv: bytes) -> bytes:
    """Encrypt with a fixed IV, independent of the module under test."""
    padder = padding.PKCS7(128).padder()
    padded = padder.update(plaintext) + padder.finalize()
    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    return iv + encryptor.update(padded) + encryptor.finalize()


class TestEncryptString:
    """Tests for encrypt_string()."""

    def test_round_trip_hex(self):
        """Test that a hex blob decrypts back to the plaintext."""
        blob = encrypt_string("my file key", SECRET)
        assert isinstance(blob, str)
        assert decrypt_string(blob, SECRET) == "my file key"

    def test_round_trip_raw(self):
        """Test that raw bytes decrypt back to the plaintext."""
        blob = encrypt_string("my file key", SECRET, want_hex=False)
        assert isinstance(blob, bytes)
        assert decrypt_string(blob, SECRET, is_hex=False) == "my file key"

    def test_unicode_round_trip(self):
        """Test that non-ASCII text survives encryption."""
        blob = encrypt_string("schlüssel ✓", SECRET)
        assert decrypt_string(blob, SECRET) == "schlüssel ✓"

    def test_fresh_iv_every_call(self):
        """Test that encrypting twice yields different blobs."""
        assert encrypt_string("same", SECRET) != encrypt_string("same", SECRET)

    def test_blob_layout(self):
        """Test that the blob is IV plus whole cipher blocks."""
        blob = encrypt_string("x" * 16, SECRET, want_hex=False)
        # 16 bytes of plaintext need a full extra padding block
        assert len(blob) == IV_SIZE + 32

    def test_hex_is_twice_raw_length(self):
        """Test the hex encoding length."""
        blob = encrypt_string("abc", SECRET)
        assert len(blob) == 2 * (IV_SIZE + 16)
        bytes.fromhex(blob)

    def test_empty_plaintext_returns_empty(self):
        """Test that empty input yields an empty string."""
        assert encrypt_string("", SECRET) == ""

    def test_empty_plaintext_ignores_short_secret(self):
        """Test that empty input is returned before the secret is checked."""
        assert encrypt_string("", "short") == ""

    def test_empty_secret_returns_empty(self):
        """Test that an empty secret yields an empty string."""
        assert encrypt_string("data", "") == ""

    def test_short_secret_raises(self):
        """Test that secrets shorter than the key size are rejected."""
        with pytest.raises(StashKeyTooShortError, match="at least 32"):
            encrypt_string("data", "short")

    def test_only_first_32_bytes_of_secret_are_used(self):
        """Test that characters past the key size do not affect the key."""
        blob = encrypt_string("data", SECRET + "EXTRA")
        assert decrypt_string(blob, SECRET + "OTHER") == "data"


class TestDecryptString:
    """Tests for decrypt_string()."""

    def test_decrypts_reference_blob(self):
        """Test decryption of a blob produced with a known IV."""
        iv = bytes(range(16))
        blob = reference_encrypt(b"file key", SECRET.encode()[:KEY_SIZE], iv)
        assert decrypt_string(blob.hex(), SECRET) == "file key"

    def test_uppercase_hex_accepted(self):
        """Test that upper-case hex input decrypts."""
        blob = encrypt_string("data", SECRET)
        assert decrypt_string(blob.upper(), SECRET) == "data"

    def test_raw_string_input(self):
        """Test that raw input given as str is treated as bytes."""
        iv = os.urandom(16)
        blob = reference_encrypt(b"data", SECRET.encode()[:KEY_SIZE], iv)
        assert decrypt_string(blob.decode("latin-1"), SECRET, is_hex=False) == "data"

    def test_empty_blob_returns_empty(self):
        """Test that empty input yields an empty string."""
        assert decrypt_string("", SECRET) == ""

    def test_empty_blob_ignores_short_secret(self):
        """Test that empty input is returned before the secret is checked."""
        assert decrypt_string("", "short") == ""

    def test_short_secret_raises(self):
        """Test that secrets shorter than the key size are rejected."""
        with pytest.raises(StashKeyTooShortError):
            decrypt_string("00" * 32, "short")

    def test_invalid_hex_raises(self):
        """Test that malformed hex is a decryption error."""
        with pytest.raises(StashDecryptionError, match="Invalid hex"):
            decrypt_string("zz" * 32, SECRET)

    def test_shorter_than_iv_raises(self):
        """Test that blobs shorter than the IV are rejected."""
        with pytest.raises(StashInsufficientDataError, match="Insufficient"):
            decrypt_string("00" * 8, SECRET)

    def test_iv_only_raises(self):
        """Test that a blob with no ciphertext is rejected."""
        with pytest.raises(StashDecryptionError):
            decrypt_string("00" * IV_SIZE, SECRET)

    def test_misaligned_ciphertext_raises(self):
        """Test that ciphertext must be whole cipher blocks."""
        blob = encrypt_string("data", SECRET, want_hex=False)
        with pytest.raises(StashDecryptionError, match="multiple"):
            decrypt_string(blob[:-1], SECRET, is_hex=False)

    def test_wrong_key_does_not_return_plaintext(self):
        """Test that decrypting with another key never yields the plaintext."""
        blob = encrypt_string("my file key", SECRET)
        other = "ZYXWVUTSRQPONMLKJIHGFEDCBAzyxwvu"
        try:
            result = decrypt_string(blob, other)
        except StashDecryptionError:
            return
        assert result != "my file key"

    def test_errors_share_base_class(self):
        """Test that all crypto failures can be caught together."""
        with pytest.raises(StashCryptoError):
            decrypt_string("00" * 4, SECRET)
