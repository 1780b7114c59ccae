"""File key encryption with the account's API PW.

The file key is protected with AES-256-CBC. The cipher key is the first 32
bytes of the API PW and a fresh random IV is generated for every encryption.
The IV is prepended to the ciphertext: ``IV ++ ciphertext``.
"""

from __future__ import annotations

import os

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from .exceptions import (
    StashDecryptionError,
    StashInsufficientDataError,
    StashKeyTooShortError,
)

KEY_SIZE = 32
IV_SIZE = algorithms.AES.block_size // 8


def _derive_key(secret: str) -> bytes:
    key = secret.encode("utf-8")
    if len(key) < KEY_SIZE:
        raise StashKeyTooShortError(f"API_PW must be at least {KEY_SIZE} characters")
    return key[:KEY_SIZE]


def encrypt_string(
    plaintext: str | bytes, secret: str, want_hex: bool = True
) -> str | bytes:
    """Encrypt a string with the API PW.

    Args:
        plaintext: Value to encrypt
        secret: API PW, at least 32 characters
        want_hex: Return a hex string instead of raw bytes

    Returns:
        ``IV ++ ciphertext`` as hex ``str`` or raw ``bytes``. An empty
        plaintext or an empty secret yields ``""``.

    Raises:
        StashKeyTooShortError: If the secret is shorter than 32 characters

    Examples:
        >>> blob = encrypt_string("file key", "A" * 32)
        >>> decrypt_string(blob, "A" * 32)
        'file key'
    """
    if not plaintext or not secret:
        return ""

    key = _derive_key(secret)
    data = plaintext.encode("utf-8") if isinstance(plaintext, str) else plaintext

    padder = padding.PKCS7(algorithms.AES.block_size).padder()
    padded = padder.update(data) + padder.finalize()

    iv = os.urandom(IV_SIZE)
    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    blob = iv + encryptor.update(padded) + encryptor.finalize()

    if want_hex:
        return blob.hex()
    return blob


def decrypt_string(blob: str | bytes, secret: str, is_hex: bool = True) -> str:
    """Decrypt a value produced by :func:`encrypt_string`.

    Args:
        blob: ``IV ++ ciphertext``, hex encoded if ``is_hex`` is set
        secret: API PW, at least 32 characters
        is_hex: The blob is a hex string

    Returns:
        The decrypted string, or ``""`` for an empty blob or empty secret

    Raises:
        StashKeyTooShortError: If the secret is shorter than 32 characters
        StashInsufficientDataError: If the blob is shorter than the IV
        StashDecryptionError: If the blob is not valid hex, not a whole
            number of cipher blocks, or does not decrypt with this key
    """
    if not blob or not secret:
        return ""

    key = _derive_key(secret)

    if is_hex:
        try:
            raw = bytes.fromhex(blob if isinstance(blob, str) else blob.decode("ascii"))
        except (ValueError, UnicodeDecodeError) as e:
            raise StashDecryptionError(f"Invalid hex input: {e}") from e
    else:
        raw = blob.encode("latin-1") if isinstance(blob, str) else blob

    if len(raw) < IV_SIZE:
        raise StashInsufficientDataError("Insufficient Input Data to Decrypt")

    iv, ciphertext = raw[:IV_SIZE], raw[IV_SIZE:]
    if not ciphertext or len(ciphertext) % IV_SIZE:
        raise StashDecryptionError(
            "Ciphertext length is not a multiple of the cipher block size"
        )

    decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
    padded = decryptor.update(ciphertext) + decryptor.finalize()

    unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
    try:
        data = unpadder.update(padded) + unpadder.finalize()
        return data.decode("utf-8")
    except (ValueError, UnicodeDecodeError) as e:
        raise StashDecryptionError(f"Unable to decrypt input: {e}") from e
