"""
AES-GCM credential sealing.

Stored layout is ``nonce || sealed-data`` (12-byte nonce, ciphertext with the
16-byte tag appended), base64 encoded when written into the YAML config.
"""

import base64
import binascii
import secrets

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from ..exceptions import DecryptionError

NONCE_SIZE = 12
VALID_KEY_SIZES = (16, 24, 32)


def _cipher(key: bytes) -> AESGCM:
    if len(key) not in VALID_KEY_SIZES:
        raise DecryptionError(
            f"Invalid key length {len(key)}; expected one of {VALID_KEY_SIZES} bytes"
        )
    return AESGCM(key)


def encrypt(plaintext: bytes, key: bytes) -> bytes:
    """Seal plaintext under key with a fresh random nonce."""
    nonce = secrets.token_bytes(NONCE_SIZE)
    return nonce + _cipher(key).encrypt(nonce, plaintext, None)


def decrypt(ciphertext: bytes, key: bytes) -> bytes:
    """
    Recover plaintext from ``nonce || sealed-data``.
    Raises DecryptionError on a short input, a bad key length or a failed tag;
    nothing is returned in those cases.
    """
    aesgcm = _cipher(key)
    if len(ciphertext) < NONCE_SIZE:
        raise DecryptionError(
            f"Ciphertext is {len(ciphertext)} bytes, shorter than the {NONCE_SIZE}-byte nonce"
        )
    nonce, sealed = ciphertext[:NONCE_SIZE], ciphertext[NONCE_SIZE:]
    try:
        return aesgcm.decrypt(nonce, sealed, None)
    except InvalidTag:
        raise DecryptionError("Authentication tag mismatch (wrong key or tampered ciphertext)") from None


def encrypt_to_text(plaintext: str, key: bytes) -> str:
    return base64.b64encode(encrypt(plaintext.encode("utf-8"), key)).decode("ascii")


def decrypt_from_text(token: str, key: bytes) -> str:
    try:
        raw = base64.b64decode(token, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecryptionError(f"Stored secret is not valid base64: {e}") from None
    plaintext = decrypt(raw, key)
    try:
        return plaintext.decode("utf-8")
    except UnicodeDecodeError:
        raise DecryptionError("Decrypted secret is not valid UTF-8") from None
