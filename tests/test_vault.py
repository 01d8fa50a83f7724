import base64

import pytest

from dbdiag.exceptions import DecryptionError
from dbdiag.vault import decrypt, decrypt_from_text, encrypt, encrypt_to_text, legacy_xor_deobfuscate
from dbdiag.vault.cipher import NONCE_SIZE


@pytest.mark.parametrize("plaintext", [b"", b"p", b"correct horse battery staple", bytes(range(256))])
@pytest.mark.parametrize("key_size", [16, 24, 32])
def test_round_trip(plaintext, key_size):
    key = bytes(range(key_size))
    assert decrypt(encrypt(plaintext, key), key) == plaintext


def test_layout_is_nonce_then_sealed_data(key):
    sealed = encrypt(b"hunter2", key)
    # nonce + plaintext + 16-byte tag
    assert len(sealed) == NONCE_SIZE + len(b"hunter2") + 16


def test_fresh_nonce_per_encryption(key):
    assert encrypt(b"same", key) != encrypt(b"same", key)


def test_every_bit_flip_is_rejected(key):
    sealed = encrypt(b"pw", key)
    for i in range(len(sealed)):
        for bit in range(8):
            tampered = bytearray(sealed)
            tampered[i] ^= 1 << bit
            with pytest.raises(DecryptionError):
                decrypt(bytes(tampered), key)


def test_wrong_key_is_rejected(key):
    sealed = encrypt(b"pw", key)
    with pytest.raises(DecryptionError, match="tag"):
        decrypt(sealed, b"x" * 32)


def test_short_ciphertext_is_rejected(key):
    with pytest.raises(DecryptionError, match="shorter"):
        decrypt(b"\x00" * (NONCE_SIZE - 1), key)


@pytest.mark.parametrize("bad_key", [b"", b"short", b"x" * 31, b"x" * 64])
def test_invalid_key_length_is_rejected(bad_key):
    with pytest.raises(DecryptionError, match="key length"):
        decrypt(b"\x00" * 40, bad_key)


def test_text_round_trip(key):
    token = encrypt_to_text("pässwörd", key)
    base64.b64decode(token, validate=True)
    assert decrypt_from_text(token, key) == "pässwörd"


def test_text_rejects_non_base64(key):
    with pytest.raises(DecryptionError, match="base64"):
        decrypt_from_text("not base64 !!", key)


def test_legacy_xor_is_its_own_inverse():
    key = b"abc"
    data = b"obfuscated key material"
    obfuscated = legacy_xor_deobfuscate(data, key)
    assert obfuscated != data
    assert legacy_xor_deobfuscate(obfuscated, key) == data


def test_legacy_xor_rejects_empty_key():
    with pytest.raises(ValueError):
        legacy_xor_deobfuscate(b"data", b"")
