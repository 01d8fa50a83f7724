from .cipher import decrypt, decrypt_from_text, encrypt, encrypt_to_text
from .keys import resolve_key
from .legacy import legacy_xor_deobfuscate

__all__ = [
    "decrypt",
    "decrypt_from_text",
    "encrypt",
    "encrypt_to_text",
    "resolve_key",
    "legacy_xor_deobfuscate",
]
