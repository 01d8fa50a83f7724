"""
LEGACY COMPAT ONLY. Repeating-key XOR deobfuscation of a key at rest.

This is obfuscation, not encryption: it has no integrity check and gives no
confidentiality against anyone holding either input. It exists only so that
installations with an existing obfuscated key keep working. Secrets are always
sealed with AES-GCM (see ``cipher.py``).
"""


def legacy_xor_deobfuscate(data: bytes, key: bytes) -> bytes:
    if not key:
        raise ValueError("XOR key must not be empty")
    return bytes(b ^ key[i % len(key)] for i, b in enumerate(data))
