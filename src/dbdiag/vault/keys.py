import base64
import binascii
import logging
import os
import stat
import sys
from pathlib import Path
from typing import Mapping, Optional

from ..exceptions import StartupPreconditionError
from .cipher import VALID_KEY_SIZES
from .legacy import legacy_xor_deobfuscate

logger = logging.getLogger(__name__)

KEY_ENV_VAR = "DB_SECRET_KEY"


def check_key_file_permissions(path: Path) -> None:
    """
    The key file must not be readable, writable or executable by group/other.
    Skipped on Windows where POSIX mode bits carry no meaning.
    """
    if sys.platform.startswith("win"):
        return
    try:
        mode = path.stat().st_mode
    except OSError as e:
        raise StartupPreconditionError(f"Cannot stat key file {path}: {e}") from e
    if mode & (stat.S_IRWXG | stat.S_IRWXO):
        raise StartupPreconditionError(
            f"Key file {path} has mode {stat.S_IMODE(mode):04o}; "
            f"restrict it to the owner (chmod 400 {path})"
        )


def read_key_file(path: Path) -> bytes:
    if not path.exists():
        raise StartupPreconditionError(f"Key file not found: {path}")
    check_key_file_permissions(path)
    try:
        data = path.read_bytes()
    except OSError as e:
        raise StartupPreconditionError(f"Cannot read key file {path}: {e}") from e
    if data.endswith(b"\r\n"):
        data = data[:-2]
    elif data.endswith(b"\n"):
        data = data[:-1]
    return data


def resolve_key(
    key_file: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
    legacy_obfuscated_key: Optional[str] = None,
) -> bytes:
    """
    Resolve the secret key once at startup.
    A key file wins over the DB_SECRET_KEY environment value.
    """
    environ = os.environ if environ is None else environ

    if key_file is not None:
        key = read_key_file(key_file)
        source = f"file {key_file}"
    else:
        key = environ.get(KEY_ENV_VAR, "").encode("utf-8")
        source = f"${KEY_ENV_VAR}"

    if not key:
        raise StartupPreconditionError(
            f"No secret key: set {KEY_ENV_VAR} or pass --key-file"
        )

    if legacy_obfuscated_key:
        try:
            obfuscated = base64.b64decode(legacy_obfuscated_key, validate=True)
        except (binascii.Error, ValueError) as e:
            raise StartupPreconditionError(f"legacy_obfuscated_key is not valid base64: {e}") from e
        logger.warning("Using legacy XOR-obfuscated key; this provides no cryptographic protection")
        key = legacy_xor_deobfuscate(obfuscated, key)

    if len(key) not in VALID_KEY_SIZES:
        raise StartupPreconditionError(
            f"Secret key from {source} is {len(key)} bytes; AES-GCM needs one of {VALID_KEY_SIZES}"
        )

    logger.debug("Secret key resolved from %s (%d bytes)", source, len(key))
    return key
