import logging
import os
import tempfile
from pathlib import Path

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from clipvault.exceptions import AuthenticationFailure, CryptoError

logger = logging.getLogger(__name__)

KEY_LEN = 32
NONCE_LEN = 12
TAG_LEN = 16


class CryptoBox:
    """AES-256-GCM sealing of opaque payloads.

    Sealed layout is ``nonce (12 bytes) || ciphertext || tag (16 bytes)``.
    """

    def __init__(self, key: bytes):
        if len(key) != KEY_LEN:
            raise CryptoError(f"Encryption key must be {KEY_LEN} bytes, got {len(key)}")
        self._aead = AESGCM(key)

    def seal(self, plaintext: bytes) -> bytes:
        nonce = os.urandom(NONCE_LEN)
        try:
            ciphertext = self._aead.encrypt(nonce, plaintext, None)
        except (TypeError, ValueError, OverflowError) as e:
            raise CryptoError(f"Encryption failed: {e}") from e
        return nonce + ciphertext

    def open(self, sealed: bytes) -> bytes:
        if len(sealed) < NONCE_LEN + TAG_LEN:
            raise AuthenticationFailure(f"Sealed payload too short ({len(sealed)} bytes)")
        nonce, ciphertext = sealed[:NONCE_LEN], sealed[NONCE_LEN:]
        try:
            return self._aead.decrypt(nonce, ciphertext, None)
        except InvalidTag as e:
            raise AuthenticationFailure("Authentication tag did not verify") from e


def load_or_create_key(key_path: str | Path) -> bytes:
    """Load the 32-byte key at ``key_path``, generating it on first run.

    A freshly generated key file is readable and writable by the owner only.
    There is no recovery path: losing this file makes sealed data unreadable.
    """
    path = Path(key_path)
    if path.exists():
        logger.info("Loading encryption key from %s", path)
        try:
            key = path.read_bytes()
        except OSError as e:
            raise CryptoError(f"Failed to read encryption key: {e}") from e
        if len(key) != KEY_LEN:
            raise CryptoError(f"Invalid encryption key file {path}: expected {KEY_LEN} bytes, got {len(key)}")
        return key

    logger.info("Generating new encryption key at %s", path)
    key = AESGCM.generate_key(bit_length=KEY_LEN * 8)
    tmp_path = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        # mkstemp creates the file with mode 0600
        fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=f"{path.name}.", suffix=".tmp")
        with os.fdopen(fd, "wb") as f:
            f.write(key)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(tmp_path, 0o600)
        os.replace(tmp_path, path)
    except OSError as e:
        if tmp_path is not None:
            Path(tmp_path).unlink(missing_ok=True)
        raise CryptoError(f"Failed to save encryption key: {e}") from e
    return key
