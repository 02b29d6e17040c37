"""Exception hierarchy for clipvault."""


class ClipVaultError(Exception):
    """Base exception for all clipvault errors."""


class TransientReadError(ClipVaultError):
    """Raised when the clipboard backend is temporarily unreadable."""


class EncodeDecodeError(ClipVaultError):
    """Raised when an image cannot be decoded or encoded."""


class CryptoError(ClipVaultError):
    """Raised on key material problems or when sealing a payload fails."""


class AuthenticationFailure(CryptoError):
    """Raised when a sealed payload is truncated or its tag does not verify."""


class StorageIOError(ClipVaultError):
    """Raised when the database or the file system fails underneath the store."""


class MigrationError(ClipVaultError):
    """Raised when the data directory cannot be moved safely."""


class EntryNotFound(ClipVaultError):
    """Raised when an operation names a clip id that is not in the store."""
