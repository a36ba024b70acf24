"""
Signer backend interface.

A backend produces a signature over a 32-byte user operation hash. Which
backend is active is a runtime choice (see SignerSelector), so the lifecycle
only ever sees this interface.
"""
from abc import ABC, abstractmethod

from ..exceptions import InvalidHashLength
from ..userop import SignerType

HASH_LENGTH = 32


def require_hash_length(message_hash: bytes) -> bytes:
    """Fail fast on anything that is not a 32-byte hash."""
    if not isinstance(message_hash, (bytes, bytearray)):
        raise InvalidHashLength(f"Hash must be bytes, got {type(message_hash).__name__}")
    if len(message_hash) != HASH_LENGTH:
        raise InvalidHashLength(f"Hash must be {HASH_LENGTH} bytes, got {len(message_hash)}")
    return bytes(message_hash)


class SignerBackend(ABC):
    """
    Abstract base class for signer backends.

    Attributes:
        label: Human-readable backend name used in logs and mode switching
        signer_type: Validation type whose nonce namespace this backend signs for
    """

    label: str = "signer"
    signer_type: SignerType = SignerType.MODULE

    @abstractmethod
    def sign(self, message_hash: bytes) -> bytes:
        """
        Sign a 32-byte hash.

        Raises:
            InvalidHashLength: If the hash is not 32 bytes (checked first)
            SignerError: If the backend cannot produce a signature
        """
        pass

    @abstractmethod
    def is_ready(self) -> bool:
        """Return True if sign() can currently succeed."""
        pass

    @abstractmethod
    def get_public_key(self) -> bytes:
        """Return the public key the on-chain validator should hold."""
        pass
