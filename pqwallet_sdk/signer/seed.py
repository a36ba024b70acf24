"""
Seed-backed signers.

Key material lives only in process memory. configure() and sign() are
serialized so a signature is never produced with a half-replaced key.
"""
import logging
import threading
from typing import Optional, Tuple

from .. import crypto, hexcodec
from ..crypto import SecurityLevel
from ..exceptions import InvalidSeed, NotConfigured
from ..userop import SignerType
from .base import SignerBackend, require_hash_length

logger = logging.getLogger(__name__)


def _decode_seed(seed_hex: str) -> bytes:
    seed = hexcodec.decode(seed_hex)
    if len(seed) != crypto.SEED_LENGTH:
        raise InvalidSeed(f"Seed must be {crypto.SEED_LENGTH} bytes, got {len(seed)}")
    return seed


class SeedSigner(SignerBackend):
    """ML-DSA signer holding a keypair derived from a 32-byte seed."""

    label = "seed"
    signer_type = SignerType.MODULE

    def __init__(
        self,
        level: SecurityLevel = crypto.DEFAULT_LEVEL,
        logger: Optional[logging.Logger] = None
    ):
        self.level = SecurityLevel(level)
        self.logger = logger or logging.getLogger(__name__)
        self._lock = threading.RLock()
        self._keypair: Optional[Tuple[bytes, bytes]] = None

    def configure(self, seed_hex: str) -> bytes:
        """
        Derive and load a keypair from a hex-encoded seed.

        Args:
            seed_hex: 32-byte seed as hex, with or without 0x prefix

        Returns:
            The derived public key

        Raises:
            MalformedHex: If the seed is not valid hex
            InvalidSeed: If the seed does not decode to 32 bytes
        """
        seed = _decode_seed(seed_hex)
        public_key, secret_key = crypto.derive_mldsa_keypair(seed, self.level)
        with self._lock:
            self._keypair = (public_key, secret_key)
        self.logger.info(f"Loaded {self.level.value} keypair ({len(public_key)}-byte public key)")
        return public_key

    def is_configured(self) -> bool:
        with self._lock:
            return self._keypair is not None

    def is_ready(self) -> bool:
        return self.is_configured()

    def clear(self) -> None:
        """Drop the loaded key material."""
        with self._lock:
            self._keypair = None

    def get_public_key(self) -> bytes:
        with self._lock:
            if self._keypair is None:
                raise NotConfigured("Signer not ready: load a 32-byte ML-DSA seed first")
            return self._keypair[0]

    def sign(self, message_hash: bytes) -> bytes:
        message_hash = require_hash_length(message_hash)
        with self._lock:
            if self._keypair is None:
                raise NotConfigured("Signer not ready: load a 32-byte ML-DSA seed first")
            signature = crypto.mldsa_sign(self._keypair[1], message_hash, self.level)
        self.logger.debug(f"Signed {hexcodec.encode(message_hash)} ({len(signature)} bytes)")
        return signature

    def verify(self, message_hash: bytes, signature: bytes) -> bool:
        """Verify a signature against the loaded public key; never raises."""
        with self._lock:
            if self._keypair is None:
                return False
            public_key = self._keypair[0]
        return crypto.mldsa_verify(public_key, message_hash, signature, self.level)


class EcdsaSeedSigner(SignerBackend):
    """
    Classical secp256k1 signer for the account's root validator.

    The seed is the private key; hashes are signed as EIP-191 personal
    messages, which is what the root ECDSA validator recovers against.
    """

    label = "ecdsa"
    signer_type = SignerType.ROOT

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self._lock = threading.RLock()
        self._seed: Optional[bytes] = None
        self.address: Optional[str] = None

    def configure(self, seed_hex: str) -> str:
        """Load a private key; returns the signer address."""
        seed = _decode_seed(seed_hex)
        address = crypto.ecdsa_address(seed)
        with self._lock:
            self._seed = seed
            self.address = address
        self.logger.info(f"Loaded ECDSA key for {address}")
        return address

    def is_configured(self) -> bool:
        with self._lock:
            return self._seed is not None

    def is_ready(self) -> bool:
        return self.is_configured()

    def clear(self) -> None:
        with self._lock:
            self._seed = None
            self.address = None

    def get_public_key(self) -> bytes:
        """The root validator stores the owner address, so that is the public key here."""
        with self._lock:
            if self.address is None:
                raise NotConfigured("Signer not ready: load a 32-byte ECDSA private key first")
            return hexcodec.decode(self.address)

    def sign(self, message_hash: bytes) -> bytes:
        message_hash = require_hash_length(message_hash)
        with self._lock:
            if self._seed is None:
                raise NotConfigured("Signer not ready: load a 32-byte ECDSA private key first")
            return crypto.ecdsa_sign_hash(self._seed, message_hash)

    def verify(self, message_hash: bytes, signature: bytes) -> bool:
        with self._lock:
            address = self.address
        if address is None:
            return False
        return crypto.ecdsa_verify(address, message_hash, signature)
