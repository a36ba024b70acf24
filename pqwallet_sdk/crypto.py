"""
Cryptographic primitives for the pqwallet SDK.

ML-DSA (FIPS 204) is consumed from dilithium-py as an opaque capability:
seed-based key derivation, signing and verification. The classical path
uses eth_account for secp256k1 keys and EIP-191 personal-message signatures.
"""
import logging
from enum import Enum
from typing import Dict, NamedTuple, Tuple

from dilithium_py.ml_dsa import ML_DSA_44, ML_DSA_65, ML_DSA_87
from eth_account import Account
from eth_account.messages import encode_defunct

logger = logging.getLogger(__name__)

SEED_LENGTH = 32
ECDSA_SIGNATURE_LENGTH = 65


class SecurityLevel(str, Enum):
    """ML-DSA parameter sets"""
    ML_DSA_44 = "ml_dsa44"  # NIST level 2
    ML_DSA_65 = "ml_dsa65"  # NIST level 3
    ML_DSA_87 = "ml_dsa87"  # NIST level 5


class KeySizes(NamedTuple):
    public_key: int
    secret_key: int
    signature: int


KEY_SIZES: Dict[SecurityLevel, KeySizes] = {
    SecurityLevel.ML_DSA_44: KeySizes(public_key=1312, secret_key=2560, signature=2420),
    SecurityLevel.ML_DSA_65: KeySizes(public_key=1952, secret_key=4032, signature=3309),
    SecurityLevel.ML_DSA_87: KeySizes(public_key=2592, secret_key=4896, signature=4627),
}

DEFAULT_LEVEL = SecurityLevel.ML_DSA_65

_ALGORITHMS = {
    SecurityLevel.ML_DSA_44: ML_DSA_44,
    SecurityLevel.ML_DSA_65: ML_DSA_65,
    SecurityLevel.ML_DSA_87: ML_DSA_87,
}


def derive_mldsa_keypair(seed: bytes, level: SecurityLevel = DEFAULT_LEVEL) -> Tuple[bytes, bytes]:
    """
    Derive an ML-DSA keypair deterministically from a 32-byte seed.

    Args:
        seed: 32-byte seed (the FIPS 204 xi value)
        level: ML-DSA parameter set

    Returns:
        Tuple of (public_key, secret_key)
    """
    if len(seed) != SEED_LENGTH:
        raise ValueError(f"Seed must be {SEED_LENGTH} bytes, got {len(seed)}")
    return _ALGORITHMS[SecurityLevel(level)].key_derive(seed)


def mldsa_sign(secret_key: bytes, message: bytes, level: SecurityLevel = DEFAULT_LEVEL) -> bytes:
    """Sign a message with ML-DSA (deterministic variant, empty context)."""
    level = SecurityLevel(level)
    expected = KEY_SIZES[level].secret_key
    if len(secret_key) != expected:
        raise ValueError(f"Invalid secret key size: {len(secret_key)}, expected {expected}")
    return _ALGORITHMS[level].sign(secret_key, message, deterministic=True)


def mldsa_verify(
    public_key: bytes,
    message: bytes,
    signature: bytes,
    level: SecurityLevel = DEFAULT_LEVEL
) -> bool:
    """
    Verify an ML-DSA signature.

    Never raises: malformed keys or signatures verify as False.
    """
    level = SecurityLevel(level)
    sizes = KEY_SIZES[level]
    if len(public_key) != sizes.public_key or len(signature) != sizes.signature:
        return False
    try:
        return bool(_ALGORITHMS[level].verify(public_key, message, signature))
    except Exception as e:
        logger.debug("ML-DSA verification raised, treating as invalid: %s", e)
        return False


def level_for_signature(signature: bytes) -> SecurityLevel:
    """Return the security level whose signature size matches, or raise ValueError."""
    for level, sizes in KEY_SIZES.items():
        if sizes.signature == len(signature):
            return level
    raise ValueError(f"No ML-DSA level produces {len(signature)}-byte signatures")


def ecdsa_address(seed: bytes) -> str:
    """Checksummed address for a 32-byte secp256k1 private key."""
    return Account.from_key(seed).address


def ecdsa_sign_hash(seed: bytes, message_hash: bytes) -> bytes:
    """Sign a 32-byte hash as an EIP-191 personal message (65-byte r||s||v)."""
    signed = Account.from_key(seed).sign_message(encode_defunct(primitive=message_hash))
    return bytes(signed.signature)


def ecdsa_verify(address: str, message_hash: bytes, signature: bytes) -> bool:
    """
    Check an EIP-191 signature over `message_hash` recovers to `address`.

    Never raises: malformed signatures verify as False.
    """
    if len(signature) != ECDSA_SIGNATURE_LENGTH:
        return False
    try:
        recovered = Account.recover_message(encode_defunct(primitive=message_hash), signature=signature)
    except Exception as e:
        logger.debug("ECDSA recovery failed, treating as invalid: %s", e)
        return False
    return recovered.lower() == address.lower()
