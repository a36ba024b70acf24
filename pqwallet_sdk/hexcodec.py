"""
Strict byte/hex conversion.

Everything that crosses a wire boundary (relay, remote signer, CLI input)
goes through these helpers so malformed hex is rejected instead of silently
truncated.
"""
import re

from .exceptions import MalformedHex

_HEX_DIGITS = re.compile(r"[0-9a-fA-F]*")


def _strip_prefix(value: str) -> str:
    if value[:2] in ("0x", "0X"):
        return value[2:]
    return value


def encode(data: bytes) -> str:
    """Encode bytes as a lowercase, 0x-prefixed hex string."""
    return "0x" + bytes(data).hex()


def decode(value: str) -> bytes:
    """
    Decode a hex string, with or without 0x prefix.

    Args:
        value: Hex string to decode

    Returns:
        Decoded bytes ("" and "0x" decode to b"")

    Raises:
        MalformedHex: If the value is not a string, has odd length,
            or contains non-hex characters
    """
    if not isinstance(value, str):
        raise MalformedHex(f"Expected hex string, got {type(value).__name__}")
    clean = _strip_prefix(value)
    if len(clean) % 2 != 0:
        raise MalformedHex(f"Hex value must have an even length (got {len(clean)} digits)")
    if not _HEX_DIGITS.fullmatch(clean):
        raise MalformedHex("Hex value contains non-hex characters")
    return bytes.fromhex(clean)


def quantity(value: int) -> str:
    """Encode a non-negative integer as a minimal JSON-RPC quantity ("0x0" for zero)."""
    if value < 0:
        raise ValueError(f"Quantity must be non-negative, got {value}")
    return hex(value)

