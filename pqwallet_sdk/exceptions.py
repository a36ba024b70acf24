"""
Exceptions for the pqwallet SDK.

Errors are grouped by the pipeline layer that raises them so callers can pick
the right remediation: fix the input, reconnect the signer, check funds/gas
with the relay, or re-check an operation whose outcome is unknown.
"""
from enum import Enum
from typing import Optional


class RejectionCode(str, Enum):
    """
    Reason codes attached to a failed operation when it is reported back
    to the session layer.
    """
    USER_REJECTED = "user-rejected"
    UNSUPPORTED_METHOD = "unsupported-method"
    AUTHORITY_ERROR = "authority-error"
    VALIDATION_ERROR = "validation-error"
    SIGNER_ERROR = "signer-error"
    RELAY_ERROR = "relay-error"
    TIMEOUT = "timeout"

    @property
    def rpc_code(self) -> int:
        """EIP-1193 / JSON-RPC error code used on the session wire."""
        if self is RejectionCode.USER_REJECTED:
            return 4001
        if self is RejectionCode.UNSUPPORTED_METHOD:
            return 4200
        return -32000


class PQWalletError(Exception):
    """Base exception for all pqwallet SDK errors."""
    pass


class ConfigurationError(PQWalletError):
    """Raised when required configuration is missing or invalid."""
    pass


class ValidationError(PQWalletError, ValueError):
    """Raised for malformed input: a caller or configuration bug, never retried."""
    pass


class MalformedHex(ValidationError):
    """Raised when a hex string has odd length or non-hex characters."""
    pass


class InvalidSeed(ValidationError):
    """Raised when a signer seed does not decode to exactly 32 bytes."""
    pass


class InvalidHashLength(ValidationError):
    """Raised when a hash handed to a signer is not 32 bytes."""
    pass


class InvalidPackedField(ValidationError):
    """Raised when a packed gas field is not exactly 32 bytes wide."""
    pass


class AuthorityError(PQWalletError):
    """Raised when the on-chain authority cannot be queried."""
    pass


class NonceQueryFailed(AuthorityError):
    """Raised when the EntryPoint nonce lookup fails."""
    pass


class SignerError(PQWalletError):
    """Base class for signer backend failures."""
    pass


class NotConfigured(SignerError):
    """Raised when signing is attempted before key material is loaded."""
    pass


class RemoteSignerError(SignerError):
    """Raised when the remote signing plugin fails or rejects a request."""
    pass


class InvalidSignatureLength(SignerError, ValidationError):
    """Raised when a signature payload does not decode to whole bytes."""
    pass


class RelayError(PQWalletError):
    """Base class for relay (bundler) failures."""
    pass


class RelayRejected(RelayError):
    """Raised when the relay returns a structured JSON-RPC error."""

    def __init__(self, reason: str, code: Optional[int] = None, data: Optional[object] = None):
        self.reason = reason
        self.code = code
        self.data = data
        super().__init__(reason)


class RelayConnectionError(RelayError):
    """Raised when the relay cannot be reached or answers with a bad HTTP status."""
    pass


class ReceiptTimeout(PQWalletError, TimeoutError):
    """
    Raised when no receipt arrived within the polling budget.

    The operation may still be included later, so this is an unknown outcome
    rather than a definite failure.
    """

    def __init__(self, message: str, user_op_hash: Optional[str] = None):
        self.user_op_hash = user_op_hash
        super().__init__(message)


class InvalidTransition(PQWalletError):
    """Raised when the lifecycle is driven through a transition it does not allow."""
    pass
