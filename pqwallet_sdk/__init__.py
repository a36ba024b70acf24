"""
pqwallet SDK - post-quantum signing for ERC-4337 smart accounts.
"""
from .client import WalletClient
from .config import WalletConfig
from .crypto import SecurityLevel
from .exceptions import (
    PQWalletError, ConfigurationError, ValidationError, MalformedHex, InvalidSeed,
    InvalidHashLength, InvalidPackedField, AuthorityError, NonceQueryFailed,
    SignerError, NotConfigured, RemoteSignerError, InvalidSignatureLength,
    RelayError, RelayRejected, RelayConnectionError, ReceiptTimeout,
    InvalidTransition, RejectionCode
)
from .lifecycle import OperationLifecycle, OperationStatus, PendingOperation, Stage
from .models import Intent, PackedUserOperation, PluginInfo, UserOperationReceipt
from .relay import RelayClient
from .session import SessionBridge, SessionRequest, SessionResponse
from .signer import (
    EcdsaSeedSigner, JsonRpcPluginRuntime, RemotePluginSigner, SeedSigner,
    SignerBackend, SignerSelector
)
from .userop import (
    DEFAULT_GAS_POLICY, ENTRY_POINT_V07, EntryPointNonceSource, GasPolicy,
    OperationCodec, SignerType, compute_user_op_hash
)
from .validator import OnChainValidator, ValidationResult
from .version import __version__

__all__ = [
    "WalletClient",
    "WalletConfig",
    "SecurityLevel",
    "Intent",
    "PackedUserOperation",
    "UserOperationReceipt",
    "PluginInfo",
    "OperationCodec",
    "EntryPointNonceSource",
    "GasPolicy",
    "DEFAULT_GAS_POLICY",
    "ENTRY_POINT_V07",
    "SignerType",
    "compute_user_op_hash",
    "SignerBackend",
    "SeedSigner",
    "EcdsaSeedSigner",
    "RemotePluginSigner",
    "JsonRpcPluginRuntime",
    "SignerSelector",
    "RelayClient",
    "OperationLifecycle",
    "OperationStatus",
    "PendingOperation",
    "Stage",
    "SessionBridge",
    "SessionRequest",
    "SessionResponse",
    "OnChainValidator",
    "ValidationResult",
    "PQWalletError",
    "ConfigurationError",
    "ValidationError",
    "MalformedHex",
    "InvalidSeed",
    "InvalidHashLength",
    "InvalidPackedField",
    "AuthorityError",
    "NonceQueryFailed",
    "SignerError",
    "NotConfigured",
    "RemoteSignerError",
    "InvalidSignatureLength",
    "RelayError",
    "RelayRejected",
    "RelayConnectionError",
    "ReceiptTimeout",
    "InvalidTransition",
    "RejectionCode",
    "__version__",
]
