"""
Signer backends for the pqwallet SDK.
"""
from .base import SignerBackend, require_hash_length
from .seed import EcdsaSeedSigner, SeedSigner
from .selector import SignerSelector
from .snap import DEFAULT_SNAP_ID, JsonRpcPluginRuntime, PluginRuntime, RemotePluginSigner

__all__ = [
    "SignerBackend",
    "require_hash_length",
    "SeedSigner",
    "EcdsaSeedSigner",
    "RemotePluginSigner",
    "PluginRuntime",
    "JsonRpcPluginRuntime",
    "SignerSelector",
    "DEFAULT_SNAP_ID",
]
