"""
Bundler (relay) client for the pqwallet SDK.
"""
from .client import RelayClient

__all__ = ["RelayClient"]
