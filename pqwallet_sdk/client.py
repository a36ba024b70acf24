"""
WalletClient - wires configuration, codec, signer, relay and lifecycle together.
"""
import logging
from typing import Any, Dict, Optional, Union

from web3 import Web3

from .config import WalletConfig
from .exceptions import PQWalletError
from .lifecycle import OperationLifecycle, OperationStatus, PendingOperation
from .models import Intent
from .relay import RelayClient
from .session import Approver, SessionBridge
from .signer import SeedSigner, SignerBackend
from .userop import EntryPointNonceSource, OperationCodec


class WalletClient:
    """
    High-level client for sending transactions through a smart account whose
    operations are authorized by a post-quantum signer.

    To use this client, you'll need:
    - An RPC endpoint for the EntryPoint nonce query
    - A bundler endpoint
    - The smart account address and its installed validator module
    - A signer backend (defaults to an unconfigured ML-DSA SeedSigner)
    """

    def __init__(
        self,
        config: WalletConfig,
        signer: Optional[SignerBackend] = None,
        w3: Optional[Web3] = None,
        relay: Optional[RelayClient] = None,
        logger: Optional[logging.Logger] = None
    ):
        self.config = config
        self.logger = logger or logging.getLogger(__name__)
        self.w3 = w3 or Web3(Web3.HTTPProvider(config.rpc_url))
        self.signer = signer or SeedSigner(logger=self.logger)
        self.codec = OperationCodec(
            EntryPointNonceSource(self.w3, config.entry_point),
            validator_module=config.validator_module,
            logger=self.logger,
        )
        self.relay = relay or RelayClient(
            config.bundler_url,
            entry_point=config.entry_point,
            poll_interval=config.poll_interval,
            logger=self.logger,
        )
        self.lifecycle = OperationLifecycle(
            self.codec,
            self.signer,
            self.relay,
            account=config.account,
            entry_point=config.entry_point,
            chain_id=config.chain_id,
            receipt_timeout=config.receipt_timeout,
            logger=self.logger,
        )

    @classmethod
    def from_env(cls, signer: Optional[SignerBackend] = None, **kwargs) -> "WalletClient":
        """Build a client from PQWALLET_* environment variables."""
        return cls(WalletConfig.from_env(), signer=signer, **kwargs)

    def execute(self, intent: Union[Intent, Dict[str, Any]], request_id: Any = 0) -> PendingOperation:
        """
        Run one intent through the pipeline without raising on failure.

        Returns:
            The terminal PendingOperation
        """
        if not isinstance(intent, Intent):
            intent = Intent.from_transaction(intent)
        return self.lifecycle.run(request_id, intent)

    def send_transaction(self, intent: Union[Intent, Dict[str, Any]]) -> str:
        """
        Send a transaction and wait for inclusion.

        Args:
            intent: An Intent, or an eth_sendTransaction-style dict with to/value/data

        Returns:
            The bundle transaction hash

        Raises:
            The exception that stopped the pipeline (NonceQueryFailed,
            SignerError, RelayRejected, ReceiptTimeout, ...)
        """
        pending = self.execute(intent)
        if pending.status is not OperationStatus.CONFIRMED:
            if pending.error is not None:
                raise pending.error
            raise PQWalletError(pending.last_error or "Operation failed")
        return pending.transaction_hash

    def session_bridge(self, approver: Optional[Approver] = None) -> SessionBridge:
        """Create a session bridge that reports this client's outcomes."""
        return SessionBridge(self.lifecycle, approver=approver, logger=self.logger)
