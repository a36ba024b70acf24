"""
Reference model of the on-chain ML-DSA validator module.

The real validator is a contract installed on each smart account. This model
follows its external contract exactly so the SDK can check, off-chain, that
the hash it signs is the hash the chain will verify:

* validateUserOp verifies the signature over the EntryPoint user op hash
  against the public key installed for the account.
* isValidSignatureWithSender first binds the hash to
  (validator, chainId, account, caller) so a signature cannot be replayed
  through another account or caller.
"""
import logging
from enum import IntEnum
from typing import Callable, Dict, Optional

from eth_abi import encode as abi_encode
from eth_utils import keccak, to_checksum_address

from .config import DEFAULT_CHAIN_ID
from .exceptions import ValidationError
from .models import PackedUserOperation
from .userop import ENTRY_POINT_V07, compute_user_op_hash

logger = logging.getLogger(__name__)

ERC1271_MAGIC_VALUE = bytes.fromhex("1626ba7e")
ERC1271_INVALID = bytes.fromhex("ffffffff")

# verify(public_key, message, signature) -> bool
Verifier = Callable[[bytes, bytes, bytes], bool]


class ValidationResult(IntEnum):
    """validationData values returned to the EntryPoint"""
    SUCCESS = 0
    FAILED = 1


def sender_bound_hash(validator: str, chain_id: int, account: str, caller: str, message_hash: bytes) -> bytes:
    """keccak256(abi.encode(validator, chainId, account, caller, hash))"""
    return keccak(abi_encode(
        ["address", "uint256", "address", "address", "bytes32"],
        [
            to_checksum_address(validator),
            chain_id,
            to_checksum_address(account),
            to_checksum_address(caller),
            message_hash,
        ],
    ))


class OnChainValidator:
    """Per-account public key registry plus the two validation entry points."""

    def __init__(
        self,
        address: str,
        verifier: Verifier,
        chain_id: int = DEFAULT_CHAIN_ID,
        entry_point: str = ENTRY_POINT_V07,
        logger: Optional[logging.Logger] = None
    ):
        self.address = to_checksum_address(address)
        self.verifier = verifier
        self.chain_id = chain_id
        self.entry_point = to_checksum_address(entry_point)
        self.logger = logger or logging.getLogger(__name__)
        self._keys: Dict[str, bytes] = {}

    def install(self, account: str, public_key: bytes) -> None:
        """Store the account's public key (onInstall)."""
        account = to_checksum_address(account)
        if account in self._keys:
            raise ValidationError(f"Validator already initialized for {account}")
        if not public_key:
            raise ValidationError("Public key must not be empty")
        self._keys[account] = bytes(public_key)

    def uninstall(self, account: str) -> None:
        account = to_checksum_address(account)
        if self._keys.pop(account, None) is None:
            raise ValidationError(f"Validator not initialized for {account}")

    def is_initialized(self, account: str) -> bool:
        return to_checksum_address(account) in self._keys

    def recompute_hash(self, op: PackedUserOperation) -> bytes:
        """Recompute the user op hash the way the EntryPoint does."""
        return compute_user_op_hash(op, self.entry_point, self.chain_id)

    def validate_user_op(
        self,
        op: PackedUserOperation,
        user_op_hash: Optional[bytes] = None,
        account: Optional[str] = None
    ) -> ValidationResult:
        """
        Verify `op.signature` over `user_op_hash` with the sender's installed key.

        When no hash is given it is recomputed from the operation.
        """
        account = to_checksum_address(account or op.sender)
        public_key = self._keys.get(account)
        if public_key is None:
            self.logger.debug(f"No key installed for {account}")
            return ValidationResult.FAILED
        if user_op_hash is None:
            user_op_hash = self.recompute_hash(op)
        if self._verify(public_key, user_op_hash, op.signature):
            return ValidationResult.SUCCESS
        return ValidationResult.FAILED

    def is_valid_signature_with_sender(
        self,
        account: str,
        caller: str,
        message_hash: bytes,
        signature: bytes
    ) -> bytes:
        """ERC-1271 check; returns the magic value or 0xffffffff."""
        public_key = self._keys.get(to_checksum_address(account))
        if public_key is None:
            return ERC1271_INVALID
        bound = sender_bound_hash(self.address, self.chain_id, account, caller, message_hash)
        if self._verify(public_key, bound, signature):
            return ERC1271_MAGIC_VALUE
        return ERC1271_INVALID

    def _verify(self, public_key: bytes, message: bytes, signature: bytes) -> bool:
        try:
            return bool(self.verifier(public_key, message, signature))
        except Exception as e:
            self.logger.debug(f"Verifier raised, treating signature as invalid: {e}")
            return False
