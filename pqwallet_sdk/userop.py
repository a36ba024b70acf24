"""
OperationCodec - builds, hashes and re-shapes ERC-4337 v0.7 user operations.

The hash authority (EntryPoint) works on the packed shape while bundlers
accept the unpacked JSON-RPC shape; this module is the only place that
converts between the two.
"""
import logging
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, Optional, Protocol, Tuple

from eth_abi import encode as abi_encode
from eth_utils import keccak, to_checksum_address

from . import hexcodec
from .exceptions import InvalidPackedField, NonceQueryFailed, ValidationError
from .models import Intent, PackedUserOperation

logger = logging.getLogger(__name__)

ENTRY_POINT_V07 = "0x0000000071727De22E5E9d8BAf0edAc6f37da032"

# keccak256("execute(bytes32,bytes)")[:4]
EXECUTE_SELECTOR = bytes.fromhex("e9ae5c53")
# Single call, default exec type, no selector or payload
SINGLE_CALL_MODE = bytes(32)

# Kernel v3 nonce key (uint192):
#   [mode: 1 byte][validation type: 1 byte][validator: 20 bytes][key: 2 bytes]
# These offsets come from the account's own layout and must not be re-derived.
VALIDATION_TYPE_SHIFT = 176
VALIDATOR_SHIFT = 16
NONCE_KEY_BITS = 192
NONCE_SEQUENCE_BITS = 64

UINT128_MAX = 2**128 - 1


class SignerType(IntEnum):
    """Validation type tag; each value has its own nonce namespace."""
    ROOT = 0x00  # the account's root (ECDSA) validator
    MODULE = 0x01  # an installed validator module (ML-DSA)


@dataclass(frozen=True)
class GasPolicy:
    """Fixed gas limits and fees, in gas units and wei."""
    verification_gas_limit: int = 2_000_000
    call_gas_limit: int = 100_000
    pre_verification_gas: int = 100_000
    max_priority_fee_per_gas: int = 1_000_000_000
    max_fee_per_gas: int = 10_000_000_000

    @property
    def account_gas_limits(self) -> bytes:
        return pack_uint128_pair(self.verification_gas_limit, self.call_gas_limit)

    @property
    def gas_fees(self) -> bytes:
        return pack_uint128_pair(self.max_priority_fee_per_gas, self.max_fee_per_gas)


DEFAULT_GAS_POLICY = GasPolicy()


def pack_uint128_pair(high: int, low: int) -> bytes:
    """Pack two uint128 values into one 32-byte word (high || low)."""
    for value in (high, low):
        if not 0 <= value <= UINT128_MAX:
            raise ValidationError(f"Value out of uint128 range: {value}")
    return high.to_bytes(16, "big") + low.to_bytes(16, "big")


def unpack_uint128_pair(packed: bytes) -> Tuple[int, int]:
    """
    Split a packed 32-byte word into its (high, low) uint128 halves.

    Raises:
        InvalidPackedField: If the field is not exactly 32 bytes
    """
    if len(packed) != 32:
        raise InvalidPackedField(f"Packed field must be 32 bytes, got {len(packed)}")
    return int.from_bytes(packed[:16], "big"), int.from_bytes(packed[16:], "big")


def encode_nonce_key(signer_type: SignerType, validator: Optional[str] = None) -> int:
    """
    Build the 192-bit nonce key selecting the validator's nonce sequence.

    The root validator always uses key 0. A module validator embeds its
    validation type and address.
    """
    if SignerType(signer_type) is SignerType.ROOT:
        return 0
    if not validator:
        raise ValidationError("A validator module address is required for module signing")
    validator_int = int.from_bytes(hexcodec.decode(to_checksum_address(validator)), "big")
    return (int(signer_type) << VALIDATION_TYPE_SHIFT) | (validator_int << VALIDATOR_SHIFT)


def encode_execute_calldata(intent: Intent) -> bytes:
    """Wrap a single call in the account's execute(bytes32,bytes) envelope."""
    execution = (
        hexcodec.decode(intent.destination)
        + intent.value.to_bytes(32, "big")
        + intent.data
    )
    return EXECUTE_SELECTOR + abi_encode(["bytes32", "bytes"], [SINGLE_CALL_MODE, execution])


def compute_user_op_hash(op: PackedUserOperation, entry_point: str, chain_id: int) -> bytes:
    """
    Compute the EntryPoint v0.7 user operation hash.

    The signature field never contributes to the hash.
    """
    packed = abi_encode(
        ["address", "uint256", "bytes32", "bytes32", "bytes32", "uint256", "bytes32", "bytes32"],
        [
            op.sender,
            op.nonce,
            keccak(op.init_code),
            keccak(op.call_data),
            op.account_gas_limits,
            op.pre_verification_gas,
            op.gas_fees,
            keccak(op.paymaster_and_data),
        ],
    )
    return keccak(abi_encode(
        ["bytes32", "address", "uint256"],
        [keccak(packed), to_checksum_address(entry_point), chain_id],
    ))


class NonceSource(Protocol):
    """Anything that can answer EntryPoint.getNonce(sender, key)."""

    def get_nonce(self, sender: str, key: int) -> int:
        ...


class EntryPointNonceSource:
    """Reads the account nonce from the EntryPoint contract through web3."""

    ENTRY_POINT_ABI = [
        {
            "inputs": [
                {"internalType": "address", "name": "sender", "type": "address"},
                {"internalType": "uint192", "name": "key", "type": "uint192"}
            ],
            "name": "getNonce",
            "outputs": [{"internalType": "uint256", "name": "nonce", "type": "uint256"}],
            "stateMutability": "view",
            "type": "function"
        }
    ]

    def __init__(self, w3, entry_point: str = ENTRY_POINT_V07):
        self.w3 = w3
        self.entry_point = to_checksum_address(entry_point)
        self.contract = w3.eth.contract(address=self.entry_point, abi=self.ENTRY_POINT_ABI)

    def get_nonce(self, sender: str, key: int) -> int:
        """
        Raises:
            NonceQueryFailed: If the RPC call fails for any reason
        """
        try:
            return int(self.contract.functions.getNonce(to_checksum_address(sender), key).call())
        except Exception as e:
            raise NonceQueryFailed(f"EntryPoint.getNonce failed: {e}") from e


class OperationCodec:
    """
    Builds unsigned user operations, hashes them and converts between the
    packed and relay (unpacked) shapes.
    """

    def __init__(
        self,
        nonce_source: NonceSource,
        validator_module: Optional[str] = None,
        gas_policy: GasPolicy = DEFAULT_GAS_POLICY,
        logger: Optional[logging.Logger] = None
    ):
        self.nonce_source = nonce_source
        self.validator_module = validator_module
        self.gas_policy = gas_policy
        self.logger = logger or logging.getLogger(__name__)

    def build_unsigned(
        self,
        intent: Intent,
        account: str,
        entry_point: str,
        chain_id: int,
        signer_type: SignerType = SignerType.MODULE
    ) -> Tuple[PackedUserOperation, bytes]:
        """
        Build the unsigned operation for an intent and compute its hash.

        Args:
            intent: The call to execute
            account: Smart account address (the operation sender)
            entry_point: EntryPoint address used in the hash
            chain_id: Chain id used in the hash
            signer_type: Validation type selecting the nonce namespace

        Returns:
            Tuple of (operation with empty signature, 32-byte hash)

        Raises:
            NonceQueryFailed: If the nonce authority cannot be queried
        """
        call_data = encode_execute_calldata(intent)
        key = encode_nonce_key(signer_type, self.validator_module)
        try:
            nonce = self.nonce_source.get_nonce(account, key)
        except NonceQueryFailed:
            raise
        except Exception as e:
            raise NonceQueryFailed(f"Nonce query failed: {e}") from e

        op = PackedUserOperation(
            sender=account,
            nonce=nonce,
            call_data=call_data,
            account_gas_limits=self.gas_policy.account_gas_limits,
            pre_verification_gas=self.gas_policy.pre_verification_gas,
            gas_fees=self.gas_policy.gas_fees,
        )
        user_op_hash = compute_user_op_hash(op, entry_point, chain_id)
        self.logger.debug(
            f"Built user operation for {op.sender} nonce={hex(nonce)} hash={hexcodec.encode(user_op_hash)}"
        )
        return op, user_op_hash

    @staticmethod
    def finalize(unsigned: PackedUserOperation, signature: bytes) -> PackedUserOperation:
        """Attach a signature to an unsigned operation."""
        if not signature:
            raise ValidationError("Signature must not be empty")
        return unsigned.model_copy(update={"signature": bytes(signature)})

    @staticmethod
    def to_relay_format(op: PackedUserOperation) -> Dict[str, Any]:
        """Render an operation in the unpacked eth_sendUserOperation shape."""
        verification_gas, call_gas = unpack_uint128_pair(op.account_gas_limits)
        priority_fee, max_fee = unpack_uint128_pair(op.gas_fees)
        return {
            "sender": op.sender,
            "nonce": hexcodec.quantity(op.nonce),
            "factory": None,
            "factoryData": None,
            "callData": hexcodec.encode(op.call_data),
            "callGasLimit": hexcodec.quantity(call_gas),
            "verificationGasLimit": hexcodec.quantity(verification_gas),
            "preVerificationGas": hexcodec.quantity(op.pre_verification_gas),
            "maxFeePerGas": hexcodec.quantity(max_fee),
            "maxPriorityFeePerGas": hexcodec.quantity(priority_fee),
            "paymaster": None,
            "paymasterVerificationGasLimit": None,
            "paymasterPostOpGasLimit": None,
            "paymasterData": None,
            "signature": hexcodec.encode(op.signature),
        }

    @staticmethod
    def from_relay_format(record: Dict[str, Any]) -> PackedUserOperation:
        """
        Re-pack an unpacked relay record.

        Factory and paymaster fields are concatenated back into initCode and
        paymasterAndData when present.
        """
        def uint(name: str) -> int:
            value = record.get(name)
            if value is None:
                return 0
            if isinstance(value, str):
                try:
                    return int(value, 16)
                except ValueError:
                    raise ValidationError(f"Invalid quantity for {name}: {value!r}") from None
            return int(value)

        init_code = b""
        if record.get("factory"):
            init_code = hexcodec.decode(record["factory"]) + hexcodec.decode(record.get("factoryData") or "0x")

        paymaster_and_data = b""
        if record.get("paymaster"):
            paymaster_and_data = (
                hexcodec.decode(record["paymaster"])
                + uint("paymasterVerificationGasLimit").to_bytes(16, "big")
                + uint("paymasterPostOpGasLimit").to_bytes(16, "big")
                + hexcodec.decode(record.get("paymasterData") or "0x")
            )

        return PackedUserOperation(
            sender=record["sender"],
            nonce=uint("nonce"),
            init_code=init_code,
            call_data=hexcodec.decode(record.get("callData") or "0x"),
            account_gas_limits=pack_uint128_pair(uint("verificationGasLimit"), uint("callGasLimit")),
            pre_verification_gas=uint("preVerificationGas"),
            gas_fees=pack_uint128_pair(uint("maxPriorityFeePerGas"), uint("maxFeePerGas")),
            paymaster_and_data=paymaster_and_data,
            signature=hexcodec.decode(record.get("signature") or "0x"),
        )
